"""Tests for the crudkit command-line interface.

This module tests:
- Global options, version and help
- The find/create/update/remove/list commands
- Field and sort parsing
- Error reporting at the top level
"""

import json
from unittest.mock import Mock, patch

import click
import pytest
import requests
from click.testing import CliRunner

from crudkit.cli.main import cli, parse_fields, parse_header, parse_sort
from crudkit.exceptions import RecordNotFoundError


class TestEntryPoint:
    """Test global behaviour of the CLI group."""

    def test_help(self, cli_runner):
        """--help describes the tool and lists every command."""
        result = cli_runner.invoke(["--help"])

        assert result.exit_code == 0
        assert "Generic record storage tool" in result.output
        for command in ("find", "create", "update", "remove", "list"):
            assert command in result.output

    def test_version(self, cli_runner):
        """--version prints the package version."""
        result = cli_runner.invoke(["--version"])

        assert result.exit_code == 0
        assert "crudkit version" in result.output

    def test_invalid_config_file(self, cli_runner, tmp_path):
        """A broken config file is reported without a traceback."""
        bad_config = tmp_path / "bad.yaml"
        bad_config.write_text("format: [unclosed\n")

        result = cli_runner.invoke(["--config", str(bad_config), "list", "users"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output

    def test_config_file_sets_format(self, cli_runner, tmp_path, database_path):
        """Settings from --config are applied."""
        config = tmp_path / "crudkit.yaml"
        config.write_text("format: json\n")

        result = cli_runner.invoke(["--config", str(config), "create", "users", "a=1"])

        assert result.exit_code == 0, result.output
        record = json.loads(result.output)
        assert (database_path / "users" / f"{record['id']}.json").exists()

    def test_environment_sets_database_path(self, tmp_path, monkeypatch):
        """CRUDKIT_DATABASE_PATH selects the storage root."""
        monkeypatch.setenv("CRUDKIT_DATABASE_PATH", str(tmp_path / "envdb"))

        result = CliRunner().invoke(cli, ["--no-color", "create", "users", "a=1"])

        assert result.exit_code == 0, result.output
        assert len(list((tmp_path / "envdb" / "users").iterdir())) == 1

    def test_url_uses_http_adapter(self, cli_runner):
        """--url sends requests to a REST server with the given headers."""
        response = requests.Response()
        response.status_code = 200
        response._content = b'{"id": "1", "name": "Ada"}'
        session = Mock(spec=requests.Session)
        session.request.return_value = response

        with patch("crudkit.adapters.http.requests.Session", return_value=session):
            result = cli_runner.invoke(
                ["--url", "https://api.test", "-H", "X-Token: t", "find", "users", "1"]
            )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"id": "1", "name": "Ada"}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.test/users/1")
        assert kwargs["headers"] == {"X-Token": "t"}
        session.close.assert_called_once_with()


class TestCommands:
    """Test the record commands against file storage."""

    def test_create_and_find(self, run_json):
        """Created records can be found by id."""
        record = run_json("create", "users", "name=Ada", "age=36", "admin=true")

        assert record == {"id": record["id"], "name": "Ada", "age": 36, "admin": True}
        assert run_json("find", "users", record["id"]) == record

    def test_update(self, run_json):
        """update merges the given fields."""
        record = run_json("create", "users", "name=Ada", "age=36")

        updated = run_json("update", "users", record["id"], "age=37")

        assert updated == {"id": record["id"], "name": "Ada", "age": 37}

    def test_update_requires_fields(self, cli_runner):
        """update without fields is a usage error."""
        result = cli_runner.invoke(["update", "users", "x"])

        assert result.exit_code == 2

    def test_remove_with_yes(self, run_json):
        """remove --yes prints the removed record."""
        record = run_json("create", "users", "name=Ada")

        assert run_json("remove", "users", record["id"], "--yes") == record
        assert run_json("list", "users") == []

    def test_remove_asks_for_confirmation(self, cli_runner, run_json):
        """Declining the prompt keeps the record."""
        record = run_json("create", "users", "name=Ada")

        result = cli_runner.invoke(["remove", "users", record["id"]], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output
        assert run_json("find", "users", record["id"]) == record

    def test_list_query_options(self, run_json):
        """list combines --where, --sort, --skip, --limit and --select."""
        for name, age in (("Ada", 36), ("Bea", 12), ("Cy", 50), ("Di", 20)):
            run_json("create", "users", f"name={name}", f"age={age}")

        records = run_json(
            "list",
            "users",
            "--where",
            "{age: {$gte: 15}}",
            "--sort",
            "age:desc",
            "--skip",
            "1",
            "--limit",
            "1",
            "--select",
            "name",
        )

        assert [r["name"] for r in records] == ["Ada"]
        assert set(records[0]) == {"id", "name"}

    def test_list_missing_table(self, run_json):
        """Listing a table that does not exist is empty."""
        assert run_json("list", "ghosts") == []

    @pytest.mark.parametrize("where", ["[1, 2]", "{unclosed"])
    def test_list_rejects_bad_where(self, cli_runner, where):
        """--where must be a YAML mapping."""
        result = cli_runner.invoke(["list", "users", "--where", where])

        assert result.exit_code == 2
        assert "--where" in result.output

    def test_list_rejects_negative_limit(self, cli_runner):
        """--limit cannot be negative."""
        result = cli_runner.invoke(["list", "users", "--limit", "-1"])

        assert result.exit_code == 2


class TestErrorReporting:
    """Test how crudkit errors reach the user."""

    def test_not_found(self, cli_runner):
        """Missing records are reported with exit status 1."""
        result = cli_runner.invoke(["find", "users", "nope"])

        assert result.exit_code == 1
        assert "Not found: Record not found: users/nope" in result.output

    def test_invalid_query(self, cli_runner):
        """Malformed queries are reported as errors."""
        result = cli_runner.invoke(["list", "users", "--where", "{a: {$in: 3}}"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "$in" in result.output

    def test_invalid_table_name(self, cli_runner):
        """Path-like table names are rejected."""
        result = cli_runner.invoke(["find", "..", "x"])

        assert result.exit_code == 1
        assert "Invalid table" in result.output

    def test_debug_shows_traceback(self, cli_runner):
        """--debug lets the exception propagate."""
        result = cli_runner.invoke(["--debug", "find", "users", "nope"])

        assert result.exit_code == 1
        assert isinstance(result.exception, RecordNotFoundError)


class TestParsing:
    """Test argument parsing helpers."""

    def test_parse_fields(self):
        """Values are parsed as YAML scalars."""
        fields = parse_fields(
            ("name=Ada", "age=36", "ratio=0.5", "tags=[a, b]", "note=", "eq=a=b")
        )

        assert fields == {
            "name": "Ada",
            "age": 36,
            "ratio": 0.5,
            "tags": ["a", "b"],
            "note": None,
            "eq": "a=b",
        }

    def test_parse_fields_keeps_invalid_yaml_as_text(self):
        """Values that are not valid YAML are kept verbatim."""
        assert parse_fields(("text=[unclosed",)) == {"text": "[unclosed"}

    @pytest.mark.parametrize("assignment", ["name", "=value"])
    def test_parse_fields_rejects_bad_assignments(self, assignment):
        """Each field must be FIELD=VALUE."""
        with pytest.raises(click.BadParameter):
            parse_fields((assignment,))

    def test_parse_sort(self):
        """Sort options default to ascending."""
        assert parse_sort(("age", "name:desc", "x:ASC")) == {
            "age": 1,
            "name": -1,
            "x": 1,
        }

    def test_parse_sort_rejects_unknown_direction(self):
        """Only asc and desc are accepted."""
        with pytest.raises(click.BadParameter):
            parse_sort(("age:up",))

    def test_parse_header(self):
        """Headers are split on the first colon."""
        assert parse_header("Authorization: Bearer a:b") == (
            "Authorization",
            "Bearer a:b",
        )
        with pytest.raises(click.BadParameter):
            parse_header("no-colon")


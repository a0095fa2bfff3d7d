"""Pytest configuration and fixtures for CLI tests."""

import json

import pytest
from click.testing import CliRunner


@pytest.fixture
def database_path(tmp_path):
    """Storage root used by the CLI."""
    return tmp_path / "database"


@pytest.fixture
def cli_runner(database_path):
    """Click CLI test runner pointed at a temporary database."""

    class CrudkitCliRunner(CliRunner):
        def invoke(self, args, **kwargs):  # type: ignore
            """Invoke crudkit with plain output and the test database."""
            from crudkit.cli.main import cli

            base = ["--no-color", "--database-path", str(database_path)]
            return super().invoke(cli, base + list(args), **kwargs)

    return CrudkitCliRunner()


@pytest.fixture
def run_json(cli_runner):
    """Invoke a command that must succeed and decode its JSON output."""

    def run(*args, **kwargs):
        result = cli_runner.invoke(list(args), **kwargs)
        assert result.exit_code == 0, result.output
        return json.loads(result.output)

    return run

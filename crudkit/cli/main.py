"""Main CLI entry point and application setup."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import yaml
from click.exceptions import Exit
from rich.console import Console
from rich.markup import escape

from crudkit import __version__
from crudkit.config import Settings, load_settings
from crudkit.core import CRUD
from crudkit.exceptions import ConfigError, CrudError, RecordNotFoundError


@dataclass
class Context:
    """CLI context that holds shared resources."""

    crud: CRUD
    settings: Settings
    console: Console
    debug: bool = False


def setup_logging(
    verbose: bool = False, quiet: bool = False, debug: bool = False
) -> None:
    """Configure logging based on CLI flags."""
    if quiet:
        level = logging.WARNING
    elif verbose or debug:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s"
        if not debug
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_console(no_color: bool = False, width: int | None = None) -> Console:
    """Create Rich console with appropriate settings."""
    return Console(
        no_color=no_color,
        width=width or 120,
        highlight=not no_color,
        color_system=None if no_color else "auto",
    )


class CrudkitGroup(click.Group):
    """Custom group that reports crudkit errors instead of tracebacks."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            console = getattr(ctx.obj, "console", None) if ctx.obj else None
            if console:
                console.print("[yellow]Interrupted[/yellow]")
            ctx.exit(130)
        except (click.ClickException, click.Abort, Exit, SystemExit):
            raise
        except CrudError as e:
            debug = getattr(ctx.obj, "debug", False) if ctx.obj else False
            if debug:
                raise
            console = getattr(ctx.obj, "console", None) if ctx.obj else None
            label = "Not found" if isinstance(e, RecordNotFoundError) else "Error"
            if console:
                console.print(f"[red]{label}:[/red] {escape(str(e))}")
            else:
                click.echo(f"{label}: {e}", err=True)
            ctx.exit(1)


def parse_header(value: str) -> tuple[str, str]:
    """Parse a ``Name: value`` header option."""
    name, sep, content = value.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"Expected 'Name: value', got {value!r}")
    return name.strip(), content.strip()


def parse_value(raw: str) -> Any:
    """Parse a field value as a YAML scalar, falling back to the raw string."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def parse_fields(assignments: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``field=value`` arguments into a record."""
    fields = {}
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep or not name:
            raise click.BadParameter(
                f"Expected FIELD=VALUE, got {assignment!r}", param_hint="FIELDS"
            )
        fields[name] = parse_value(raw)
    return fields


def parse_sort(values: tuple[str, ...]) -> dict[str, int]:
    """Parse ``field`` / ``field:asc`` / ``field:desc`` sort options."""
    sort = {}
    for value in values:
        name, _, direction = value.partition(":")
        direction = direction.lower() or "asc"
        if direction not in ("asc", "desc"):
            raise click.BadParameter(
                f"Sort direction must be asc or desc, got {direction!r}",
                param_hint="--sort",
            )
        sort[name] = 1 if direction == "asc" else -1
    return sort


def print_records(console: Console, data: Mapping[str, Any] | list) -> None:
    """Print records as JSON."""
    console.print_json(data=data, default=str)


@click.group(cls=CrudkitGroup)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--debug", is_flag=True, help="Enable debug mode with full tracebacks")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--database-path",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the tables",
)
@click.option(
    "--format",
    "record_format",
    type=click.Choice(["yaml", "json"]),
    help="Record file format",
)
@click.option("--url", help="Base URL of a REST server to use instead of files")
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    help="Extra HTTP header as 'Name: value' (repeatable)",
)
@click.version_option(
    version=__version__, prog_name="crudkit", message="crudkit version %(version)s"
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    no_color: bool,
    debug: bool,
    config: Path | None,
    database_path: Path | None,
    record_format: str | None,
    url: str | None,
    headers: tuple[str, ...],
) -> None:
    """Generic record storage tool.

    Find, create, update, remove and list records in file-backed tables or
    on a compatible REST server.
    """
    setup_logging(verbose=verbose, quiet=quiet, debug=debug)

    overrides = {
        "database_path": str(database_path) if database_path else None,
        "format": record_format,
        "base_url": url,
        "headers": dict(parse_header(h) for h in headers),
    }

    try:
        settings = load_settings(config, overrides)
    except ConfigError as e:
        if debug:
            raise
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)

    console = create_console(no_color=no_color)
    crud = settings.create_crud()
    ctx.call_on_close(crud.close)

    ctx.obj = Context(crud=crud, settings=settings, console=console, debug=debug)


@cli.command()
@click.argument("table")
@click.argument("id")
@click.pass_obj
def find(obj: Context, table: str, id: str) -> None:
    """Show a record."""
    print_records(obj.console, obj.crud.find(table=table, id=id))


@cli.command()
@click.argument("table")
@click.argument("fields", nargs=-1)
@click.pass_obj
def create(obj: Context, table: str, fields: tuple[str, ...]) -> None:
    """Create a record from FIELD=VALUE pairs."""
    record = obj.crud.create(table=table, data=parse_fields(fields))
    print_records(obj.console, record)


@cli.command()
@click.argument("table")
@click.argument("id")
@click.argument("fields", nargs=-1, required=True)
@click.pass_obj
def update(obj: Context, table: str, id: str, fields: tuple[str, ...]) -> None:
    """Update a record with FIELD=VALUE pairs."""
    record = obj.crud.update(table=table, id=id, data=parse_fields(fields))
    print_records(obj.console, record)


@cli.command()
@click.argument("table")
@click.argument("id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def remove(obj: Context, table: str, id: str, yes: bool) -> None:
    """Remove a record."""
    if not yes:
        click.confirm(f"Remove {table}/{id}?", abort=True)
    print_records(obj.console, obj.crud.remove(table=table, id=id))


@cli.command(name="list")
@click.argument("table")
@click.option("--where", "-w", help="Filter as a YAML/JSON mapping")
@click.option("--limit", "-n", type=click.IntRange(min=0), help="Maximum records")
@click.option("--skip", type=click.IntRange(min=0), help="Records to skip")
@click.option("--sort", "-s", multiple=True, help="Sort field, optionally FIELD:desc")
@click.option("--select", "-f", multiple=True, help="Field to include")
@click.pass_obj
def list_cmd(
    obj: Context,
    table: str,
    where: str | None,
    limit: int | None,
    skip: int | None,
    sort: tuple[str, ...],
    select: tuple[str, ...],
) -> None:
    """List records in a table."""
    query: dict[str, Any] = {}
    if where:
        try:
            parsed = yaml.safe_load(where)
        except yaml.YAMLError as e:
            raise click.BadParameter(
                f"Invalid filter: {e}", param_hint="--where"
            ) from e
        if not isinstance(parsed, dict):
            raise click.BadParameter("Filter must be a mapping", param_hint="--where")
        query.update(parsed)
    if limit is not None:
        query["$limit"] = limit
    if skip is not None:
        query["$skip"] = skip
    if sort:
        query["$sort"] = parse_sort(sort)
    if select:
        query["$select"] = list(select)

    print_records(obj.console, obj.crud.list(table=table, query=query or None))


def main() -> None:
    """Main entry point for the CLI application."""
    cli()


if __name__ == "__main__":
    main()

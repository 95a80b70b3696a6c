"""CLI entrypoint for fieldrules."""

import logging
import sys
from pathlib import Path

import click
from rich.logging import RichHandler

from . import __version__


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_time=False, show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="fieldrules")
@click.option("--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool) -> None:
    """fieldrules - Declarative field constraints for structured records.

    Compile constraint options from a schema and validate records against them.
    """
    _setup_logging(verbose)


@cli.command()
@click.argument("schema", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "type_name", type=str, default=None, metavar="NAME", help="Only list rules of this type")
@click.option("--json", "output_json", is_flag=True, help="Output rules as JSON")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [validation] table",
)
def rules(schema: Path, type_name: str | None, output_json: bool, config_path: Path | None) -> None:
    """Compile SCHEMA and list the rules of every type."""
    from .commands.rules_cmd import run_rules

    sys.exit(run_rules(schema, type_name, output_json, config_path))


@cli.command()
@click.argument("schema", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("record", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "type_name", type=str, required=True, metavar="NAME", help="Message type of RECORD")
@click.option(
    "--previous",
    "previous_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Earlier state of the record, for set-once checks",
)
@click.option("--json", "output_json", is_flag=True, help="Output violations as JSON")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [validation] table",
)
def check(
    schema: Path,
    record: Path,
    type_name: str,
    previous_path: Path | None,
    output_json: bool,
    config_path: Path | None,
) -> None:
    """Validate RECORD (YAML or JSON) against the rules compiled from SCHEMA.

    Exits with 1 when violations are found and 2 on schema or record errors.
    """
    from .commands.check import run_check

    sys.exit(run_check(schema, record, type_name, previous_path, output_json, config_path))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

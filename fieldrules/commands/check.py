"""Check command implementation."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import ValidationConfig, load_config
from ..constraints import Validator, compile_schema
from ..constraints.rules import ValidationTable
from ..errors import RecordError, SchemaError
from ..records import load_record, to_value
from ..report import ConstraintViolation
from ..schema.load import Schema, load_schema


def load_table(schema_path: Path, config: ValidationConfig) -> tuple[Schema, ValidationTable]:
    """Load a schema file and compile its options."""
    schema = load_schema(schema_path)
    table = compile_schema(schema.registry, schema.options, config)
    return schema, table


def _violations_table(title: str, type_name: str, violations: list[ConstraintViolation]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Message")
    for v in violations:
        table.add_row(f"{type_name}.{v.path}" if v.path else type_name, v.message)
    return table


def run_check(
    schema_path: Path,
    record_path: Path,
    type_name: str,
    previous_path: Path | None = None,
    output_json: bool = False,
    config_path: Path | None = None,
) -> int:
    """Validate a record, and optionally its transition from a previous state.

    Returns:
        Exit code (0 = valid, 1 = violations found, 2 = schema or record errors)
    """
    console = Console(stderr=True)

    try:
        config = load_config(config_path)
        schema, table = load_table(schema_path, config)
    except SchemaError as e:
        where = f" in {e.subject}" if e.subject else ""
        console.print(f"Schema error{where}: {e}", style="bold red")
        return 2
    except ValueError as e:
        console.print(f"Schema error: {e}", style="bold red")
        return 2

    if schema.registry.message(type_name) is None:
        console.print(f"Unknown message type: {type_name}", style="bold red")
        return 2

    try:
        record = to_value(load_record(record_path), type_name, schema.registry)
        previous = None
        if previous_path is not None:
            previous = to_value(load_record(previous_path), type_name, schema.registry)
    except RecordError as e:
        console.print(f"Record error: {e}", style="bold red")
        return 2

    validator = Validator(table)
    error = validator.validate(record)
    violations = error.flatten() if error is not None else []
    transition = validator.check_transition(previous, record) if previous is not None else []

    if output_json:
        output = {
            "type": type_name,
            "valid": not violations and not transition,
            "violations": error.to_dict()["violations"] if error is not None else [],
            "transition": [v.to_dict() for v in transition],
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        if violations:
            console.print(_violations_table(f"{len(violations)} violation(s) in {record_path.name}", type_name, violations))
        if transition:
            console.print(_violations_table("Set-once fields reassigned", type_name, transition))
        if not violations and not transition:
            console.print(f"✓ {record_path.name} is a valid {type_name}", style="green")

    return 1 if violations or transition else 0

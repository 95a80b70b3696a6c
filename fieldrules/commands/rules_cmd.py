"""Rules command implementation: list compiled rules per type."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import load_config
from ..constraints.rules import CompositeRule, CustomRule, MessageValidation, Rule, describe_rule
from ..errors import SchemaError
from .check import load_table


def _rule_kind(rule: Rule) -> str:
    if isinstance(rule, CustomRule):
        return rule.kind.value
    if isinstance(rule, CompositeRule):
        return rule.operator.value
    return rule.operator.value


def _rule_to_dict(rule: Rule) -> dict:
    return {
        "field": rule.field.name if rule.field is not None else None,
        "kind": _rule_kind(rule),
        "rule": describe_rule(rule),
        "distribute": rule.distribute,
        "template": rule.error_template,
    }


def _validation_to_dict(validation: MessageValidation) -> dict:
    return {
        "rules": [_rule_to_dict(r) for r in validation.rules],
        "set_once": [s.field.name for s in validation.set_once_fields],
    }


def run_rules(
    schema_path: Path,
    type_name: str | None = None,
    output_json: bool = False,
    config_path: Path | None = None,
) -> int:
    """Compile a schema and list its rules.

    Returns:
        Exit code (0 = success, 2 = schema errors)
    """
    console = Console(stderr=True)

    try:
        _, table = load_table(schema_path, load_config(config_path))
    except SchemaError as e:
        where = f" in {e.subject}" if e.subject else ""
        console.print(f"Schema error{where}: {e}", style="bold red")
        return 2
    except ValueError as e:
        console.print(f"Schema error: {e}", style="bold red")
        return 2

    if type_name is not None and type_name not in table:
        console.print(f"Unknown message type: {type_name}", style="bold red")
        return 2

    names = [type_name] if type_name is not None else [n for n in table if not table[n].is_empty]

    if output_json:
        print(json.dumps({n: _validation_to_dict(table[n]) for n in names}, indent=2))
        return 0

    out = Console()
    for name in names:
        validation = table[name]
        grid = Table(title=name)
        grid.add_column("Field", style="cyan")
        grid.add_column("Kind")
        grid.add_column("Rule")
        for rule in validation.rules:
            grid.add_row(rule.field.name if rule.field is not None else "-", _rule_kind(rule), describe_rule(rule))
        for entry in validation.set_once_fields:
            grid.add_row(entry.field.name, "set_once", f"{entry.field.name} cannot change once set")
        out.print(grid)

    if not names:
        console.print("No rules compiled.", style="dim")
    return 0

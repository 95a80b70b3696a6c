"""Pytest configuration and fixtures."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Callable

import pytest

from fieldrules.config import ValidationConfig
from fieldrules.constraints import compile_schema
from fieldrules.constraints.rules import ValidationTable
from fieldrules.schema.load import Schema, parse_schema

ORDER_SCHEMA = """
[[enums]]
name = "acme.Status"
values = { STATUS_UNKNOWN = 0, ACTIVE = 1, CLOSED = 2 }

[[messages]]
name = "acme.Address"

[[messages.fields]]
name = "first_line"
type = "string"
options = { required = true }

[[messages.fields]]
name = "town"
type = "string"
options = { required = true }

[[messages.fields]]
name = "zip"
type = "string"

[[messages]]
name = "acme.Order"
marker = "entity"
required_field = "email | phone"

[[messages.fields]]
name = "id"
type = "string"

[[messages.fields]]
name = "quantity"
type = "int32"
options = { range = "[0..100)" }

[[messages.fields]]
name = "tags"
type = "repeated string"
options = { distinct = true, pattern = { regex = "[a-z]+" } }

[[messages.fields]]
name = "address"
type = "acme.Address"
options = { validate = true }

[[messages.fields]]
name = "email"
type = "string"

[[messages.fields]]
name = "phone"
type = "string"

[[messages.fields]]
name = "status"
type = "acme.Status"
options = { required = true, set_once = true }

[[messages.fields]]
name = "placed_at"
type = "google.protobuf.Timestamp"
options = { when = { in = "PAST" } }
"""


@pytest.fixture
def compile_toml() -> Callable[..., tuple[Schema, ValidationTable]]:
    """Compile a schema given as TOML text."""

    def _compile(text: str, config: ValidationConfig | None = None) -> tuple[Schema, ValidationTable]:
        schema = parse_schema(tomllib.loads(text))
        return schema, compile_schema(schema.registry, schema.options, config)

    return _compile


@pytest.fixture
def order_schema(compile_toml) -> tuple[Schema, ValidationTable]:
    """The sample order schema, compiled."""
    return compile_toml(ORDER_SCHEMA)


@pytest.fixture
def order_schema_path(tmp_path: Path) -> Path:
    """The sample order schema written to a file."""
    path = tmp_path / "order.toml"
    path.write_text(ORDER_SCHEMA, encoding="utf-8")
    return path

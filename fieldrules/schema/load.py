from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..constraints.options import OptionDiscovered
from ..errors import SchemaError, UnknownType
from .types import PRIMITIVE_TYPES, Cardinality, EnumType, FieldDescriptor, MessageType, TypeRegistry

_MAP_TYPE = re.compile(r"map\s*<\s*([\w.]+)\s*,\s*([\w.]+)\s*>")
_REPEATED = re.compile(r"repeated\s+([\w.]+)")

# Map keys are restricted to integral and string tags.
_MAP_KEY_TYPES = PRIMITIVE_TYPES - {"double", "float", "bytes"}


@dataclass
class Schema:
    """Types declared by a schema file and the options found on them."""

    registry: TypeRegistry
    options: list[OptionDiscovered] = field(default_factory=list)


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _name(raw: dict[str, Any], what: str) -> str:
    name = str(raw.get("name", "")).strip()
    if not name:
        raise SchemaError(f"{what} without a name")
    return name


def _split_type(type_text: str, owner: str, field_name: str) -> tuple[str, Cardinality, str | None]:
    text = type_text.strip()
    m = _MAP_TYPE.fullmatch(text)
    if m:
        key = m.group(1)
        if key not in _MAP_KEY_TYPES:
            raise SchemaError(
                f"Map key type `{key}` is not allowed for `{owner}.{field_name}`",
                type_name=owner,
                field_name=field_name,
            )
        return m.group(2), "map", key
    m = _REPEATED.fullmatch(text)
    if m:
        return m.group(1), "list", None
    if not text or " " in text:
        raise SchemaError(f"Invalid field type `{type_text}` of `{owner}.{field_name}`", type_name=owner, field_name=field_name)
    return text, "singular", None


def _build_message(raw: dict[str, Any], registry: TypeRegistry, found: list[OptionDiscovered]) -> MessageType:
    name = _name(raw, "Message")
    marker = raw.get("marker")
    marker_str = str(marker).strip().lower() if isinstance(marker, str) and marker.strip() else None

    fields: list[FieldDescriptor] = []
    seen: set[str] = set()
    for index, raw_field in enumerate(raw.get("fields", [])):
        if not isinstance(raw_field, dict):
            raise SchemaError(f"Fields of `{name}` must be tables", type_name=name)
        field_name = _name(raw_field, f"A field of `{name}`")
        if field_name in seen:
            raise SchemaError(f"Duplicate field `{field_name}` in `{name}`", type_name=name, field_name=field_name)
        seen.add(field_name)

        kind, cardinality, map_key = _split_type(str(raw_field.get("type", "")), name, field_name)
        category = registry.category_of(kind)
        if category is None:
            raise UnknownType(
                f"The field `{name}.{field_name}` refers to the unknown type `{kind}`",
                type_name=name,
                field_name=field_name,
            )
        fields.append(
            FieldDescriptor(
                declaring_type=name,
                name=field_name,
                kind=kind,
                category=category,
                cardinality=cardinality,
                map_key=map_key,
                index=index,
            )
        )
        for option_name, payload in _coerce_dict(raw_field.get("options")).items():
            found.append(OptionDiscovered(option_name, payload, name, field_name))

    expression = raw.get("required_field")
    if isinstance(expression, (str, dict)):
        found.append(OptionDiscovered("required_field", expression, name))
    for option_name, payload in _coerce_dict(raw.get("options")).items():
        found.append(OptionDiscovered(option_name, payload, name))

    return MessageType(name=name, fields=tuple(fields), marker=marker_str)


def parse_schema(data: dict[str, Any]) -> Schema:
    """Build a ``Schema`` from already parsed TOML data."""
    registry = TypeRegistry()

    for raw in data.get("enums", []):
        if not isinstance(raw, dict):
            continue
        name = _name(raw, "Enum")
        values = {str(k): int(v) for k, v in _coerce_dict(raw.get("values")).items()}
        if 0 not in values.values():
            raise SchemaError(f"Enum `{name}` must declare a value numbered 0", type_name=name)
        registry.add_enum(EnumType(name=name, values=values))

    raw_messages = [m for m in data.get("messages", []) if isinstance(m, dict)]
    # Placeholders first, so fields can refer to types declared later.
    for raw in raw_messages:
        name = _name(raw, "Message")
        if name in registry.messages or name in registry.enums:
            raise SchemaError(f"Type `{name}` is declared more than once", type_name=name)
        registry.add_message(MessageType(name=name))

    found: list[OptionDiscovered] = []
    for raw in raw_messages:
        registry.add_message(_build_message(raw, registry, found))

    return Schema(registry=registry, options=found)


def load_schema(path: Path) -> Schema:
    """Load message and enum declarations with their options from TOML."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise SchemaError(f"Failed to parse schema TOML {path}: {e}") from e
    return parse_schema(data)

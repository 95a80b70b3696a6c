"""
Conversion of plain record data (parsed YAML or JSON) into values.

Fields equal to their default are left out of the resulting ``MessageRef``,
so an all-default nested message becomes the empty (unset) message.
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import RecordError
from .schema.types import INTEGER_LIMITS, TIMESTAMP_TYPE, FieldDescriptor, TypeRegistry
from .values import (
    BoolValue,
    BytesValue,
    DoubleValue,
    EnumRef,
    IntValue,
    ListValue,
    MapValue,
    MessageRef,
    StringValue,
    Value,
    datetime_parts,
    is_default,
)

_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?([Zz]|[+\-]\d{2}:\d{2})"
)


def load_record(path: Path) -> dict[str, Any]:
    """Read a record from a YAML or JSON file."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise RecordError(f"Failed to parse record {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RecordError(f"Record {path} must be a mapping, got {type(data).__name__}")
    return data


def _fail(field: FieldDescriptor, raw: Any, expected: str) -> RecordError:
    return RecordError(f"`{field.qualified_name}` expects {expected}, got {raw!r}")


def _timestamp(field: FieldDescriptor, raw: Any) -> MessageRef:
    if isinstance(raw, datetime):
        seconds, nanos = datetime_parts(raw)
    else:
        m = _RFC3339.fullmatch(raw.strip())
        if m is None:
            raise _fail(field, raw, "an RFC 3339 timestamp")
        zone = "+00:00" if m.group(3) in ("Z", "z") else m.group(3)
        try:
            moment = datetime.fromisoformat(m.group(1).replace("t", "T").replace(" ", "T") + zone)
        except ValueError as e:
            raise _fail(field, raw, "an RFC 3339 timestamp") from e
        seconds, _ = datetime_parts(moment)
        nanos = int((m.group(2) or "0").ljust(9, "0"))
    parts = tuple((k, IntValue(v)) for k, v in (("seconds", seconds), ("nanos", nanos)) if v)
    return MessageRef(TIMESTAMP_TYPE, parts)


def _scalar(field: FieldDescriptor, kind: str, raw: Any) -> Value:
    if kind == "bool":
        if not isinstance(raw, bool):
            raise _fail(field, raw, "a boolean")
        return BoolValue(raw)
    if kind == "string":
        if not isinstance(raw, str):
            raise _fail(field, raw, "a string")
        return StringValue(raw)
    if kind == "bytes":
        if isinstance(raw, bytes):
            return BytesValue(raw)
        if not isinstance(raw, str):
            raise _fail(field, raw, "base64 text")
        try:
            return BytesValue(base64.b64decode(raw, validate=True))
        except binascii.Error as e:
            raise _fail(field, raw, "base64 text") from e
    if kind in ("double", "float"):
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise _fail(field, raw, "a number")
        try:
            return DoubleValue(float(raw))
        except OverflowError as e:
            raise _fail(field, raw, "a number within the double range") from e
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise _fail(field, raw, f"an integer ({kind})")
    low, high = INTEGER_LIMITS[kind]
    if not low <= raw <= high:
        raise _fail(field, raw, f"an integer within the {kind} range")
    return IntValue(raw)


def _element(field: FieldDescriptor, raw: Any, registry: TypeRegistry) -> Value:
    if field.is_enum:
        enum = registry.enum(field.kind)
        if enum is None:
            raise RecordError(f"Unknown enum type `{field.kind}`")
        if isinstance(raw, str):
            number = enum.number_of(raw)
            if number is None:
                raise _fail(field, raw, f"a value of `{enum.name}`")
            return EnumRef(enum.name, number)
        if isinstance(raw, int) and not isinstance(raw, bool) and enum.name_of(raw) is not None:
            return EnumRef(enum.name, raw)
        raise _fail(field, raw, f"a value of `{enum.name}`")

    if field.is_message:
        if field.kind == TIMESTAMP_TYPE and isinstance(raw, (str, datetime)):
            return _timestamp(field, raw)
        if not isinstance(raw, dict):
            raise _fail(field, raw, f"a `{field.kind}` mapping")
        return to_value(raw, field.kind, registry)

    return _scalar(field, field.kind, raw)


def _map_key(field: FieldDescriptor, raw: Any) -> Value:
    key_type = field.map_key or "string"
    if key_type == "string":
        return StringValue(str(raw))
    if key_type == "bool":
        if isinstance(raw, str) and raw in ("true", "false"):
            return BoolValue(raw == "true")
        return _scalar(field, key_type, raw)
    if isinstance(raw, str):
        try:
            raw = int(raw)
        except ValueError as e:
            raise _fail(field, raw, f"a {key_type} map key") from e
    return _scalar(field, key_type, raw)


def _field_value(field: FieldDescriptor, raw: Any, registry: TypeRegistry) -> Value:
    if field.is_list:
        if not isinstance(raw, list):
            raise _fail(field, raw, "a list")
        return ListValue(tuple(_element(field, item, registry) for item in raw))
    if field.is_map:
        if not isinstance(raw, dict):
            raise _fail(field, raw, "a mapping")
        return MapValue(tuple((_map_key(field, k), _element(field, v, registry)) for k, v in raw.items()))
    return _element(field, raw, registry)


def to_value(data: dict[str, Any], type_name: str, registry: TypeRegistry) -> MessageRef:
    """Convert a mapping into a ``MessageRef`` of ``type_name``."""
    message = registry.message(type_name)
    if message is None:
        raise RecordError(f"Unknown message type `{type_name}`")
    if not isinstance(data, dict):
        raise RecordError(f"`{type_name}` expects a mapping, got {data!r}")

    unknown = sorted(set(map(str, data)) - {f.name for f in message.fields})
    if unknown:
        raise RecordError(f"Unknown fields for `{type_name}`: {', '.join(unknown)}")

    present: list[tuple[str, Value]] = []
    for field in message.fields:
        raw = data.get(field.name)
        if raw is None:
            continue
        value = _field_value(field, raw, registry)
        if not is_default(value):
            present.append((field.name, value))
    return MessageRef(type_name, tuple(present))

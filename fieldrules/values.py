"""
Canonical representation of field values.

Values are independent of any host type system: a record is converted into a
``MessageRef`` right before validation and dropped afterwards. Every value is
immutable and hashable.
"""

from __future__ import annotations

import base64
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, Union

from .errors import IncomparableKinds
from .schema.types import FLOAT_TYPES, TIMESTAMP_TYPE, FieldDescriptor


@dataclass(frozen=True)
class NullValue:
    pass


NULL = NullValue()


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class DoubleValue:
    value: float


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class BytesValue:
    value: bytes


@dataclass(frozen=True)
class EnumRef:
    type: str
    number: int


@dataclass(frozen=True, eq=False)
class MessageRef:
    """A message value.

    Only fields holding a non-default value are stored, so an empty ``fields``
    tuple is the default (unset) message of ``type``.
    """

    type: str
    fields: tuple[tuple[str, "Value"], ...] = ()

    def get(self, name: str) -> "Value | None":
        for key, value in self.fields:
            if key == name:
                return value
        return None

    def value_of(self, field: FieldDescriptor) -> "Value":
        found = self.get(field.name)
        return found if found is not None else default_value(field)

    def as_dict(self) -> dict[str, "Value"]:
        return dict(self.fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MessageRef):
            return NotImplemented
        return self.type == other.type and self.as_dict() == other.as_dict()

    def __hash__(self) -> int:
        return hash((self.type, frozenset(self.fields)))


@dataclass(frozen=True)
class ListValue:
    items: tuple["Value", ...] = ()

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True, eq=False)
class MapValue:
    """Map entries in insertion order; equality ignores the order."""

    entries: tuple[tuple["Value", "Value"], ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MapValue):
            return NotImplemented
        return dict(self.entries) == dict(other.entries)

    def __hash__(self) -> int:
        return hash(frozenset(self.entries))


Value = Union[
    NullValue,
    BoolValue,
    IntValue,
    DoubleValue,
    StringValue,
    BytesValue,
    EnumRef,
    MessageRef,
    ListValue,
    MapValue,
]

_NUMERIC = (IntValue, DoubleValue)


def is_default(value: Value) -> bool:
    """Tell if ``value`` is the zero value of its kind."""
    if isinstance(value, NullValue):
        return True
    if isinstance(value, (BoolValue, IntValue, DoubleValue, StringValue, BytesValue)):
        return not value.value
    if isinstance(value, EnumRef):
        return value.number == 0
    if isinstance(value, MessageRef):
        return all(is_default(v) for _, v in value.fields)
    if isinstance(value, ListValue):
        return not value.items
    if isinstance(value, MapValue):
        return not value.entries
    raise TypeError(f"Not a value: {value!r}")


def is_numeric(value: Value) -> bool:
    return isinstance(value, _NUMERIC)


def _is_nan(value: Value) -> bool:
    return isinstance(value, DoubleValue) and math.isnan(value.value)


def compare(left: Value, right: Value) -> int:
    """Order two numeric values, returning -1, 0 or 1.

    NaN has no order and raises ``IncomparableKinds`` like a non-numeric kind.
    """
    if not (isinstance(left, _NUMERIC) and isinstance(right, _NUMERIC)):
        raise IncomparableKinds(
            f"Cannot compare {type(left).__name__} with {type(right).__name__}."
        )
    if _is_nan(left) or _is_nan(right):
        raise IncomparableKinds("Cannot order NaN.")
    a, b = left.value, right.value
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def values_equal(left: Value, right: Value) -> bool:
    """Structural equality, with ``1 == 1.0`` across numeric kinds."""
    if is_numeric(left) and is_numeric(right):
        if _is_nan(left) or _is_nan(right):
            return _is_nan(left) and _is_nan(right)
        return compare(left, right) == 0
    return left == right


def _singular_default(field: FieldDescriptor) -> Value:
    if field.is_message:
        return MessageRef(field.kind)
    if field.is_enum:
        return EnumRef(field.kind, 0)
    if field.kind in FLOAT_TYPES:
        return DoubleValue(0.0)
    if field.kind == "bool":
        return BoolValue(False)
    if field.kind == "string":
        return StringValue("")
    if field.kind == "bytes":
        return BytesValue(b"")
    return IntValue(0)


def default_value(field: FieldDescriptor) -> Value:
    """Obtain the value a field has when nothing was assigned to it."""
    if field.is_list:
        return ListValue()
    if field.is_map:
        return MapValue()
    return _singular_default(field)


def unset_sentinel(field: FieldDescriptor) -> Value | None:
    """
    Obtain the value that marks ``field`` as not set.

    Numbers and booleans have no such value: an explicit ``0`` or ``false``
    cannot be told apart from an unassigned field, so ``None`` is returned.
    """
    if field.is_collection:
        return default_value(field)
    if field.is_message or field.is_enum or field.kind in ("string", "bytes"):
        return _singular_default(field)
    return None


def to_python(value: Value) -> Any:
    """Render a value as plain data for messages and JSON output."""
    if isinstance(value, NullValue):
        return None
    if isinstance(value, BytesValue):
        return base64.b64encode(value.value).decode("ascii")
    if isinstance(value, (BoolValue, IntValue, DoubleValue, StringValue)):
        return value.value
    if isinstance(value, EnumRef):
        return value.number
    if isinstance(value, MessageRef):
        return {k: to_python(v) for k, v in value.fields}
    if isinstance(value, ListValue):
        return [to_python(v) for v in value.items]
    if isinstance(value, MapValue):
        return {str(to_python(k)): to_python(v) for k, v in value.entries}
    raise TypeError(f"Not a value: {value!r}")


def to_text(value: Value) -> str:
    """Short text form used when substituting ``${field.value}``."""
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, BoolValue):
        return "true" if value.value else "false"
    if isinstance(value, (IntValue, DoubleValue)):
        return str(value.value)
    if isinstance(value, EnumRef):
        return f"{value.type}#{value.number}"
    if isinstance(value, MessageRef):
        inner = ", ".join(f"{k}: {to_text(v)}" for k, v in value.fields)
        return f"{value.type}{{{inner}}}"
    if isinstance(value, ListValue):
        return "[" + ", ".join(to_text(v) for v in value.items) + "]"
    if isinstance(value, MapValue):
        return "{" + ", ".join(f"{to_text(k)}: {to_text(v)}" for k, v in value.entries) + "}"
    return str(to_python(value))


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timestamp_parts(value: MessageRef) -> tuple[int, int]:
    """Seconds and nanos of a ``google.protobuf.Timestamp`` message value."""
    if value.type != TIMESTAMP_TYPE:
        raise TypeError(f"Not a timestamp: {value.type}")
    seconds = value.get("seconds")
    nanos = value.get("nanos")
    return (
        seconds.value if isinstance(seconds, IntValue) else 0,
        nanos.value if isinstance(nanos, IntValue) else 0,
    )


def datetime_parts(moment: datetime) -> tuple[int, int]:
    """Seconds and nanos since the epoch; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return seconds, delta.microseconds * 1000


def format_timestamp(value: MessageRef) -> str:
    """RFC 3339 text of a timestamp value, e.g. ``2024-05-01T10:00:00Z``."""
    seconds, nanos = timestamp_parts(value)
    try:
        moment = _EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return to_text(value)
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if nanos:
        text += f".{nanos:09d}".rstrip("0")
    return text + "Z"

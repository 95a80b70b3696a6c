"""Parsing of numeric bounds for the ``(min)``, ``(max)`` and ``(range)`` options."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from ..errors import InvalidBound
from ..schema.types import INTEGER_LIMITS, FieldDescriptor, MessageType
from ..values import DoubleValue, IntValue, Value, compare
from .rules import FieldReference

# Groups: opening bracket, lower bound, upper bound, closing bracket.
# Examples: `[0..1]`, `( -17.3 .. +146.0 ]`, `[+1..+100)`.
NUMBER_RANGE = re.compile(r"([\[(])\s*([+\-]?[\d.]+)\s*\.\.\s*([+\-]?[\d.]+)\s*([\])])")

INTEGER = re.compile(r"[+\-]?\d+")
FLOAT = re.compile(r"[+\-]?(\d+\.\d*|\.\d+)([eE][+\-]?\d+)?")
FIELD_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_FLOAT_MAX = 3.4028234663852886e38


@dataclass(frozen=True)
class NumericBound:
    value: Value | FieldReference
    exclusive: bool
    text: str


@dataclass(frozen=True)
class RangeNotation:
    lower: NumericBound
    upper: NumericBound
    text: str


def _fail(option: str, field: FieldDescriptor, reason: str, value: str | None = None) -> InvalidBound:
    shown = f" Value: `{value}`." if value is not None else ""
    return InvalidBound(
        f"The `({option})` option could not parse the passed bound value.{shown}"
        f" Target field: `{field.qualified_name}`. Field type: `{field.kind}`. Reason: {reason}.",
        option=option,
        type_name=field.declaring_type,
        field_name=field.name,
    )


def parse_number(text: str, field: FieldDescriptor, option: str) -> Value:
    """Parse a numeric literal for the type of ``field``."""
    number = text.strip()
    if field.is_floating:
        if not FLOAT.fullmatch(number):
            raise _fail(option, field, "a floating-point number is required for this field type", number)
        parsed = float(number)
        limit = _FLOAT_MAX if field.kind == "float" else math.inf
        if not math.isfinite(parsed) or abs(parsed) > limit:
            raise _fail(option, field, "the value is out of range for this field type", number)
        return DoubleValue(parsed)

    if not INTEGER.fullmatch(number):
        raise _fail(option, field, "an integer number is required for this field type", number)
    parsed_int = int(number)
    low, high = INTEGER_LIMITS[field.kind]
    if not low <= parsed_int <= high:
        raise _fail(option, field, "the value is out of range for this field type", number)
    return IntValue(parsed_int)


def parse_bound(
    text: str,
    field: FieldDescriptor,
    message: MessageType,
    option: str,
    *,
    exclusive: bool = False,
) -> NumericBound:
    """Parse a bound given either as a number or as the name of a sibling field."""
    raw = str(text).strip()
    if not raw:
        raise _fail(option, field, "the value is empty")

    if not FIELD_NAME.fullmatch(raw):
        return NumericBound(parse_number(raw, field, option), exclusive, raw)

    if raw == field.name:
        raise InvalidBound(
            f"The `({option})` option cannot use the field `{field.qualified_name}` as its own bound.",
            option=option,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    other = message.field(raw)
    if other is None:
        raise _fail(option, field, f"the field `{raw}` is not declared in `{message.name}`", raw)
    if not other.is_numeric or other.is_collection:
        raise _fail(option, field, f"the bound field `{other.qualified_name}` must be a singular number", raw)
    return NumericBound(FieldReference(other), exclusive, raw)


def parse_range(text: str, field: FieldDescriptor, option: str = "range") -> RangeNotation:
    """Parse range notation such as ``[0..100)``."""
    notation = str(text).strip()
    match = NUMBER_RANGE.fullmatch(notation)
    if match is None:
        raise _fail(option, field, "invalid range notation, expected e.g. `[0..100)`", notation)

    lower = parse_number(match.group(2), field, option)
    upper = parse_number(match.group(3), field, option)
    if compare(lower, upper) >= 0:
        raise InvalidBound(
            f"The `({option})` option of the `{field.qualified_name}` field has the lower bound"
            f" `{match.group(2)}` that is not less than the upper `{match.group(3)}`.",
            option=option,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    return RangeNotation(
        lower=NumericBound(lower, match.group(1) == "(", match.group(2)),
        upper=NumericBound(upper, match.group(4) == ")", match.group(3)),
        text=notation,
    )

"""
Default error message templates and the placeholders each option supports.

A custom ``error_msg`` may only reference the placeholders listed for its
option; anything else is reported while compiling.
"""

from __future__ import annotations

from ..errors import UnsupportedPlaceholder
from ..report import check_placeholders
from .options import OptionKind

FIELD_PATH = "field.path"
FIELD_VALUE = "field.value"
FIELD_TYPE = "field.type"
PARENT_TYPE = "parent.type"
REGEX_PATTERN = "regex.pattern"
REGEX_MODIFIERS = "regex.modifiers"
GOES_COMPANION = "goes.companion"
FIELD_PROPOSED_VALUE = "field.proposed_value"
FIELD_DUPLICATES = "field.duplicates"
RANGE_VALUE = "range.value"
MAX_VALUE = "max.value"
MAX_OPERATOR = "max.operator"
MIN_VALUE = "min.value"
MIN_OPERATOR = "min.operator"
WHEN_IN = "when.in"
REQUIRE_FIELDS = "require.fields"

_COMMON = (FIELD_PATH, FIELD_VALUE, FIELD_TYPE, PARENT_TYPE)

SUPPORTED_PLACEHOLDERS: dict[OptionKind, frozenset[str]] = {
    OptionKind.REQUIRED: frozenset({FIELD_PATH, FIELD_TYPE, PARENT_TYPE}),
    OptionKind.IF_MISSING: frozenset({FIELD_PATH, FIELD_TYPE, PARENT_TYPE}),
    OptionKind.RANGE: frozenset({*_COMMON, RANGE_VALUE}),
    OptionKind.MIN: frozenset({*_COMMON, MIN_VALUE, MIN_OPERATOR}),
    OptionKind.MAX: frozenset({*_COMMON, MAX_VALUE, MAX_OPERATOR}),
    OptionKind.PATTERN: frozenset({*_COMMON, REGEX_PATTERN, REGEX_MODIFIERS}),
    OptionKind.DISTINCT: frozenset({*_COMMON, FIELD_DUPLICATES}),
    OptionKind.VALIDATE: frozenset({*_COMMON}),
    OptionKind.WHEN: frozenset({*_COMMON, WHEN_IN}),
    OptionKind.GOES: frozenset({*_COMMON, GOES_COMPANION}),
    OptionKind.REQUIRED_FIELD: frozenset({PARENT_TYPE, REQUIRE_FIELDS}),
    OptionKind.SET_ONCE: frozenset({*_COMMON, FIELD_PROPOSED_VALUE}),
    OptionKind.IF_INVALID: frozenset(),
}

REQUIRED = "The field `${parent.type}.${field.path}` of the type `${field.type}` must have a value."

ID_REQUIRED = (
    "The ID field `${parent.type}.${field.path}`"
    " of the type `${field.type}` must have a non-default value."
)

RANGE = (
    "The field `${parent.type}.${field.path}` must be within the range `${range.value}`."
    " The passed value: `${field.value}`."
)

MIN = (
    "The field `${parent.type}.${field.path}` must be ${min.operator} `${min.value}`."
    " The passed value: `${field.value}`."
)

MAX = (
    "The field `${parent.type}.${field.path}` must be ${max.operator} `${max.value}`."
    " The passed value: `${field.value}`."
)

PATTERN = (
    "The `${parent.type}.${field.path}` field must match the regular expression"
    " `${regex.pattern}` (modifiers: `${regex.modifiers}`). The passed value: `${field.value}`."
)

DISTINCT = (
    "The field `${parent.type}.${field.path}` must not contain duplicates."
    " The duplicates found: `${field.duplicates}`."
)

VALIDATE = "The message field `${parent.type}.${field.path}` is invalid."

WHEN = (
    "The field `${parent.type}.${field.path}` must be in the ${when.in}."
    " The passed value: `${field.value}`."
)

GOES = "The field `${goes.companion}` must also be set when `${field.path}` is set in `${parent.type}`."

REQUIRE_FIELD = (
    "The message `${parent.type}` must have at least one of the following field"
    " combinations set: `${require.fields}`."
)

REQUIRE_FIELD_MEMBER = "The field `${parent.type}.${field.path}` must be set."

SET_ONCE = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` already has"
    " the value `${field.value}` and cannot be reassigned to `${field.proposed_value}`."
)

OPERATOR_WORDS = {
    "greater": "greater than",
    "greater_or_equal": "greater than or equal to",
    "less": "less than",
    "less_or_equal": "less than or equal to",
}


def escape_line_separators(text: str) -> str:
    """Keep a pattern on a single line when embedding it into a message."""
    return text.replace("\\", "\\\\").replace("\r", "\\r").replace("\n", "\\n")


def checked_template(
    custom: str | None,
    default: str,
    kind: OptionKind,
    *,
    type_name: str,
    field_name: str | None = None,
) -> str:
    """Pick the custom template if given, after checking its placeholders."""
    if custom is None:
        return default
    supported = SUPPORTED_PLACEHOLDERS[kind]
    missing = check_placeholders(custom, supported)
    if missing:
        subject = f"`{type_name}.{field_name}` field" if field_name else f"`{type_name}` message"
        raise UnsupportedPlaceholder(
            f"The {subject} specifies an error message for the `({kind.value})` option using"
            f" unsupported placeholders: `{missing}`. Supported placeholders are the following:"
            f" `{sorted(supported)}`.",
            option=kind.value,
            type_name=type_name,
            field_name=field_name,
        )
    return custom

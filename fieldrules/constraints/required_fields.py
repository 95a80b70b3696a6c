"""
Grammar of message-level required-field expressions.

    expr  := group ('|' group)*
    group := name ('&' name)*

``&`` binds tighter than ``|``; there are no parentheses. An expression is
satisfied when all fields of at least one group are set.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import MalformedExpression

GROUPS_DELIMITER = "|"
FIELDS_DELIMITER = "&"

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class FieldGroup:
    fields: tuple[str, ...]
    definition: str


@dataclass(frozen=True)
class RequiredFieldExpression:
    text: str
    groups: tuple[FieldGroup, ...]


def _malformed(text: str, type_name: str, reason: str) -> MalformedExpression:
    return MalformedExpression(
        f"The `(required_field)` expression `{text}` of `{type_name}` is malformed: {reason}.",
        option="required_field",
        type_name=type_name,
    )


def parse_required_fields(text: str, type_name: str) -> RequiredFieldExpression | None:
    """Parse ``text``; a blank expression means no constraint."""
    if not text or not text.strip():
        return None

    groups: list[FieldGroup] = []
    seen: set[frozenset[str]] = set()
    for raw_group in text.split(GROUPS_DELIMITER):
        definition = raw_group.strip()
        names = [n.strip() for n in definition.split(FIELDS_DELIMITER)]
        for name in names:
            if not name:
                raise _malformed(text, type_name, "a field name is missing around an operator")
            if not _NAME.fullmatch(name):
                raise _malformed(text, type_name, f"`{name}` is not a field name")
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise _malformed(
                text, type_name, f"the fields `{duplicates}` appear more than once within `{definition}`"
            )
        key = frozenset(names)
        if key in seen:
            raise _malformed(text, type_name, f"the combination `{definition}` appears more than once")
        seen.add(key)
        groups.append(FieldGroup(tuple(names), definition))

    return RequiredFieldExpression(text=text.strip(), groups=tuple(groups))

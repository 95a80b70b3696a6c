"""Option catalogue and the collection phase of compilation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class OptionKind(str, Enum):
    REQUIRED = "required"
    RANGE = "range"
    MIN = "min"
    MAX = "max"
    PATTERN = "pattern"
    DISTINCT = "distinct"
    VALIDATE = "validate"
    WHEN = "when"
    GOES = "goes"
    REQUIRED_FIELD = "required_field"
    SET_ONCE = "set_once"
    IF_MISSING = "if_missing"
    IF_INVALID = "if_invalid"


CATALOGUE = frozenset(k.value for k in OptionKind)

# Declared on a message type rather than on a field.
MESSAGE_OPTIONS = frozenset({OptionKind.REQUIRED_FIELD})


@dataclass(frozen=True)
class OptionDiscovered:
    """Notification that an option annotates a field or a message type."""

    option_name: str
    payload: Any
    type_name: str
    field_name: str | None = None

    @property
    def kind(self) -> OptionKind | None:
        try:
            return OptionKind(self.option_name)
        except ValueError:
            return None


@dataclass
class TypeOptions:
    """Catalogue options discovered for one type, in discovery order."""

    type_name: str
    options: list[OptionDiscovered] = field(default_factory=list)

    def message_options(self) -> list[OptionDiscovered]:
        return [o for o in self.options if o.field_name is None]

    def field_options(self, field_name: str) -> list[OptionDiscovered]:
        return [o for o in self.options if o.field_name == field_name]

    def find(self, field_name: str, kind: OptionKind) -> list[OptionDiscovered]:
        return [o for o in self.field_options(field_name) if o.kind is kind]

    def field_names(self) -> list[str]:
        names: list[str] = []
        for o in self.options:
            if o.field_name is not None and o.field_name not in names:
                names.append(o.field_name)
        return names


def collect_options(notifications: Iterable[OptionDiscovered]) -> dict[str, TypeOptions]:
    """Group catalogue options per type; other option names are ignored."""
    by_type: dict[str, TypeOptions] = {}
    for event in notifications:
        if event.option_name not in CATALOGUE:
            continue
        bucket = by_type.get(event.type_name)
        if bucket is None:
            bucket = TypeOptions(event.type_name)
            by_type[event.type_name] = bucket
        bucket.options.append(event)
    return by_type


def option_flag(payload: Any) -> bool:
    """Boolean value of a flag option given as ``true`` or ``{value = true}``."""
    if isinstance(payload, dict):
        return bool(payload.get("value", True))
    return bool(payload)


def option_error_msg(payload: Any) -> str | None:
    if isinstance(payload, dict):
        msg = payload.get("error_msg")
        if isinstance(msg, str) and msg.strip():
            return msg
    return None

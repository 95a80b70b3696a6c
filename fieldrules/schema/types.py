"""Type model for validated records: fields, message types and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ..errors import UnknownField, UnknownType

Cardinality = Literal["singular", "list", "map"]
KindCategory = Literal["primitive", "enum", "message"]

INTEGER_TYPES = frozenset(
    {
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
    }
)
FLOAT_TYPES = frozenset({"double", "float"})
NUMERIC_TYPES = INTEGER_TYPES | FLOAT_TYPES
PRIMITIVE_TYPES = NUMERIC_TYPES | {"bool", "string", "bytes"}

# Inclusive value ranges of the integer tags.
INTEGER_LIMITS: dict[str, tuple[int, int]] = {
    "int32": (-(2**31), 2**31 - 1),
    "sint32": (-(2**31), 2**31 - 1),
    "sfixed32": (-(2**31), 2**31 - 1),
    "int64": (-(2**63), 2**63 - 1),
    "sint64": (-(2**63), 2**63 - 1),
    "sfixed64": (-(2**63), 2**63 - 1),
    "uint32": (0, 2**32 - 1),
    "fixed32": (0, 2**32 - 1),
    "uint64": (0, 2**64 - 1),
    "fixed64": (0, 2**64 - 1),
}

TIMESTAMP_TYPE = "google.protobuf.Timestamp"


@dataclass(frozen=True)
class FieldDescriptor:
    """Identifies a field of a message type.

    For map fields ``kind`` describes the map values and ``map_key`` the keys.
    """

    declaring_type: str
    name: str
    kind: str
    category: KindCategory = "primitive"
    cardinality: Cardinality = "singular"
    map_key: str | None = None
    index: int = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type}.{self.name}"

    @property
    def is_list(self) -> bool:
        return self.cardinality == "list"

    @property
    def is_map(self) -> bool:
        return self.cardinality == "map"

    @property
    def is_collection(self) -> bool:
        return self.cardinality != "singular"

    @property
    def is_message(self) -> bool:
        return self.category == "message"

    @property
    def is_enum(self) -> bool:
        return self.category == "enum"

    @property
    def is_numeric(self) -> bool:
        return self.category == "primitive" and self.kind in NUMERIC_TYPES

    @property
    def is_floating(self) -> bool:
        return self.category == "primitive" and self.kind in FLOAT_TYPES

    @property
    def is_string(self) -> bool:
        return self.category == "primitive" and self.kind == "string"

    @property
    def type_label(self) -> str:
        """Human-readable type, as used in error messages."""
        if self.is_list:
            return f"repeated {self.kind}"
        if self.is_map:
            return f"map<{self.map_key}, {self.kind}>"
        return self.kind


@dataclass(frozen=True)
class MessageType:
    """A record type and its fields in declaration order."""

    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    marker: str | None = None

    def field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def require_field(self, name: str, *, option: str | None = None) -> FieldDescriptor:
        found = self.field(name)
        if found is None:
            raise UnknownField(
                f"The field `{name}` is not declared in `{self.name}`.",
                option=option,
                type_name=self.name,
                field_name=name,
            )
        return found

    @property
    def first_field(self) -> FieldDescriptor | None:
        return self.fields[0] if self.fields else None


@dataclass(frozen=True)
class EnumType:
    name: str
    values: dict[str, int] = field(default_factory=dict)

    def number_of(self, value_name: str) -> int | None:
        return self.values.get(value_name)

    def name_of(self, number: int) -> str | None:
        for k, v in self.values.items():
            if v == number:
                return k
        return None


def _timestamp_type() -> MessageType:
    return MessageType(
        name=TIMESTAMP_TYPE,
        fields=(
            FieldDescriptor(TIMESTAMP_TYPE, "seconds", "int64", index=0),
            FieldDescriptor(TIMESTAMP_TYPE, "nanos", "int32", index=1),
        ),
    )


@dataclass
class TypeRegistry:
    """All message and enum types known to a schema."""

    messages: dict[str, MessageType] = field(default_factory=dict)
    enums: dict[str, EnumType] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.messages.setdefault(TIMESTAMP_TYPE, _timestamp_type())

    def add_message(self, message: MessageType) -> None:
        self.messages[message.name] = message

    def add_enum(self, enum: EnumType) -> None:
        self.enums[enum.name] = enum

    def message(self, name: str) -> MessageType | None:
        return self.messages.get(name)

    def enum(self, name: str) -> EnumType | None:
        return self.enums.get(name)

    def require_message(self, name: str, *, option: str | None = None) -> MessageType:
        found = self.messages.get(name)
        if found is None:
            raise UnknownType(f"Unknown message type `{name}`.", option=option, type_name=name)
        return found

    def category_of(self, type_name: str) -> KindCategory | None:
        if type_name in PRIMITIVE_TYPES:
            return "primitive"
        if type_name in self.enums:
            return "enum"
        if type_name in self.messages:
            return "message"
        return None

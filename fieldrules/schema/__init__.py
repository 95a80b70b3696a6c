"""Type model of validated records."""

from .types import EnumType, FieldDescriptor, MessageType, TypeRegistry

__all__ = ["EnumType", "FieldDescriptor", "MessageType", "TypeRegistry"]

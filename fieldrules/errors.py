"""Error types for schema compilation and record conversion.

Validation violations are not errors; see ``fieldrules.report``.
"""

from __future__ import annotations


class SchemaError(ValueError):
    """An option is misapplied or the schema is internally inconsistent.

    Raised once, while compiling rules, never while validating records.
    """

    def __init__(
        self,
        message: str,
        *,
        option: str | None = None,
        type_name: str | None = None,
        field_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.option = option
        self.type_name = type_name
        self.field_name = field_name

    @property
    def subject(self) -> str:
        if self.type_name and self.field_name:
            return f"{self.type_name}.{self.field_name}"
        return self.type_name or self.field_name or ""


class UnsupportedRequired(SchemaError):
    pass


class DistinctOnNonCollection(SchemaError):
    pass


class ValidateOnNonMessage(SchemaError):
    pass


class UnsupportedPattern(SchemaError):
    pass


class InvalidPattern(SchemaError):
    pass


class UnsupportedTimeBound(SchemaError):
    pass


class UnsupportedGoes(SchemaError):
    pass


class SelfReference(SchemaError):
    pass


class MalformedExpression(SchemaError):
    pass


class InvalidBound(SchemaError):
    pass


class UnknownField(SchemaError):
    pass


class UnknownType(SchemaError):
    pass


class UnsupportedPlaceholder(SchemaError):
    pass


class DuplicateCompanion(SchemaError):
    pass


class RecordError(ValueError):
    """Plain record data cannot be converted into a typed value."""


class IncomparableKinds(TypeError):
    """Two values cannot be ordered against each other."""

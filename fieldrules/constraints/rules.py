"""Compiled rule model (rules as data, evaluation as code)."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Union

from ..schema.types import FieldDescriptor
from ..values import Value, to_python


class ComparisonOperator(str, Enum):
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    LESS = "less"
    LESS_OR_EQUAL = "less_or_equal"
    GREATER = "greater"
    GREATER_OR_EQUAL = "greater_or_equal"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def is_ordering(self) -> bool:
        return self not in (ComparisonOperator.EQUAL, ComparisonOperator.NOT_EQUAL)

    def holds(self, ordering: int) -> bool:
        """Tell if the operator is satisfied given ``compare(actual, threshold)``."""
        if self is ComparisonOperator.EQUAL:
            return ordering == 0
        if self is ComparisonOperator.NOT_EQUAL:
            return ordering != 0
        if self is ComparisonOperator.LESS:
            return ordering < 0
        if self is ComparisonOperator.LESS_OR_EQUAL:
            return ordering <= 0
        if self is ComparisonOperator.GREATER:
            return ordering > 0
        return ordering >= 0


_SYMBOLS = {
    ComparisonOperator.EQUAL: "==",
    ComparisonOperator.NOT_EQUAL: "!=",
    ComparisonOperator.LESS: "<",
    ComparisonOperator.LESS_OR_EQUAL: "<=",
    ComparisonOperator.GREATER: ">",
    ComparisonOperator.GREATER_OR_EQUAL: ">=",
}


class LogicalOperator(str, Enum):
    AND = "and"
    OR = "or"


class CustomKind(str, Enum):
    PATTERN = "pattern"
    DISTINCT = "distinct"
    RECURSIVE_VALIDATE = "recursive_validate"
    TIME_BOUND = "time_bound"
    FIELD_CO_OCCURRENCE = "field_co_occurrence"


class TimeBound(str, Enum):
    PAST = "past"  # value must lie before "now"
    FUTURE = "future"  # value must lie after "now"


@dataclass(frozen=True)
class PatternModifiers:
    case_insensitive: bool = False
    multiline: bool = False
    dot_all: bool = False
    unicode: bool = False
    partial_match: bool = False

    @property
    def flags(self) -> int:
        flags = 0
        if self.case_insensitive:
            flags |= re.IGNORECASE
        if self.multiline:
            flags |= re.MULTILINE
        if self.dot_all:
            flags |= re.DOTALL
        if self.unicode:
            flags |= re.UNICODE
        return flags

    def describe(self) -> str:
        enabled = [
            name
            for name in ("case_insensitive", "multiline", "dot_all", "unicode", "partial_match")
            if getattr(self, name)
        ]
        return ", ".join(enabled) if enabled else "none"


@dataclass(frozen=True)
class PatternFeature:
    regex: str
    modifiers: PatternModifiers
    compiled: re.Pattern[str] = field(compare=False, repr=False)

    @classmethod
    def compile(cls, regex: str, modifiers: PatternModifiers) -> "PatternFeature":
        """Compile the regex once; raises ``re.error`` for a bad pattern."""
        return cls(regex=regex, modifiers=modifiers, compiled=re.compile(regex, modifiers.flags))

    def matches(self, text: str) -> bool:
        if self.modifiers.partial_match:
            return self.compiled.search(text) is not None
        return self.compiled.fullmatch(text) is not None


@dataclass(frozen=True)
class DistinctFeature:
    pass


@dataclass(frozen=True)
class RecursiveValidateFeature:
    message_type: str


@dataclass(frozen=True)
class TimeBoundFeature:
    bound: TimeBound


@dataclass(frozen=True)
class FieldCoOccurrenceFeature:
    companion: FieldDescriptor


Feature = Union[
    PatternFeature,
    DistinctFeature,
    RecursiveValidateFeature,
    TimeBoundFeature,
    FieldCoOccurrenceFeature,
]

_FEATURE_KINDS: dict[CustomKind, type] = {
    CustomKind.PATTERN: PatternFeature,
    CustomKind.DISTINCT: DistinctFeature,
    CustomKind.RECURSIVE_VALIDATE: RecursiveValidateFeature,
    CustomKind.TIME_BOUND: TimeBoundFeature,
    CustomKind.FIELD_CO_OCCURRENCE: FieldCoOccurrenceFeature,
}


@dataclass(frozen=True)
class FieldReference:
    """A threshold taken from another field of the same record."""

    field: FieldDescriptor


Placeholders = tuple[tuple[str, str], ...]


def _check_template(template: str) -> None:
    if not template or not template.strip():
        raise ValueError("A rule requires a non-empty error message template")


@dataclass(frozen=True)
class SimpleRule:
    field: FieldDescriptor
    operator: ComparisonOperator
    threshold: Value | FieldReference
    error_template: str
    ignored_if_unset: bool = False
    distribute: bool = False
    placeholders: Placeholders = ()

    def __post_init__(self) -> None:
        _check_template(self.error_template)


@dataclass(frozen=True)
class CompositeRule:
    """Boolean combination of rules.

    ``field`` is set when the combination constrains one field (a range);
    message-level combinations leave it empty.
    """

    operator: LogicalOperator
    operands: tuple["Rule", ...]
    error_template: str
    field: FieldDescriptor | None = None
    distribute: bool = False
    placeholders: Placeholders = ()

    def __post_init__(self) -> None:
        _check_template(self.error_template)
        if not self.operands:
            raise ValueError("A composite rule requires at least one operand")


@dataclass(frozen=True)
class CustomRule:
    field: FieldDescriptor
    kind: CustomKind
    feature: Feature
    error_template: str
    ignored_if_unset: bool = False
    distribute: bool = False
    placeholders: Placeholders = ()

    def __post_init__(self) -> None:
        _check_template(self.error_template)
        expected = _FEATURE_KINDS[self.kind]
        if not isinstance(self.feature, expected):
            raise ValueError(f"{self.kind.value} rule requires {expected.__name__}")


Rule = Union[SimpleRule, CompositeRule, CustomRule]


def describe_rule(rule: Rule) -> str:
    """One-line description used by listings."""
    if isinstance(rule, SimpleRule):
        threshold = rule.threshold
        shown = f"field {threshold.field.name}" if isinstance(threshold, FieldReference) else json.dumps(to_python(threshold))
        return f"{rule.field.name} {rule.operator.symbol} {shown}"
    if isinstance(rule, CompositeRule):
        joined = f" {rule.operator.value.upper()} ".join(f"({describe_rule(r)})" for r in rule.operands)
        return joined
    return f"{rule.field.name}: {rule.kind.value}"


@dataclass(frozen=True)
class SetOnceField:
    field: FieldDescriptor
    error_template: str

    def __post_init__(self) -> None:
        _check_template(self.error_template)


@dataclass(frozen=True)
class MessageValidation:
    """The compiled rules of one message type, in declaration order."""

    type_name: str
    rules: tuple[Rule, ...] = ()
    set_once_fields: tuple[SetOnceField, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rules and not self.set_once_fields


class ValidationTable:
    """Compiled validations of every type in a schema, keyed by type name."""

    def __init__(self, validations: Mapping[str, MessageValidation] | None = None) -> None:
        self._validations = MappingProxyType(dict(validations or {}))

    def get(self, type_name: str) -> MessageValidation | None:
        return self._validations.get(type_name)

    def __getitem__(self, type_name: str) -> MessageValidation:
        return self._validations[type_name]

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._validations

    def __iter__(self) -> Iterator[str]:
        return iter(self._validations)

    def __len__(self) -> int:
        return len(self._validations)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, TypeVar

from ..report import ConstraintViolation
from ..values import (
    ListValue,
    MapValue,
    MessageRef,
    StringValue,
    Value,
    datetime_parts,
    format_timestamp,
    timestamp_parts,
    to_text,
    unset_sentinel,
    values_equal,
)
from . import messages as msg
from .rules import (
    CustomKind,
    CustomRule,
    DistinctFeature,
    FieldCoOccurrenceFeature,
    MessageValidation,
    PatternFeature,
    Placeholders,
    RecursiveValidateFeature,
    TimeBound,
    TimeBoundFeature,
    ValidationTable,
)


_F = TypeVar("_F")


@dataclass(frozen=True)
class EvalContext:
    record: MessageRef
    table: ValidationTable
    now: datetime
    # Validates a nested message; paths of the result are relative to it.
    recurse: Callable[[MessageValidation, MessageRef], list[ConstraintViolation]]


@dataclass(frozen=True)
class Failure:
    """A failed check, with what it adds to the violation."""

    placeholders: Placeholders = ()
    nested: tuple[ConstraintViolation, ...] = ()


EvaluatorFn = Callable[[EvalContext, CustomRule, Value], "Failure | None"]


def _feature(rule: CustomRule, cls: type[_F]) -> _F:
    if not isinstance(rule.feature, cls):
        raise TypeError(f"A `{rule.kind.value}` rule requires a {cls.__name__}, got {type(rule.feature).__name__}.")
    return rule.feature


def evaluate_pattern(ctx: EvalContext, rule: CustomRule, value: Value) -> Failure | None:
    feature = _feature(rule, PatternFeature)
    if isinstance(value, StringValue) and feature.matches(value.value):
        return None
    return Failure()


def _duplicates(items: tuple[Value, ...]) -> list[Value]:
    seen: set[Value] = set()
    found: list[Value] = []
    for item in items:
        if item in seen:
            if item not in found:
                found.append(item)
        else:
            seen.add(item)
    return found


def evaluate_distinct(ctx: EvalContext, rule: CustomRule, value: Value) -> Failure | None:
    _feature(rule, DistinctFeature)
    if isinstance(value, ListValue):
        items = value.items
    elif isinstance(value, MapValue):
        items = tuple(v for _, v in value.entries)
    else:
        return None
    duplicates = _duplicates(items)
    if not duplicates:
        return None
    return Failure(placeholders=((msg.FIELD_DUPLICATES, to_text(ListValue(tuple(duplicates)))),))


def evaluate_recursive(ctx: EvalContext, rule: CustomRule, value: Value) -> Failure | None:
    _feature(rule, RecursiveValidateFeature)
    if not isinstance(value, MessageRef):
        return None
    validation = ctx.table.get(value.type)
    if validation is None or not validation.rules:
        return None
    children = ctx.recurse(validation, value)
    if not children:
        return None
    return Failure(nested=tuple(children))


def evaluate_time_bound(ctx: EvalContext, rule: CustomRule, value: Value) -> Failure | None:
    feature = _feature(rule, TimeBoundFeature)
    if not isinstance(value, MessageRef):
        return None
    moment = timestamp_parts(value)
    now = datetime_parts(ctx.now)
    if feature.bound is TimeBound.PAST:
        holds = moment < now
    else:
        holds = moment > now
    if holds:
        return None
    return Failure(placeholders=((msg.FIELD_VALUE, format_timestamp(value)),))


def evaluate_co_occurrence(ctx: EvalContext, rule: CustomRule, value: Value) -> Failure | None:
    feature = _feature(rule, FieldCoOccurrenceFeature)
    companion = feature.companion
    sentinel = unset_sentinel(companion)
    if sentinel is None or not values_equal(ctx.record.value_of(companion), sentinel):
        return None
    return Failure()


EVALUATORS: dict[CustomKind, EvaluatorFn] = {
    CustomKind.PATTERN: evaluate_pattern,
    CustomKind.DISTINCT: evaluate_distinct,
    CustomKind.RECURSIVE_VALIDATE: evaluate_recursive,
    CustomKind.TIME_BOUND: evaluate_time_bound,
    CustomKind.FIELD_CO_OCCURRENCE: evaluate_co_occurrence,
}

_missing = set(CustomKind) - set(EVALUATORS)
if _missing:
    raise RuntimeError(f"Custom kinds without an evaluator: {sorted(k.value for k in _missing)}")

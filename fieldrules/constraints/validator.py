"""
Runtime evaluation of compiled rules against records.

Evaluation is pure: it reads the record, never mutates it, and returns fresh
violations. Data problems are reported as violations, not raised.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterator

from ..errors import IncomparableKinds
from ..report import ConstraintViolation, ValidationError, ValidationFailed
from ..values import ListValue, MapValue, MessageRef, Value, compare, is_default, to_text, values_equal
from . import messages as msg
from .evaluators import EVALUATORS, EvalContext, Failure
from .rules import (
    ComparisonOperator,
    CompositeRule,
    CustomRule,
    FieldReference,
    LogicalOperator,
    MessageValidation,
    Rule,
    SimpleRule,
    ValidationTable,
)
from .transition import check_transition

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _elements(name: str, value: Value) -> Iterator[tuple[str, Value]]:
    """Path segments and values of the elements of a collection."""
    if isinstance(value, ListValue):
        for i, item in enumerate(value.items):
            yield f"{name}[{i}]", item
    elif isinstance(value, MapValue):
        for key, item in value.entries:
            yield f"{name}[{to_text(key)}]", item


def _check_simple(ctx: EvalContext, rule: SimpleRule, value: Value) -> Failure | None:
    threshold = rule.threshold
    if isinstance(threshold, FieldReference):
        threshold = ctx.record.value_of(threshold.field)

    if rule.operator is ComparisonOperator.EQUAL:
        holds = values_equal(value, threshold)
    elif rule.operator is ComparisonOperator.NOT_EQUAL:
        holds = not values_equal(value, threshold)
    else:
        try:
            holds = rule.operator.holds(compare(value, threshold))
        except IncomparableKinds:
            holds = False
    return None if holds else Failure()


def _operand_value(ctx: EvalContext, composite: CompositeRule, operand: Rule, value: Value) -> Value:
    # Field composites pass the value under test down; message-level ones
    # let every operand read its own field.
    if composite.field is not None:
        return value
    if isinstance(operand, CompositeRule) and operand.field is None:
        return ctx.record
    return ctx.record.value_of(operand.field)  # type: ignore[arg-type]


def _check_composite(ctx: EvalContext, rule: CompositeRule, value: Value) -> Failure | None:
    for operand in rule.operands:
        failed = _check(ctx, operand, _operand_value(ctx, rule, operand, value)) is not None
        if rule.operator is LogicalOperator.AND and failed:
            return Failure()
        if rule.operator is LogicalOperator.OR and not failed:
            return None
    return Failure() if rule.operator is LogicalOperator.OR else None


def _check(ctx: EvalContext, rule: Rule, value: Value) -> Failure | None:
    if isinstance(rule, SimpleRule):
        return _check_simple(ctx, rule, value)
    if isinstance(rule, CompositeRule):
        return _check_composite(ctx, rule, value)
    return EVALUATORS[rule.kind](ctx, rule, value)


def _violation(
    rule: Rule,
    type_name: str,
    path: tuple[str, ...],
    value: Value | None,
    failure: Failure,
) -> ConstraintViolation:
    placeholders = {msg.PARENT_TYPE: type_name}
    if rule.field is not None:
        placeholders[msg.FIELD_PATH] = ".".join(path)
        placeholders[msg.FIELD_TYPE] = rule.field.type_label
    if value is not None:
        placeholders[msg.FIELD_VALUE] = to_text(value)
    placeholders.update(rule.placeholders)
    placeholders.update(failure.placeholders)
    return ConstraintViolation(
        type_name=type_name,
        field_path=path,
        template=rule.error_template,
        placeholders=placeholders,
        field_value=value,
        nested=failure.nested,
    )


def _evaluate_rule(
    ctx: EvalContext,
    rule: Rule,
    type_name: str,
    parent_path: tuple[str, ...],
) -> list[ConstraintViolation]:
    field = rule.field
    if field is None:
        failure = _check(ctx, rule, ctx.record)
        return [] if failure is None else [_violation(rule, type_name, parent_path, None, failure)]

    value = ctx.record.value_of(field)
    if isinstance(rule, (SimpleRule, CustomRule)) and rule.ignored_if_unset and is_default(value):
        return []

    if rule.distribute and field.is_collection:
        found: list[ConstraintViolation] = []
        for segment, element in _elements(field.name, value):
            failure = _check(ctx, rule, element)
            if failure is not None:
                found.append(_violation(rule, type_name, parent_path + (segment,), element, failure))
        return found

    failure = _check(ctx, rule, value)
    if failure is None:
        return []
    return [_violation(rule, type_name, parent_path + (field.name,), value, failure)]


def validate(
    validation: MessageValidation,
    record: MessageRef,
    table: ValidationTable,
    parent_path: tuple[str, ...] = (),
    now: datetime | None = None,
) -> list[ConstraintViolation]:
    """Evaluate every rule of ``validation`` against ``record``.

    Violations follow the rule declaration order, then the element order of
    distributed rules. Violations of nested messages are attached to the
    violation of the field holding them, with paths relative to the nested
    message.
    """
    moment = now or _utc_now()

    def recurse(nested: MessageValidation, value: MessageRef) -> list[ConstraintViolation]:
        return validate(nested, value, table, (), moment)

    ctx = EvalContext(record=record, table=table, now=moment, recurse=recurse)
    violations: list[ConstraintViolation] = []
    for rule in validation.rules:
        violations.extend(_evaluate_rule(ctx, rule, validation.type_name, parent_path))
    return violations


class Validator:
    """Validates records against a compiled ``ValidationTable``."""

    def __init__(self, table: ValidationTable, *, clock: Clock | None = None) -> None:
        self.table = table
        self._clock = clock or _utc_now

    def validate(self, record: MessageRef) -> ValidationError | None:
        validation = self.table.get(record.type)
        if validation is None:
            logger.debug("No rules compiled for %s", record.type)
            return None
        violations = validate(validation, record, self.table, now=self._clock())
        if not violations:
            return None
        return ValidationError(tuple(violations))

    def validate_or_raise(self, record: MessageRef) -> None:
        error = self.validate(record)
        if error is not None:
            raise ValidationFailed(error)

    def check_transition(self, previous: MessageRef, current: MessageRef) -> list[ConstraintViolation]:
        """Check that set-once fields of ``previous`` are not reassigned in ``current``."""
        if previous.type != current.type:
            raise ValueError(f"Cannot compare a {previous.type} with a {current.type}")
        validation = self.table.get(current.type)
        if validation is None:
            return []
        return check_transition(previous, current, validation.set_once_fields, type_name=current.type)

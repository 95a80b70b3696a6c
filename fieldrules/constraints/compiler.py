"""
Rule compiler: turns discovered options into immutable rules.

Compilation runs in two phases. Options are first collected per type
(``collect_options``); then every type is compiled once over its complete
option list, giving a ``MessageValidation``. A misapplied option raises a
``SchemaError`` here, never later while validating records.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from ..config import ValidationConfig
from ..errors import (
    DistinctOnNonCollection,
    DuplicateCompanion,
    InvalidBound,
    InvalidPattern,
    SchemaError,
    SelfReference,
    UnknownType,
    UnsupportedGoes,
    UnsupportedPattern,
    UnsupportedRequired,
    UnsupportedTimeBound,
    ValidateOnNonMessage,
)
from ..schema.types import TIMESTAMP_TYPE, FieldDescriptor, MessageType, TypeRegistry
from ..values import unset_sentinel
from . import messages as msg
from .bounds import parse_bound, parse_range
from .options import (
    MESSAGE_OPTIONS,
    OptionDiscovered,
    OptionKind,
    TypeOptions,
    collect_options,
    option_error_msg,
    option_flag,
)
from .required_fields import parse_required_fields
from .rules import (
    ComparisonOperator,
    CompositeRule,
    CustomKind,
    CustomRule,
    DistinctFeature,
    FieldCoOccurrenceFeature,
    LogicalOperator,
    MessageValidation,
    PatternFeature,
    PatternModifiers,
    RecursiveValidateFeature,
    Rule,
    SetOnceField,
    SimpleRule,
    TimeBound,
    TimeBoundFeature,
    ValidationTable,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldContext:
    """What a compile function knows about the annotated element."""

    message: MessageType
    field: FieldDescriptor | None
    registry: TypeRegistry
    options: TypeOptions
    config: ValidationConfig

    @property
    def target(self) -> FieldDescriptor:
        if self.field is None:
            raise SchemaError(f"Expected a field option on `{self.message.name}`.", type_name=self.message.name)
        return self.field


CompileFn = Callable[[FieldContext, Any], "Rule | None"]


def _payload_value(payload: Any, key: str = "value") -> Any:
    if isinstance(payload, dict):
        return payload.get(key)
    return payload


def _template(ctx: FieldContext, payload: Any, default: str, kind: OptionKind) -> str:
    return msg.checked_template(
        option_error_msg(payload),
        default,
        kind,
        type_name=ctx.message.name,
        field_name=ctx.field.name if ctx.field else None,
    )


def _unsupported(cls: type[SchemaError], option: OptionKind, field: FieldDescriptor, supported: str) -> SchemaError:
    return cls(
        f"The field type `{field.type_label}` of `{field.qualified_name}` is not supported"
        f" by the `({option.value})` option. Supported field types: {supported}.",
        option=option.value,
        type_name=field.declaring_type,
        field_name=field.name,
    )


# --- required -------------------------------------------------------------


def _if_missing_template(ctx: FieldContext, field: FieldDescriptor) -> str | None:
    companions = ctx.options.find(field.name, OptionKind.IF_MISSING)
    if not companions:
        return None
    if len(companions) > 1:
        raise DuplicateCompanion(
            f"The field `{field.qualified_name}` is allowed to have zero or one"
            f" `({OptionKind.IF_MISSING.value})` companion option.",
            option=OptionKind.IF_MISSING.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    payload = companions[0].payload
    custom = payload if isinstance(payload, str) else option_error_msg(payload)
    if custom is None:
        return None
    return msg.checked_template(
        custom, msg.REQUIRED, OptionKind.IF_MISSING, type_name=field.declaring_type, field_name=field.name
    )


def required_collection_rule(field: FieldDescriptor, template: str) -> SimpleRule:
    # Repeated enums: whether a list holding only default (zero) enum values
    # counts as empty is undecided. Until then such a list is considered set,
    # the same as any other non-empty collection.
    empty = unset_sentinel(field)
    return SimpleRule(field, ComparisonOperator.NOT_EQUAL, empty, template)


def compile_required(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    sentinel = unset_sentinel(field)
    if sentinel is None:
        raise UnsupportedRequired(
            f"The field `{field.qualified_name}` of the type `{field.type_label}` does not"
            f" support `({OptionKind.REQUIRED.value})` option.",
            option=OptionKind.REQUIRED.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    if not option_flag(payload):
        return None

    custom = option_error_msg(payload)
    if custom is not None:
        template = msg.checked_template(
            custom, msg.REQUIRED, OptionKind.REQUIRED, type_name=field.declaring_type, field_name=field.name
        )
    else:
        template = _if_missing_template(ctx, field) or msg.REQUIRED

    if field.is_collection:
        return required_collection_rule(field, template)
    return SimpleRule(field, ComparisonOperator.NOT_EQUAL, sentinel, template)


def compile_id_required(ctx: FieldContext) -> Rule | None:
    """Implicit ``(required)`` of the first field of entities and signals."""
    field = ctx.target
    if ctx.options.find(field.name, OptionKind.REQUIRED):
        return None
    sentinel = unset_sentinel(field)
    if sentinel is None:
        return None
    template = _if_missing_template(ctx, field) or msg.ID_REQUIRED
    if field.is_collection:
        return required_collection_rule(field, template)
    return SimpleRule(field, ComparisonOperator.NOT_EQUAL, sentinel, template)


# --- numeric bounds -------------------------------------------------------


def _check_numeric(option: OptionKind, field: FieldDescriptor) -> None:
    if not field.is_numeric:
        raise _unsupported(InvalidBound, option, field, "numbers and collections of numbers")


def compile_range(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    _check_numeric(OptionKind.RANGE, field)
    notation = parse_range(str(_payload_value(payload) or ""), field, OptionKind.RANGE.value)
    template = _template(ctx, payload, msg.RANGE, OptionKind.RANGE)

    lower_op = ComparisonOperator.GREATER if notation.lower.exclusive else ComparisonOperator.GREATER_OR_EQUAL
    upper_op = ComparisonOperator.LESS if notation.upper.exclusive else ComparisonOperator.LESS_OR_EQUAL
    lower = SimpleRule(field, lower_op, notation.lower.value, template)
    upper = SimpleRule(field, upper_op, notation.upper.value, template)
    return CompositeRule(
        LogicalOperator.AND,
        (lower, upper),
        template,
        field=field,
        distribute=field.is_collection,
        placeholders=((msg.RANGE_VALUE, notation.text),),
    )


def _compile_bound(ctx: FieldContext, payload: Any, kind: OptionKind) -> Rule:
    field = ctx.target
    _check_numeric(kind, field)
    exclusive = bool(payload.get("exclusive", False)) if isinstance(payload, dict) else False
    bound = parse_bound(str(_payload_value(payload) or ""), field, ctx.message, kind.value, exclusive=exclusive)

    if kind is OptionKind.MIN:
        op = ComparisonOperator.GREATER if exclusive else ComparisonOperator.GREATER_OR_EQUAL
        default, value_key, operator_key = msg.MIN, msg.MIN_VALUE, msg.MIN_OPERATOR
    else:
        op = ComparisonOperator.LESS if exclusive else ComparisonOperator.LESS_OR_EQUAL
        default, value_key, operator_key = msg.MAX, msg.MAX_VALUE, msg.MAX_OPERATOR

    return SimpleRule(
        field,
        op,
        bound.value,
        _template(ctx, payload, default, kind),
        distribute=field.is_collection,
        placeholders=((value_key, bound.text), (operator_key, msg.OPERATOR_WORDS[op.value])),
    )


def compile_min(ctx: FieldContext, payload: Any) -> Rule | None:
    return _compile_bound(ctx, payload, OptionKind.MIN)


def compile_max(ctx: FieldContext, payload: Any) -> Rule | None:
    return _compile_bound(ctx, payload, OptionKind.MAX)


# --- pattern --------------------------------------------------------------


def _modifiers(payload: Any) -> PatternModifiers:
    raw = payload.get("modifier", {}) if isinstance(payload, dict) else {}
    if not isinstance(raw, dict):
        raw = {}
    return PatternModifiers(
        case_insensitive=bool(raw.get("case_insensitive", False)),
        multiline=bool(raw.get("multiline", False)),
        dot_all=bool(raw.get("dot_all", False)),
        unicode=bool(raw.get("unicode", False)),
        partial_match=bool(raw.get("partial_match", False)),
    )


def compile_pattern(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    if not field.is_string or field.is_map:
        raise _unsupported(UnsupportedPattern, OptionKind.PATTERN, field, "strings and repeated of strings")

    regex = payload.get("regex") if isinstance(payload, dict) else payload
    if not isinstance(regex, str):
        raise InvalidPattern(
            f"The `({OptionKind.PATTERN.value})` option of `{field.qualified_name}` has no regex.",
            option=OptionKind.PATTERN.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    modifiers = _modifiers(payload)
    try:
        feature = PatternFeature.compile(regex, modifiers)
    except re.error as e:
        raise InvalidPattern(
            f"The regular expression `{regex}` of `{field.qualified_name}` cannot be compiled: {e}.",
            option=OptionKind.PATTERN.value,
            type_name=field.declaring_type,
            field_name=field.name,
        ) from e

    return CustomRule(
        field,
        CustomKind.PATTERN,
        feature,
        _template(ctx, payload, msg.PATTERN, OptionKind.PATTERN),
        ignored_if_unset=True,
        distribute=field.is_list,
        placeholders=(
            (msg.REGEX_PATTERN, msg.escape_line_separators(regex)),
            (msg.REGEX_MODIFIERS, modifiers.describe()),
        ),
    )


# --- collections and nested messages --------------------------------------


def compile_distinct(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    if not field.is_collection:
        raise DistinctOnNonCollection(
            f"The field type `{field.type_label}` of `{field.qualified_name}` is not supported"
            f" by the `({OptionKind.DISTINCT.value})` option. This option supports `map` and"
            " `repeated` fields.",
            option=OptionKind.DISTINCT.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    if not option_flag(payload):
        return None
    return CustomRule(
        field,
        CustomKind.DISTINCT,
        DistinctFeature(),
        _template(ctx, payload, msg.DISTINCT, OptionKind.DISTINCT),
        distribute=False,
    )


def compile_validate(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    if not field.is_message:
        raise ValidateOnNonMessage(
            f"The field type `{field.type_label}` of `{field.qualified_name}` is not supported"
            f" by the `({OptionKind.VALIDATE.value})` option. Supported field types: messages,"
            " repeated of messages, and maps with message values.",
            option=OptionKind.VALIDATE.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    ctx.registry.require_message(field.kind, option=OptionKind.VALIDATE.value)
    if not option_flag(payload):
        return None
    return CustomRule(
        field,
        CustomKind.RECURSIVE_VALIDATE,
        RecursiveValidateFeature(field.kind),
        msg.VALIDATE,
        ignored_if_unset=True,
        distribute=True,
    )


# --- time and co-occurrence -----------------------------------------------


def compile_when(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    if not field.is_message or field.kind != TIMESTAMP_TYPE or field.is_map:
        raise _unsupported(
            UnsupportedTimeBound, OptionKind.WHEN, field, f"`{TIMESTAMP_TYPE}` and repeated of it"
        )
    raw = payload.get("in") if isinstance(payload, dict) else payload
    bound_name = str(raw or "").strip().lower()
    if bound_name in ("", "time_undefined"):
        return None
    try:
        bound = TimeBound(bound_name)
    except ValueError as e:
        raise SchemaError(
            f"The `({OptionKind.WHEN.value})` option of `{field.qualified_name}` expects `PAST` or"
            f" `FUTURE`, got `{raw}`.",
            option=OptionKind.WHEN.value,
            type_name=field.declaring_type,
            field_name=field.name,
        ) from e
    return CustomRule(
        field,
        CustomKind.TIME_BOUND,
        TimeBoundFeature(bound),
        _template(ctx, payload, msg.WHEN, OptionKind.WHEN),
        ignored_if_unset=True,
        distribute=field.is_list,
        placeholders=((msg.WHEN_IN, bound.value),),
    )


def compile_goes(ctx: FieldContext, payload: Any) -> Rule | None:
    field = ctx.target
    companion_name = payload.get("with") if isinstance(payload, dict) else payload
    companion = ctx.message.require_field(str(companion_name or "").strip(), option=OptionKind.GOES.value)
    if companion.name == field.name:
        raise SelfReference(
            f"The `({OptionKind.GOES.value})` option can not use the target field as its own companion."
            f" The invalid field: `{field.qualified_name}`.",
            option=OptionKind.GOES.value,
            type_name=field.declaring_type,
            field_name=field.name,
        )
    supported = "messages, enums, strings, bytes, repeated, and maps"
    if unset_sentinel(field) is None:
        raise _unsupported(UnsupportedGoes, OptionKind.GOES, field, supported)
    if unset_sentinel(companion) is None:
        raise _unsupported(UnsupportedGoes, OptionKind.GOES, companion, supported)
    return CustomRule(
        field,
        CustomKind.FIELD_CO_OCCURRENCE,
        FieldCoOccurrenceFeature(companion),
        _template(ctx, payload, msg.GOES, OptionKind.GOES),
        ignored_if_unset=True,
        placeholders=((msg.GOES_COMPANION, companion.name),),
    )


# --- message level --------------------------------------------------------


def compile_required_field(ctx: FieldContext, payload: Any) -> Rule | None:
    message = ctx.message
    text = payload.get("fields", payload.get("value")) if isinstance(payload, dict) else payload
    expression = parse_required_fields(str(text or ""), message.name)
    if expression is None:
        return None

    groups: list[Rule] = []
    for group in expression.groups:
        presence: list[Rule] = []
        for name in group.fields:
            field = message.require_field(name, option=OptionKind.REQUIRED_FIELD.value)
            sentinel = unset_sentinel(field)
            if sentinel is None:
                raise _unsupported(
                    UnsupportedRequired,
                    OptionKind.REQUIRED_FIELD,
                    field,
                    "messages, enums, strings, bytes, repeated, and maps",
                )
            presence.append(SimpleRule(field, ComparisonOperator.NOT_EQUAL, sentinel, msg.REQUIRE_FIELD_MEMBER))
        groups.append(CompositeRule(LogicalOperator.AND, tuple(presence), msg.REQUIRE_FIELD))

    return CompositeRule(
        LogicalOperator.OR,
        tuple(groups),
        _template(ctx, payload, msg.REQUIRE_FIELD, OptionKind.REQUIRED_FIELD),
        placeholders=((msg.REQUIRE_FIELDS, expression.text),),
    )


# --- options that do not produce rules ------------------------------------


def _warn(ctx: FieldContext, text: str, option: OptionKind) -> None:
    if ctx.config.fail_on_warnings:
        raise SchemaError(
            text,
            option=option.value,
            type_name=ctx.message.name,
            field_name=ctx.field.name if ctx.field else None,
        )
    logger.warning(text)


def compile_set_once(ctx: FieldContext, payload: Any) -> SetOnceField | None:
    field = ctx.target
    if field.is_collection:
        _warn(
            ctx,
            f"The `({OptionKind.SET_ONCE.value})` option is not applicable to the collection field"
            f" `{field.qualified_name}` and is ignored.",
            OptionKind.SET_ONCE,
        )
        return None
    if not option_flag(payload):
        return None
    return SetOnceField(field, _template(ctx, payload, msg.SET_ONCE, OptionKind.SET_ONCE))


def compile_if_invalid(ctx: FieldContext, payload: Any) -> None:
    _warn(
        ctx,
        f"The `({OptionKind.IF_INVALID.value})` option of `{ctx.target.qualified_name}` is deprecated"
        f" and has no effect. The `({OptionKind.VALIDATE.value})` option reports the violations"
        " of the validated message itself.",
        OptionKind.IF_INVALID,
    )
    return None


RULE_COMPILERS: dict[OptionKind, CompileFn] = {
    OptionKind.REQUIRED: compile_required,
    OptionKind.RANGE: compile_range,
    OptionKind.MIN: compile_min,
    OptionKind.MAX: compile_max,
    OptionKind.PATTERN: compile_pattern,
    OptionKind.DISTINCT: compile_distinct,
    OptionKind.VALIDATE: compile_validate,
    OptionKind.WHEN: compile_when,
    OptionKind.GOES: compile_goes,
    OptionKind.REQUIRED_FIELD: compile_required_field,
}

# Handled by compile_type itself rather than through RULE_COMPILERS.
NON_RULE_OPTIONS = frozenset({OptionKind.SET_ONCE, OptionKind.IF_MISSING, OptionKind.IF_INVALID})

_uncovered = set(OptionKind) - set(RULE_COMPILERS) - NON_RULE_OPTIONS
if _uncovered:
    raise RuntimeError(f"Options without a compiler: {sorted(k.value for k in _uncovered)}")


def _is_id_field(message: MessageType, field: FieldDescriptor, config: ValidationConfig) -> bool:
    marker = (message.marker or "").strip().lower()
    return bool(marker) and marker in config.id_markers and message.first_field == field


def compile_type(
    message: MessageType,
    options: TypeOptions | None,
    registry: TypeRegistry,
    config: ValidationConfig | None = None,
) -> MessageValidation:
    """Compile all options of one type into its ``MessageValidation``.

    Field rules follow the field declaration order, then option order;
    message-level rules come last.
    """
    config = config or ValidationConfig()
    options = options or TypeOptions(message.name)

    for name in options.field_names():
        message.require_field(name)

    rules: list[Rule] = []
    set_once: list[SetOnceField] = []

    for field in message.fields:
        ctx = FieldContext(message, field, registry, options, config)
        field_options = options.field_options(field.name)

        if _is_id_field(message, field, config):
            rule = compile_id_required(ctx)
            if rule is not None:
                rules.append(rule)
        elif options.find(field.name, OptionKind.IF_MISSING) and not options.find(field.name, OptionKind.REQUIRED):
            raise SchemaError(
                f"The `({OptionKind.IF_MISSING.value})` option of `{field.qualified_name}` is applied"
                f" without `({OptionKind.REQUIRED.value})`.",
                option=OptionKind.IF_MISSING.value,
                type_name=message.name,
                field_name=field.name,
            )

        for option in field_options:
            kind = option.kind
            if kind is None or kind is OptionKind.IF_MISSING:
                continue
            if kind is OptionKind.SET_ONCE:
                entry = compile_set_once(ctx, option.payload)
                if entry is not None:
                    set_once.append(entry)
                continue
            if kind is OptionKind.IF_INVALID:
                compile_if_invalid(ctx, option.payload)
                continue
            if kind in MESSAGE_OPTIONS:
                raise SchemaError(
                    f"The `({kind.value})` option applies to message types, not to `{field.qualified_name}`.",
                    option=kind.value,
                    type_name=message.name,
                    field_name=field.name,
                )
            rule = RULE_COMPILERS[kind](ctx, option.payload)
            if rule is not None:
                rules.append(rule)

    message_ctx = FieldContext(message, None, registry, options, config)
    for option in options.message_options():
        kind = option.kind
        if kind not in MESSAGE_OPTIONS:
            raise SchemaError(
                f"The `({option.option_name})` option applies to fields, not to `{message.name}`.",
                option=option.option_name,
                type_name=message.name,
            )
        rule = RULE_COMPILERS[kind](message_ctx, option.payload)
        if rule is not None:
            rules.append(rule)

    logger.debug("Compiled %d rule(s) and %d set-once field(s) for %s", len(rules), len(set_once), message.name)
    return MessageValidation(message.name, tuple(rules), tuple(set_once))


def compile_schema(
    registry: TypeRegistry,
    notifications: Iterable[OptionDiscovered],
    config: ValidationConfig | None = None,
) -> ValidationTable:
    """Compile every message type of ``registry`` into a ``ValidationTable``."""
    by_type = collect_options(notifications)
    for type_name in by_type:
        if registry.message(type_name) is None:
            raise UnknownType(f"Options refer to the unknown message type `{type_name}`.", type_name=type_name)

    validations = {
        name: compile_type(message, by_type.get(name), registry, config)
        for name, message in registry.messages.items()
    }
    return ValidationTable(validations)

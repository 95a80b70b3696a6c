"""Set-once checks between the previous and the proposed state of a record."""

from __future__ import annotations

from typing import Iterable

from ..report import ConstraintViolation
from ..values import MessageRef, is_default, to_text, values_equal
from . import messages as msg
from .rules import SetOnceField


def check_transition(
    previous: MessageRef,
    current: MessageRef,
    set_once_fields: Iterable[SetOnceField],
    *,
    type_name: str | None = None,
) -> list[ConstraintViolation]:
    """Report every set-once field whose non-default value was changed.

    Only the final values are compared: intermediate assignments are not seen.
    """
    type_name = type_name or current.type
    violations: list[ConstraintViolation] = []
    for entry in set_once_fields:
        field = entry.field
        if field.is_collection:
            continue
        old = previous.value_of(field)
        new = current.value_of(field)
        if is_default(old) or values_equal(old, new):
            continue
        violations.append(
            ConstraintViolation(
                type_name=type_name,
                field_path=(field.name,),
                template=entry.error_template,
                placeholders={
                    msg.FIELD_PATH: field.name,
                    msg.FIELD_TYPE: field.type_label,
                    msg.PARENT_TYPE: type_name,
                    msg.FIELD_VALUE: to_text(old),
                    msg.FIELD_PROPOSED_VALUE: to_text(new),
                },
                field_value=new,
            )
        )
    return violations

from __future__ import annotations

import pytest

from fieldrules.constraints import Validator, check_transition
from fieldrules.constraints.rules import SetOnceField
from fieldrules.constraints.messages import SET_ONCE
from fieldrules.records import to_value
from fieldrules.schema.types import FieldDescriptor
from fieldrules.values import DoubleValue, IntValue, MessageRef

AGE = FieldDescriptor("acme.Person", "age", "int32")
ONCE = (SetOnceField(AGE, SET_ONCE),)


def _person(age: int) -> MessageRef:
    return MessageRef("acme.Person", (("age", IntValue(age)),) if age else ())


def test_changing_a_set_value_is_reported() -> None:
    (violation,) = check_transition(_person(60), _person(16), ONCE)

    assert violation.field_path == ("age",)
    assert violation.placeholders["field.value"] == "60"
    assert violation.placeholders["field.proposed_value"] == "16"
    assert violation.message == (
        "The field `acme.Person.age` of the type `int32` already has the value `60`"
        " and cannot be reassigned to `16`."
    )


@pytest.mark.parametrize(("before", "after"), [(0, 16), (16, 16)])
def test_first_assignment_and_same_value_are_allowed(before: int, after: int) -> None:
    assert check_transition(_person(before), _person(after), ONCE) == []


def test_clearing_a_set_value_is_reported() -> None:
    assert len(check_transition(_person(60), _person(0), ONCE)) == 1


AMOUNT = FieldDescriptor("acme.Payment", "amount", "double")


def _payment(amount: float) -> MessageRef:
    return MessageRef("acme.Payment", (("amount", DoubleValue(amount)),))


def test_changing_a_double_to_nan_is_reported() -> None:
    once = (SetOnceField(AMOUNT, SET_ONCE),)

    (violation,) = check_transition(_payment(60.0), _payment(float("nan")), once)
    assert violation.placeholders["field.proposed_value"] == "nan"
    assert len(check_transition(_payment(float("nan")), _payment(60.0), once)) == 1
    assert check_transition(_payment(float("nan")), _payment(float("nan")), once) == []


def test_validator_checks_set_once_fields_of_schema(order_schema) -> None:
    schema, table = order_schema
    validator = Validator(table)
    base = {"id": "o-1", "email": "x"}

    previous = to_value({**base, "status": "ACTIVE"}, "acme.Order", schema.registry)
    current = to_value({**base, "status": "CLOSED"}, "acme.Order", schema.registry)

    (violation,) = validator.check_transition(previous, current)
    assert violation.path == "status"
    assert validator.check_transition(current, current) == []


def test_validator_rejects_mismatched_types(order_schema) -> None:
    _, table = order_schema
    with pytest.raises(ValueError):
        Validator(table).check_transition(MessageRef("acme.Order"), MessageRef("acme.Address"))

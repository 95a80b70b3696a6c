from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fieldrules.constraints import Validator, validate
from fieldrules.records import to_value
from fieldrules.report import ValidationFailed

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _valid_order() -> dict:
    return {
        "id": "o-1",
        "quantity": 5,
        "tags": ["alpha", "beta"],
        "address": {"first_line": "1 Main St", "town": "Springfield"},
        "email": "jo@example.com",
        "status": "ACTIVE",
        "placed_at": "2023-06-01T12:00:00Z",
    }


@pytest.fixture
def order(order_schema):
    schema, table = order_schema
    validator = Validator(table, clock=lambda: NOW)

    def _check(**changes):
        data = _valid_order()
        for key, value in changes.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        return validator.validate(to_value(data, "acme.Order", schema.registry))

    return _check


def _paths(error) -> list[str]:
    return [v.path for v in error.violations]


# ---------------------------------------------------------------------------
# No-violation idempotence and ordering
# ---------------------------------------------------------------------------


def test_valid_record_has_no_violations(order) -> None:
    assert order() is None
    assert order() is None


def test_violations_follow_rule_declaration_order(order) -> None:
    kwargs = {"id": None, "quantity": 100, "tags": ["x", "x"], "email": None}
    first = order(**kwargs)
    second = order(**kwargs)

    assert _paths(first) == ["id", "quantity", "tags", ""]
    assert first == second


# ---------------------------------------------------------------------------
# Required
# ---------------------------------------------------------------------------


def test_required_enum_missing(order) -> None:
    error = order(status=None)

    assert error is not None
    assert len(error.violations) == 1
    violation = error.violations[0]
    assert violation.field_path == ("status",)
    assert violation.message == "The field `acme.Order.status` of the type `acme.Status` must have a value."


def test_required_is_cleared_by_any_value(order) -> None:
    assert order(status="CLOSED") is None


def test_id_field_of_entity_is_required_by_default(order) -> None:
    error = order(id=None)

    assert error is not None
    assert _paths(error) == ["id"]
    assert "ID field `acme.Order.id`" in error.violations[0].message


# ---------------------------------------------------------------------------
# Range
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("quantity", [-1, 100])
def test_range_rejects_values_outside(order, quantity: int) -> None:
    error = order(quantity=quantity)

    assert error is not None
    assert _paths(error) == ["quantity"]
    assert error.violations[0].message == (
        "The field `acme.Order.quantity` must be within the range `[0..100)`."
        f" The passed value: `{quantity}`."
    )


@pytest.mark.parametrize("quantity", [0, 99])
def test_range_accepts_values_inside(order, quantity: int) -> None:
    assert order(quantity=quantity) is None


# ---------------------------------------------------------------------------
# Distinct and pattern
# ---------------------------------------------------------------------------


def test_distinct_reports_duplicates(order) -> None:
    error = order(tags=["alpha", "beta", "alpha"])

    assert error is not None
    assert _paths(error) == ["tags"]
    assert "`[alpha]`" in error.violations[0].message


def test_pattern_is_applied_to_every_element(order) -> None:
    error = order(tags=["alpha", "Beta1", "gamma", "7"])

    assert error is not None
    assert _paths(error) == ["tags[1]", "tags[3]"]
    assert error.violations[0].placeholders["field.value"] == "Beta1"


def _labelled(compile_toml, options: str):
    schema, table = compile_toml(
        f"""
[[messages]]
name = "acme.Label"

[[messages.fields]]
name = "text"
type = "string"
options = {options}
"""
    )
    validator = Validator(table)
    return lambda text: validator.validate(to_value({"text": text}, "acme.Label", schema.registry))


def test_pattern_must_match_whole_value_by_default(compile_toml) -> None:
    check = _labelled(compile_toml, '{ pattern = { regex = "b+" } }')

    assert check("bb") is None
    assert check("abba") is not None


def test_pattern_partial_match_searches(compile_toml) -> None:
    check = _labelled(compile_toml, '{ pattern = { regex = "b+", modifier = { partial_match = true } } }')

    assert check("abba") is None
    assert check("acca") is not None


def test_pattern_case_insensitive(compile_toml) -> None:
    strict = _labelled(compile_toml, '{ pattern = { regex = "[a-z]+" } }')
    relaxed = _labelled(compile_toml, '{ pattern = { regex = "[a-z]+", modifier = { case_insensitive = true } } }')

    assert strict("ABC") is not None
    assert relaxed("ABC") is None
    assert relaxed("AB1") is not None


def test_distinct_checks_map_values(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Aliases"

[[messages.fields]]
name = "names"
type = "map<string, string>"
options = { distinct = true }
"""
    )
    validator = Validator(table)

    error = validator.validate(
        to_value({"names": {"a": "x", "b": "y", "c": "x"}}, "acme.Aliases", schema.registry)
    )
    assert error is not None
    assert _paths(error) == ["names"]
    assert error.violations[0].placeholders["field.duplicates"] == "[x]"

    assert validator.validate(to_value({"names": {"x": "a", "y": "b"}}, "acme.Aliases", schema.registry)) is None


# ---------------------------------------------------------------------------
# Recursive validation
# ---------------------------------------------------------------------------


def test_nested_violations_are_attached_to_parent(order) -> None:
    error = order(address={"zip": "12345"})

    assert error is not None
    assert len(error.violations) == 1
    parent = error.violations[0]
    assert parent.field_path == ("address",)
    assert parent.message == "The message field `acme.Order.address` is invalid."
    assert [child.field_path for child in parent.nested] == [("first_line",), ("town",)]
    assert all(child.type_name == "acme.Address" for child in parent.nested)

    assert [v.path for v in error.flatten()] == ["address.first_line", "address.town"]


def test_absent_nested_message_is_not_validated(order) -> None:
    assert order(address=None) is None


def test_nested_repeated_messages_use_indexes(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Line"

[[messages.fields]]
name = "sku"
type = "string"
options = { required = true }

[[messages.fields]]
name = "note"
type = "string"

[[messages]]
name = "acme.Cart"

[[messages.fields]]
name = "lines"
type = "repeated acme.Line"
options = { validate = true }
"""
    )
    record = to_value({"lines": [{"sku": "a"}, {"note": "no sku"}]}, "acme.Cart", schema.registry)

    error = Validator(table).validate(record)

    assert error is not None
    assert [v.path for v in error.flatten()] == ["lines[1].sku"]


# ---------------------------------------------------------------------------
# Required-field expressions
# ---------------------------------------------------------------------------


def test_required_field_expression_on_order(order) -> None:
    error = order(email=None)

    assert error is not None
    violation = error.violations[0]
    assert violation.field_path == ()
    assert violation.message == (
        "The message `acme.Order` must have at least one of the following field"
        " combinations set: `email | phone`."
    )
    assert order(email=None, phone="555-0100") is None


CONTACT_SCHEMA = """
[[messages]]
name = "acme.Contact"
required_field = "a1 & a2 | b1 & b2"

[[messages.fields]]
name = "a1"
type = "string"

[[messages.fields]]
name = "a2"
type = "string"

[[messages.fields]]
name = "b1"
type = "string"

[[messages.fields]]
name = "b2"
type = "string"
"""


@pytest.mark.parametrize(
    ("present", "valid"),
    [
        ({"a1"}, False),
        ({"a1", "a2"}, True),
        ({"b1", "b2"}, True),
        ({"a1", "b2"}, False),
        (set(), False),
    ],
)
def test_required_field_groups(compile_toml, present: set[str], valid: bool) -> None:
    schema, table = compile_toml(CONTACT_SCHEMA)
    record = to_value({name: "x" for name in present}, "acme.Contact", schema.registry)

    error = Validator(table).validate(record)

    assert (error is None) is valid


# ---------------------------------------------------------------------------
# Time bounds
# ---------------------------------------------------------------------------


def test_when_past_rejects_future_timestamp(order) -> None:
    error = order(placed_at="2030-01-01T00:00:00Z")

    assert error is not None
    assert _paths(error) == ["placed_at"]
    assert error.violations[0].message == (
        "The field `acme.Order.placed_at` must be in the past. The passed value: `2030-01-01T00:00:00Z`."
    )


def test_when_is_ignored_for_unset_timestamp(order) -> None:
    assert order(placed_at=None) is None


def test_when_future_rejects_past_timestamp(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Booking"

[[messages.fields]]
name = "starts_at"
type = "google.protobuf.Timestamp"
options = { when = { in = "FUTURE" } }
"""
    )
    validator = Validator(table, clock=lambda: NOW)

    error = validator.validate(to_value({"starts_at": "2023-06-01T12:00:00Z"}, "acme.Booking", schema.registry))
    assert error is not None
    assert _paths(error) == ["starts_at"]
    assert error.violations[0].placeholders["field.value"] == "2023-06-01T12:00:00Z"

    assert validator.validate(to_value({"starts_at": "2030-01-01T00:00:00Z"}, "acme.Booking", schema.registry)) is None


# ---------------------------------------------------------------------------
# Goes, field bounds and maps
# ---------------------------------------------------------------------------


def test_goes_requires_companion(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Shipment"

[[messages.fields]]
name = "tracking"
type = "string"
options = { goes = { with = "carrier" } }

[[messages.fields]]
name = "carrier"
type = "string"
"""
    )
    validator = Validator(table)

    error = validator.validate(to_value({"tracking": "T1"}, "acme.Shipment", schema.registry))
    assert error is not None
    assert error.violations[0].message == (
        "The field `carrier` must also be set when `tracking` is set in `acme.Shipment`."
    )

    assert validator.validate(to_value({"carrier": "ups"}, "acme.Shipment", schema.registry)) is None
    assert validator.validate(to_value({"tracking": "T1", "carrier": "ups"}, "acme.Shipment", schema.registry)) is None


def test_min_bound_taken_from_another_field(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Window"

[[messages.fields]]
name = "low"
type = "int32"

[[messages.fields]]
name = "high"
type = "int32"
options = { min = { value = "low" } }
"""
    )
    validator = Validator(table)

    error = validator.validate(to_value({"low": 5, "high": 3}, "acme.Window", schema.registry))
    assert error is not None
    assert error.violations[0].message == (
        "The field `acme.Window.high` must be greater than or equal to `low`. The passed value: `3`."
    )
    assert validator.validate(to_value({"low": 5, "high": 5}, "acme.Window", schema.registry)) is None


def test_bounds_distribute_over_map_values(compile_toml) -> None:
    schema, table = compile_toml(
        """
[[messages]]
name = "acme.Quota"

[[messages.fields]]
name = "limits"
type = "map<string, int32>"
options = { min = 1, max = { value = "10", exclusive = true } }
"""
    )
    record = to_value({"limits": {"a": 2, "b": 0, "c": 10}}, "acme.Quota", schema.registry)

    error = Validator(table).validate(record)

    assert error is not None
    assert _paths(error) == ["limits[b]", "limits[c]"]
    assert "less than `10`" in error.violations[1].message


@pytest.mark.parametrize(
    "options",
    [
        '{ min = "0.0" }',
        '{ max = "10.0" }',
        '{ max = { value = "10.0", exclusive = true } }',
        '{ min = { value = "0.0", exclusive = true } }',
        '{ range = "[0.0..100.0]" }',
        '{ range = "(0.0..100.0)" }',
    ],
)
def test_nan_fails_every_bound(compile_toml, options: str) -> None:
    schema, table = compile_toml(
        f"""
[[messages]]
name = "acme.Payment"

[[messages.fields]]
name = "amount"
type = "double"
options = {options}
"""
    )
    validator = Validator(table)

    error = validator.validate(to_value({"amount": float("nan")}, "acme.Payment", schema.registry))
    assert error is not None
    assert _paths(error) == ["amount"]
    assert validator.validate(to_value({"amount": 5.0}, "acme.Payment", schema.registry)) is None


# ---------------------------------------------------------------------------
# Library boundary
# ---------------------------------------------------------------------------


def test_validate_function_returns_plain_list(order_schema) -> None:
    schema, table = order_schema
    record = to_value({"status": "ACTIVE", "email": "x"}, "acme.Order", schema.registry)

    violations = validate(table["acme.Order"], record, table, parent_path=("order",), now=NOW)

    assert [v.field_path for v in violations] == [("order", "id")]


def test_validate_or_raise(order_schema) -> None:
    schema, table = order_schema
    record = to_value({"id": "o-1", "email": "x"}, "acme.Order", schema.registry)

    with pytest.raises(ValidationFailed) as excinfo:
        Validator(table).validate_or_raise(record)

    assert excinfo.value.error.violations[0].field_path == ("status",)


def test_validator_picks_rules_by_record_type(order_schema) -> None:
    schema, table = order_schema
    record = to_value({"zip": "1"}, "acme.Address", schema.registry)

    assert Validator(table).validate(record) is not None
    assert Validator(table).validate(to_value({}, "google.protobuf.Timestamp", schema.registry)) is None

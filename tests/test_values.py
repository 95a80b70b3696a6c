from __future__ import annotations

import pytest

from fieldrules.errors import IncomparableKinds
from fieldrules.schema.types import FieldDescriptor
from fieldrules.values import (
    NULL,
    BoolValue,
    BytesValue,
    DoubleValue,
    EnumRef,
    IntValue,
    ListValue,
    MapValue,
    MessageRef,
    StringValue,
    compare,
    default_value,
    format_timestamp,
    is_default,
    to_python,
    unset_sentinel,
    values_equal,
)


@pytest.mark.parametrize(
    "value",
    [
        NULL,
        IntValue(0),
        DoubleValue(0.0),
        BoolValue(False),
        StringValue(""),
        BytesValue(b""),
        EnumRef("acme.Status", 0),
        MessageRef("acme.Address"),
        MessageRef("acme.Address", (("town", StringValue("")),)),
        ListValue(),
        MapValue(),
    ],
)
def test_default_values(value) -> None:
    assert is_default(value)


@pytest.mark.parametrize(
    "value",
    [
        IntValue(-1),
        StringValue(" "),
        EnumRef("acme.Status", 1),
        MessageRef("acme.Address", (("town", StringValue("x")),)),
        ListValue((StringValue(""),)),
    ],
)
def test_non_default_values(value) -> None:
    assert not is_default(value)


def test_compare_mixes_numeric_kinds() -> None:
    assert compare(IntValue(1), DoubleValue(1.5)) == -1
    assert compare(DoubleValue(2.0), IntValue(2)) == 0
    assert compare(IntValue(3), IntValue(2)) == 1
    assert values_equal(IntValue(1), DoubleValue(1.0))


def test_compare_rejects_non_numbers() -> None:
    with pytest.raises(IncomparableKinds):
        compare(StringValue("a"), IntValue(1))


@pytest.mark.parametrize(
    ("left", "right"),
    [
        (DoubleValue(float("nan")), DoubleValue(10.0)),
        (IntValue(0), DoubleValue(float("nan"))),
        (DoubleValue(float("nan")), DoubleValue(float("nan"))),
    ],
)
def test_nan_has_no_order(left, right) -> None:
    with pytest.raises(IncomparableKinds):
        compare(left, right)


def test_nan_equals_only_nan() -> None:
    nan = DoubleValue(float("nan"))

    assert not values_equal(nan, DoubleValue(60.0))
    assert not values_equal(IntValue(0), nan)
    assert values_equal(nan, DoubleValue(float("nan")))


def test_message_and_map_equality_ignore_order() -> None:
    a = MessageRef("acme.P", (("x", IntValue(1)), ("y", IntValue(2))))
    b = MessageRef("acme.P", (("y", IntValue(2)), ("x", IntValue(1))))
    assert a == b
    assert hash(a) == hash(b)

    m1 = MapValue(((StringValue("a"), IntValue(1)), (StringValue("b"), IntValue(2))))
    m2 = MapValue(((StringValue("b"), IntValue(2)), (StringValue("a"), IntValue(1))))
    assert m1 == m2


def test_unset_sentinel_per_kind() -> None:
    assert unset_sentinel(FieldDescriptor("T", "n", "int32")) is None
    assert unset_sentinel(FieldDescriptor("T", "b", "bool")) is None
    assert unset_sentinel(FieldDescriptor("T", "s", "string")) == StringValue("")
    assert unset_sentinel(FieldDescriptor("T", "e", "acme.Status", category="enum")) == EnumRef("acme.Status", 0)
    assert unset_sentinel(FieldDescriptor("T", "l", "int32", cardinality="list")) == ListValue()
    assert unset_sentinel(FieldDescriptor("T", "m", "int32", cardinality="map", map_key="string")) == MapValue()


def test_value_of_falls_back_to_default() -> None:
    field = FieldDescriptor("acme.P", "x", "double")
    assert MessageRef("acme.P").value_of(field) == default_value(field) == DoubleValue(0.0)


def test_to_python_renders_plain_data() -> None:
    value = MessageRef(
        "acme.P",
        (
            ("raw", BytesValue(b"hi")),
            ("tags", ListValue((StringValue("a"),))),
            ("limits", MapValue(((IntValue(1), BoolValue(True)),))),
        ),
    )
    assert to_python(value) == {"raw": "aGk=", "tags": ["a"], "limits": {"1": True}}


def test_format_timestamp() -> None:
    ts = MessageRef(
        "google.protobuf.Timestamp",
        (("seconds", IntValue(1_700_000_000)), ("nanos", IntValue(500_000_000))),
    )
    assert format_timestamp(ts) == "2023-11-14T22:13:20.5Z"

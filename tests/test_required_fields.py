from __future__ import annotations

import pytest

from fieldrules.constraints.required_fields import parse_required_fields
from fieldrules.errors import MalformedExpression


def test_groups_bind_and_tighter_than_or() -> None:
    expression = parse_required_fields(" a1 & a2 |b1&b2 ", "acme.T")

    assert expression is not None
    assert [g.fields for g in expression.groups] == [("a1", "a2"), ("b1", "b2")]


@pytest.mark.parametrize("text", ["", "   "])
def test_blank_expression_means_no_constraint(text: str) -> None:
    assert parse_required_fields(text, "acme.T") is None


@pytest.mark.parametrize("text", ["a |", "| a", "a & & b", "a-b", "a & a", "a & b | b & a"])
def test_malformed_expressions(text: str) -> None:
    with pytest.raises(MalformedExpression) as excinfo:
        parse_required_fields(text, "acme.T")
    assert excinfo.value.option == "required_field"

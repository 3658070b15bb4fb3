from __future__ import annotations

from decimal import Decimal

import pytest

from feed_converter.models import (
    Calculation,
    CalculationOperator,
    CustomColumn,
    Filter,
    FilterCondition,
    MergeColumn,
)
from feed_converter.row_transformer import (
    RowTransformer,
    check_filter,
    format_number,
    parse_numeric,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("120.50 CZK", Decimal("120.50")),
        ("USD -3", Decimal("-3")),
        ("1.5.7", Decimal("1.5")),
        (".5", Decimal("0.5")),
        ("10-20", Decimal("10")),
        ("abc", None),
        ("-", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_numeric(raw, expected) -> None:
    assert parse_numeric(raw) == expected


def test_contains_and_equals_ignore_case() -> None:
    assert check_filter("Red Shoe", Filter("title", FilterCondition.CONTAINS, "shoe"))
    assert check_filter("IN STOCK", Filter("availability", FilterCondition.EQUALS, "in stock"))
    assert not check_filter("in stock soon", Filter("availability", FilterCondition.EQUALS, "in stock"))
    assert check_filter("", Filter("title", FilterCondition.CONTAINS, ""))


def test_numeric_filters_strip_units_on_both_sides() -> None:
    assert check_filter("10 USD", Filter("price", FilterCondition.GREATER_THAN, "5"))
    assert check_filter("10 USD", Filter("price", FilterCondition.LESS_THAN, "EUR 10.5"))
    assert not check_filter("10 USD", Filter("price", FilterCondition.GREATER_THAN, "10"))


def test_numeric_filters_reject_unparsable_values() -> None:
    assert not check_filter("free", Filter("price", FilterCondition.GREATER_THAN, "5"))
    assert not check_filter("free", Filter("price", FilterCondition.LESS_THAN, "5"))
    assert not check_filter("7", Filter("price", FilterCondition.LESS_THAN, "cheap"))
    assert not check_filter(None, Filter("price", FilterCondition.LESS_THAN, "5"))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("20"), "20"),
        (Decimal("20.0000"), "20"),
        (Decimal("0.125"), "0.125"),
        (Decimal(10) / Decimal(3), "3.3333"),
        (Decimal("2") / Decimal("3"), "0.6667"),
        (Decimal("-0.00001"), "0"),
        (Decimal("-1.5"), "-1.5"),
    ],
)
def test_format_number(value, expected) -> None:
    assert format_number(value) == expected


def _calc(op: str, **kwargs) -> Calculation:
    return Calculation(
        result_header="result",
        operand1=kwargs.pop("operand1", "price"),
        operator=CalculationOperator(op),
        operand2=kwargs.pop("operand2", "qty"),
        **kwargs,
    )


def test_transform_orders_standard_custom_calculation_merge() -> None:
    transformer = RowTransformer(
        ["id", "price"],
        custom_columns=[CustomColumn("currency", "USD")],
        calculations=[_calc("+")],
        merge_columns=[MergeColumn("label", "id", "title")],
    )

    row = transformer.transform({"id": "7", "price": "10 USD", "qty": "2", "title": "Shoe"})

    assert row == ["7", "10 USD", "USD", "12", "7 Shoe"]


def test_missing_fields_become_empty_strings() -> None:
    transformer = RowTransformer(
        ["id", "gtin"],
        merge_columns=[MergeColumn("label", "brand", "title")],
    )

    assert transformer.transform({"id": "1"}) == ["1", "", " "]


def test_calculation_with_custom_column_operand() -> None:
    transformer = RowTransformer(
        ["price"],
        custom_columns=[CustomColumn("qty", "2")],
        calculations=[_calc("*")],
    )

    assert transformer.transform({"price": "10 USD"}) == ["10 USD", "2", "20"]


def test_item_value_wins_over_custom_column_of_same_name() -> None:
    transformer = RowTransformer(
        [],
        custom_columns=[CustomColumn("qty", "2")],
        calculations=[_calc("*")],
    )

    assert transformer.transform({"price": "10", "qty": "3"}) == ["2", "30"]


def test_division_by_zero_yields_zero() -> None:
    transformer = RowTransformer([], calculations=[_calc("/")])

    assert transformer.transform({"price": "10", "qty": "0"}) == ["0"]


def test_non_numeric_operand_yields_empty_result() -> None:
    transformer = RowTransformer([], calculations=[_calc("-")])

    assert transformer.transform({"price": "n/a", "qty": "3"}) == [""]
    assert transformer.transform({"price": "4"}) == [""]


def test_percentage_operands_are_divided_by_100() -> None:
    transformer = RowTransformer(
        [],
        calculations=[_calc("*", operand2="discount", is_percentage_op2=True)],
    )

    assert transformer.transform({"price": "200 EUR", "discount": "15 %"}) == ["30"]


def test_both_percentage_operands() -> None:
    transformer = RowTransformer(
        [],
        calculations=[_calc("+", is_percentage_op1=True, is_percentage_op2=True)],
    )

    assert transformer.transform({"price": "50", "qty": "25"}) == ["0.75"]


def test_accepts_requires_every_filter() -> None:
    transformer = RowTransformer(
        ["id"],
        filters=[
            Filter("price", FilterCondition.GREATER_THAN, "5"),
            Filter("title", FilterCondition.CONTAINS, "shoe"),
        ],
    )

    assert transformer.accepts({"price": "10", "title": "Red shoe"})
    assert not transformer.accepts({"price": "10", "title": "Red hat"})
    assert not transformer.accepts({"title": "Red shoe"})


def test_needed_paths_cover_every_operand() -> None:
    transformer = RowTransformer(
        ["id"],
        filters=[Filter("availability", FilterCondition.EQUALS, "in stock")],
        calculations=[_calc("*")],
        merge_columns=[MergeColumn("label", "brand", "title")],
    )

    assert transformer.needed_paths() == {
        "id", "availability", "price", "qty", "brand", "title",
    }

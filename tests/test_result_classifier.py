from datetime import date
from decimal import Decimal

import pytest

from nlq_dashboard.models import ViewingType
from nlq_dashboard.result_classifier import classify, format_number, is_aggregate_query


def test_empty_result_is_table():
    result = classify([], "SELECT * FROM customers")

    assert result.viewing_type == ViewingType.TABLE
    assert result.formatted_result is None


@pytest.mark.parametrize("value, expected", [
    (1234.5, "1,234.50"),
    (3, "3.00"),
    (Decimal("1234567.891"), "1,234,567.89"),
    (-42.5, "-42.50"),
])
def test_single_numeric_value_is_number(value, expected):
    result = classify([{"total": value}], "SELECT total FROM t")

    assert result.viewing_type == ViewingType.NUMBER
    assert result.viewing_type_id == 3
    assert result.viewing_type_name == "Number"
    assert result.formatted_result == expected


@pytest.mark.parametrize("value, expected", [
    ("Ada", "Ada"),
    (None, ""),
    (True, "True"),
    (date(2024, 1, 31), "2024-01-31"),
])
def test_single_non_numeric_value_is_label(value, expected):
    result = classify([{"v": value}], "SELECT v FROM t")

    assert result.viewing_type == ViewingType.LABEL
    assert result.formatted_result == expected


def test_aggregate_query_with_numeric_first_value_is_number():
    rows = [{"n": 2, "country": "GB"}, {"n": 1, "country": "US"}]

    result = classify(rows, "select COUNT(*) as n, country from customers group by country")

    assert result.viewing_type == ViewingType.NUMBER
    assert result.formatted_result == "2.00"


def test_aggregate_query_with_text_first_value_is_table():
    rows = [{"country": "GB", "n": 2}, {"country": "US", "n": 1}]

    result = classify(rows, "SELECT country, COUNT(*) AS n FROM customers GROUP BY country")

    assert result.viewing_type == ViewingType.TABLE


def test_plain_multi_row_result_is_table():
    rows = [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]

    assert classify(rows, "SELECT id, name FROM customers").viewing_type == ViewingType.TABLE


def test_format_number_degrades_for_non_finite_values():
    assert format_number(float("nan")) == "nan"
    assert format_number(float("inf")) == "inf"
    assert format_number("not a number") == "not a number"


def test_is_aggregate_query():
    assert is_aggregate_query("SELECT AVG(total) FROM orders")
    assert not is_aggregate_query("SELECT total FROM orders")
    assert not is_aggregate_query(None)

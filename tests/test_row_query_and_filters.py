"""Tests for filter predicates and data-table search/sort helpers."""

from __future__ import annotations

import math

import pytest

from app.tournament_manager.schemas.schemas import Filter
from app.tournament_manager.src.filter_rules import cell_text, describe_filter, filter_matches, to_number
from app.tournament_manager.src.row_query import iter_column_values, search_rows, sort_rows


@pytest.mark.parametrize(
    "value,expected",
    [(17, 17.0), ("17", 17.0), (" 2.5 ", 2.5), (17.0, 17.0)],
)
def test_to_number_parses_numbers(value, expected):
    """Numbers and numeric strings coerce to float."""
    assert to_number(value) == expected


@pytest.mark.parametrize("value", ["", "   ", "abc", None, True, "17 years"])
def test_to_number_non_numeric_is_nan(value):
    """Anything non-numeric coerces to NaN instead of raising."""
    assert math.isnan(to_number(value))


def test_cell_text():
    """Whole floats drop the decimal point and missing values are empty."""
    assert cell_text(17.0) == "17"
    assert cell_text(17.25) == "17.25"
    assert cell_text(None) == ""
    assert cell_text("Ann") == "Ann"


@pytest.mark.parametrize(
    "kind,value,row_value,expected",
    [
        ("equal", "alice", "Alice", True),
        ("equal", 17, "17", True),
        ("equal", "ali", "Alice", False),
        ("contains", "LIC", "Alice", True),
        ("contains", "x", "Alice", False),
        ("greater", 18, 19, True),
        ("greater", 18, 18, False),
        ("less", "18", 17, True),
        ("less", 18, "", False),
        ("less", 18, "junior", False),
    ],
)
def test_filter_matches(kind, value, row_value, expected):
    """Each filter type follows its comparison rule."""
    flt = Filter(filter_column="col", filter_type=kind, filter_value=value)
    assert filter_matches({"col": row_value}, flt) is expected


def test_wildcard_filter_never_matches():
    """Blank filter values never fire, even against blank cells."""
    flt = Filter(filter_column="col", filter_type="equal", filter_value="")
    assert flt.is_wildcard
    assert filter_matches({"col": ""}, flt) is False


def test_describe_filter():
    """Filters have a short human-readable description."""
    assert describe_filter(Filter(filter_column="Age", filter_type="less", filter_value=18.0)) == "Age less than 18"
    assert describe_filter(Filter(filter_column="Age")) == "Age (any)"


ROWS = [
    {"Name": "Ann", "Rating": 1500, "Club": "Rooks"},
    {"Name": "bob", "Rating": "unrated", "Club": "Knights"},
    {"Name": "Cy", "Rating": 1800, "Club": "rooks"},
    {"Name": "Al", "Rating": 1500, "Club": ""},
]


def test_search_rows_is_case_insensitive_across_columns():
    """Search matches any column's text."""
    assert [r["Name"] for r in search_rows(ROWS, ["Name", "Club"], "ROOK")] == ["Ann", "Cy"]
    assert search_rows(ROWS, ["Name"], "  ") == ROWS


def test_sort_rows_numeric_then_text_and_stable():
    """Numbers sort numerically before text; equal keys keep their order."""
    asc = sort_rows(ROWS, "Rating")
    assert [r["Name"] for r in asc] == ["Ann", "Al", "Cy", "bob"]

    by_name = sort_rows(ROWS, "Name", descending=True)
    assert [r["Name"] for r in by_name] == ["Cy", "bob", "Ann", "Al"]


def test_iter_column_values_dedupes_case_insensitively():
    """Distinct values keep first-seen order and spelling."""
    assert list(iter_column_values(ROWS, "Club")) == ["Rooks", "Knights", ""]


def test_to_number_out_of_float_range_is_nan():
    """Ints too large for a float coerce to NaN instead of overflowing."""
    assert math.isnan(to_number(10**400))
    assert math.isnan(to_number(-(10**400)))


def test_huge_numeric_filter_value_does_not_match():
    """A greater/less filter with an out-of-range value simply fails to fire."""
    flt = Filter(filter_column="col", filter_type="greater", filter_value=10**400)
    assert filter_matches({"col": 17}, flt) is False

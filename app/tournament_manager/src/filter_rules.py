"""Single-filter evaluation against one tournament row.

Every comparison degrades to "no match" instead of raising: bad numbers,
missing columns and wildcard values never abort an allocation pass.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from ..schemas.schemas import Filter, FilterType

FILTER_TYPE_LABELS: dict[FilterType, str] = {
    FilterType.EQUAL: "Equal to",
    FilterType.GREATER: "Greater than",
    FilterType.LESS: "Less than",
    FilterType.CONTAINS: "Contains",
}


def cell_text(value: Any) -> str:
    """Render a cell the way a spreadsheet shows it (17.0 -> "17", missing -> "")."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> float:
    """Coerce a cell or filter value to float; anything non-numeric becomes NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        if isinstance(value, (int, float)):
            return float(value)
        text = str(value).strip()
        return float(text) if text else math.nan
    except (ValueError, OverflowError):
        # Unparsable text or ints beyond float range.
        return math.nan


def filter_matches(row: Mapping[str, Any], flt: Filter) -> bool:
    """Return True if a non-wildcard filter fires for row."""
    if flt.is_wildcard:
        return False

    column_value = row.get(flt.filter_column)

    if flt.filter_type == FilterType.EQUAL:
        return cell_text(column_value).lower() == cell_text(flt.filter_value).lower()
    if flt.filter_type == FilterType.CONTAINS:
        return cell_text(flt.filter_value).lower() in cell_text(column_value).lower()
    if flt.filter_type in (FilterType.GREATER, FilterType.LESS):
        left = to_number(column_value)
        right = to_number(flt.filter_value)
        # NaN compares False either way
        return left > right if flt.filter_type == FilterType.GREATER else left < right
    return False


def matches_any(row: Mapping[str, Any], filters: Sequence[Filter]) -> bool:
    """OR across filters: a row qualifies if any real (non-wildcard) filter fires."""
    return any(filter_matches(row, f) for f in filters)


def effective_filters(filters: Sequence[Filter]) -> list[Filter]:
    return [f for f in filters if not f.is_wildcard]


def describe_filter(flt: Filter) -> str:
    if flt.is_wildcard:
        return f"{flt.filter_column} (any)"
    return f"{flt.filter_column} {FILTER_TYPE_LABELS[flt.filter_type].lower()} {cell_text(flt.filter_value)}"

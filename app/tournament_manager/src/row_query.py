from __future__ import annotations

import math
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from .filter_rules import cell_text, to_number


def search_rows(rows: Sequence[Mapping[str, Any]], columns: Sequence[str], term: str | None) -> list[Mapping[str, Any]]:
    """Keep rows where any column's text contains term (case-insensitive)."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(rows)
    return [row for row in rows if any(needle in cell_text(row.get(c)).lower() for c in columns)]


def _sort_key(value: Any) -> tuple[int, float, str]:
    number = to_number(value)
    if not math.isnan(number):
        return (0, number, "")
    return (1, 0.0, cell_text(value).lower())


def sort_rows(rows: Sequence[Mapping[str, Any]], column: str, *, descending: bool = False) -> list[Mapping[str, Any]]:
    """Stable sort by column: numbers numerically (first), everything else as lower-cased text."""
    return sorted(rows, key=lambda row: _sort_key(row.get(column)), reverse=descending)


def iter_column_values(rows: Sequence[Mapping[str, Any]], column: str) -> Iterator[Any]:
    """Yield the distinct values of one column in first-seen order."""
    seen: set[str] = set()
    for row in rows:
        value = row.get(column, "")
        key = cell_text(value).lower()
        if key in seen:
            continue
        seen.add(key)
        yield value

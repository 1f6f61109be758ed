from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..schemas.schemas import AllocatedCategory, CategoryDefinition, Row
from .filter_rules import cell_text, describe_filter, effective_filters, matches_any

logger = logging.getLogger(__name__)


def row_fingerprint(row: Mapping[str, Any], identity_column: str | None = None) -> str:
    """Return the key used to decide whether two rows are the same player.

    Without an identity column the whole row is serialized, so two rows that
    agree on every column collapse into one player. With an identity column
    only that column's value is used (falling back to the full row when the
    column is absent).
    """
    if identity_column is not None and identity_column in row:
        return "id:" + cell_text(row[identity_column]).strip().lower()
    return json.dumps(dict(row), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _take(pool: list[Mapping[str, Any]], limit: int | None) -> list[Mapping[str, Any]]:
    return pool[:limit] if limit else pool


def _select_open(
    rows: Sequence[Mapping[str, Any]],
    category: CategoryDefinition,
    used: set[str],
    identity_column: str | None,
) -> list[Mapping[str, Any]]:
    if category.allow_repetition:
        remaining = list(rows)
    else:
        remaining = [r for r in rows if row_fingerprint(r, identity_column) not in used]
    return _take(remaining, category.limit)


def _select_filtered(
    rows: Sequence[Mapping[str, Any]],
    category: CategoryDefinition,
    used: set[str],
    identity_column: str | None,
) -> list[Mapping[str, Any]]:
    if not effective_filters(category.filters):
        logger.warning("Category %r (%s) has no usable filters; it will match no players", category.name, category.id)
        return []

    matching = [r for r in rows if matches_any(r, category.filters)]
    logger.debug(
        "Category %r matched %d rows on [%s]",
        category.name,
        len(matching),
        " OR ".join(describe_filter(f) for f in category.filters),
    )

    if category.allow_repetition:
        # Repeating filtered categories take every match; limit only caps Open and exclusive categories.
        return matching

    available = [r for r in matching if row_fingerprint(r, identity_column) not in used]
    return _take(available, category.limit)


def allocate(
    rows: Sequence[Mapping[str, Any]],
    categories: Sequence[CategoryDefinition],
    *,
    identity_column: str | None = None,
) -> list[AllocatedCategory]:
    """Assign rows to categories in priority (list) order.

    Categories that disallow repetition claim their players, and those players
    are skipped by every later non-repeating category. Returns one
    AllocatedCategory per input category, in the same order; neither input is
    modified.
    """
    used: set[str] = set()
    allocated: list[AllocatedCategory] = []

    for category in categories:
        if category.is_open:
            selected = _select_open(rows, category, used, identity_column)
        else:
            selected = _select_filtered(rows, category, used, identity_column)

        if not category.allow_repetition:
            used.update(row_fingerprint(r, identity_column) for r in selected)

        players: list[Row] = [dict(r) for r in selected]
        logger.debug("Category %r (priority %d) received %d players", category.name, category.priority, len(players))
        allocated.append(AllocatedCategory(**category.model_dump(), players=players))

    return allocated

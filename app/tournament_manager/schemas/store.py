from dataclasses import dataclass, field
from collections.abc import Sequence
from types import MappingProxyType

from .schemas import CategoryDefinition, Row


@dataclass(frozen=True)
class RowStore:
    """Immutable snapshot of one uploaded spreadsheet (columns + rows)."""

    columns: tuple[str, ...] = ()
    rows: tuple[Row, ...] = field(default_factory=tuple)

    @classmethod
    def from_rows(cls, columns: Sequence[str], rows: Sequence[Row]) -> "RowStore":
        # Rows are frozen into read-only mappings so no caller can edit a player in place.
        frozen = tuple(MappingProxyType(dict(row)) for row in rows)
        return cls(columns=tuple(columns), rows=frozen)  # type: ignore[arg-type]

    @property
    def player_count(self) -> int:
        return len(self.rows)

    def as_dicts(self) -> list[Row]:
        return [dict(row) for row in self.rows]


class InMemoryCategoryStore:
    """Ordered category definitions; position in the list is the priority."""

    def __init__(self) -> None:
        self._categories: list[CategoryDefinition] = []

    def ids(self) -> list[str]:
        return [c.id for c in self._categories]

    def snapshot(self) -> list[CategoryDefinition]:
        return list(self._categories)

    def clear(self) -> None:
        self._categories.clear()

    def restore(self, categories: Sequence[CategoryDefinition]) -> None:
        """Replace the whole set with a previous snapshot."""
        self._categories = list(categories)

    def index_of(self, category_id: str) -> int:
        """Return the position of category_id, raising KeyError if absent."""
        for i, category in enumerate(self._categories):
            if category.id == category_id:
                return i
        raise KeyError(category_id)

    def get(self, category_id: str) -> CategoryDefinition | None:
        try:
            return self._categories[self.index_of(category_id)]
        except KeyError:
            return None

    def append(self, category: CategoryDefinition) -> CategoryDefinition:
        stored = category.model_copy(update={"priority": len(self._categories)})
        self._categories.append(stored)
        return stored

    def replace(self, category: CategoryDefinition) -> None:
        """Swap in a new version of an existing category, keeping its position."""
        idx = self.index_of(category.id)
        self._categories[idx] = category.model_copy(update={"priority": idx})

    def remove(self, category_id: str) -> CategoryDefinition:
        removed = self._categories.pop(self.index_of(category_id))
        self._renumber()
        return removed

    def reorder(self, ordered_ids: Sequence[str]) -> None:
        """Reorder to match ordered_ids, which must be a permutation of the current ids."""
        current = self.ids()
        if len(ordered_ids) != len(current) or sorted(ordered_ids) != sorted(current):
            raise ValueError("Category order must list every existing category id exactly once")
        by_id = {c.id: c for c in self._categories}
        self._categories = [by_id[i] for i in ordered_ids]
        self._renumber()

    def move(self, active_id: str, over_id: str) -> None:
        """Move active_id into over_id's slot, shifting the others (drag-and-drop semantics)."""
        old_index = self.index_of(active_id)
        new_index = self.index_of(over_id)
        if old_index == new_index:
            return
        category = self._categories.pop(old_index)
        self._categories.insert(new_index, category)
        self._renumber()

    def _renumber(self) -> None:
        self._categories = [
            c if c.priority == i else c.model_copy(update={"priority": i})
            for i, c in enumerate(self._categories)
        ]

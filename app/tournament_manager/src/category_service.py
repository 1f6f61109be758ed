import logging
import threading
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from ..schemas.schemas import (
    AllocatedCategory,
    CategoryDefinition,
    CategoryInput,
    CategoryTemplate,
    CategoryType,
    CategoryUpdate,
)
from ..schemas.store import InMemoryCategoryStore, RowStore
from .allocation import allocate
from .core import CategoryNotFoundError, InvalidCategoryOrderError

logger = logging.getLogger(__name__)

CATEGORY_TEMPLATES: tuple[CategoryTemplate, ...] = (
    CategoryTemplate(name="Open Category", type=CategoryType.OPEN, description="All players eligible"),
    CategoryTemplate(name="Under 18 Boys", type=CategoryType.U18_BOY, description="Male players under 18"),
    CategoryTemplate(name="Under 18 Girls", type=CategoryType.U18_GIRL, description="Female players under 18"),
)

# Fields that may not be cleared by sending null in a partial update.
_REQUIRED_UPDATE_FIELDS = ("name", "type", "filters", "allow_repetition")


def _new_category_id() -> str:
    return uuid.uuid4().hex


class TournamentSession:
    """Owns the row store and category set; every mutation re-runs allocation.

    The allocated view is replaced wholesale after each mutation, under a lock,
    so readers always see a list computed from one consistent snapshot.
    """

    def __init__(self, *, identity_column: str | None = None):
        self.identity_column = identity_column
        self._lock = threading.Lock()
        self._rows = RowStore()
        self._categories = InMemoryCategoryStore()
        self._allocated: list[AllocatedCategory] = []

    @property
    def row_store(self) -> RowStore:
        return self._rows

    @property
    def categories(self) -> list[AllocatedCategory]:
        return list(self._allocated)

    def get_category(self, category_id: str) -> AllocatedCategory:
        for category in self._allocated:
            if category.id == category_id:
                return category
        raise CategoryNotFoundError(category_id)

    def upload(self, row_store: RowStore) -> list[AllocatedCategory]:
        """Replace the row store (no merge) and re-allocate existing categories."""
        with self._lock, self._transaction():
            self._rows = row_store
            logger.info("Row store replaced: %d players, %d columns", row_store.player_count, len(row_store.columns))
            return self._reallocate()

    def add_category(self, data: CategoryInput) -> list[AllocatedCategory]:
        with self._lock, self._transaction():
            definition = CategoryDefinition(**data.model_dump(), id=_new_category_id())
            stored = self._categories.append(definition)
            logger.info("Added category %r (%s) at priority %d", stored.name, stored.id, stored.priority)
            return self._reallocate()

    def update_category(self, category_id: str, changes: CategoryUpdate) -> list[AllocatedCategory]:
        with self._lock, self._transaction():
            current = self._require(category_id)
            updates = changes.model_dump(exclude_unset=True)
            for name in _REQUIRED_UPDATE_FIELDS:
                if updates.get(name, ...) is None:
                    updates.pop(name)
            merged = CategoryDefinition(**{**current.model_dump(), **updates})
            self._categories.replace(merged)
            logger.info("Updated category %s: %s", category_id, sorted(updates))
            return self._reallocate()

    def delete_category(self, category_id: str) -> list[AllocatedCategory]:
        with self._lock, self._transaction():
            self._require(category_id)
            removed = self._categories.remove(category_id)
            logger.info("Deleted category %r (%s)", removed.name, removed.id)
            return self._reallocate()

    def reorder_categories(self, ordered_ids: Sequence[str]) -> list[AllocatedCategory]:
        with self._lock, self._transaction():
            try:
                self._categories.reorder(ordered_ids)
            except ValueError as exc:
                raise InvalidCategoryOrderError(str(exc)) from exc
            logger.info("Reordered categories: %s", list(ordered_ids))
            return self._reallocate()

    def move_category(self, active_id: str, over_id: str) -> list[AllocatedCategory]:
        """Drag-and-drop move: active_id takes over_id's position."""
        with self._lock, self._transaction():
            self._require(active_id)
            self._require(over_id)
            if active_id != over_id:
                self._categories.move(active_id, over_id)
                logger.info("Moved category %s to the slot of %s", active_id, over_id)
            return self._reallocate()

    def reset(self) -> None:
        with self._lock:
            self._rows = RowStore()
            self._categories.clear()
            self._allocated = []

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Roll the row store and category set back if the mutation or its re-allocation fails."""
        rows = self._rows
        categories = self._categories.snapshot()
        try:
            yield
        except Exception as exc:
            self._rows = rows
            self._categories.restore(categories)
            logger.info("Rolled back tournament update: %s", exc)
            raise

    def _require(self, category_id: str) -> CategoryDefinition:
        category = self._categories.get(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    def _reallocate(self) -> list[AllocatedCategory]:
        self._allocated = allocate(
            self._rows.rows,
            self._categories.snapshot(),
            identity_column=self.identity_column,
        )
        return list(self._allocated)

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator
from pydantic.alias_generators import to_camel

CellValue = str | int | float
Row = dict[str, CellValue]


class FilterType(str, Enum):
    EQUAL = "equal"
    GREATER = "greater"
    LESS = "less"
    CONTAINS = "contains"


class CategoryType(str, Enum):
    OPEN = "Open"
    U18_BOY = "U18 Boy"
    U18_GIRL = "U18 Girl"
    CUSTOM = "Custom"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Filter(CamelModel):
    filter_column: str = Field(min_length=1)
    filter_type: FilterType = FilterType.EQUAL
    filter_value: CellValue | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.filter_value is None or self.filter_value == ""


def _normalize_limit(value):
    # 0 behaves like "no limit", matching a falsy limit in the UI form.
    if value == 0:
        return None
    return value


class CategoryInput(CamelModel):
    """Fields a client supplies when creating a category."""

    name: str = Field(min_length=1)
    type: CategoryType = CategoryType.CUSTOM
    filters: list[Filter] = Field(default_factory=list)
    allow_repetition: bool = False
    limit: PositiveInt | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("limit", mode="before")
    @classmethod
    def _zero_limit_is_unlimited(cls, value):
        return _normalize_limit(value)


class CategoryUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""

    name: str | None = Field(default=None, min_length=1)
    type: CategoryType | None = None
    filters: list[Filter] | None = None
    allow_repetition: bool | None = None
    limit: PositiveInt | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("limit", mode="before")
    @classmethod
    def _zero_limit_is_unlimited(cls, value):
        return _normalize_limit(value)


class CategoryDefinition(CategoryInput):
    """A stored category: the authoritative definition without derived players."""

    id: str
    priority: int = 0

    @property
    def is_open(self) -> bool:
        return self.type == CategoryType.OPEN


class AllocatedCategory(CategoryDefinition):
    """Read-only view of a category together with the players allocated to it."""

    model_config = ConfigDict(frozen=True)

    players: list[Row] = Field(default_factory=list)


class CategoryTemplate(CamelModel):
    name: str
    type: CategoryType
    description: str


class CategoryOrder(CamelModel):
    ids: list[str]


class CategoryMove(CamelModel):
    active_id: str
    over_id: str


class TournamentSummary(CamelModel):
    columns: list[str] = Field(default_factory=list)
    player_count: int = 0
    category_count: int = 0


class RowsPage(CamelModel):
    columns: list[str] = Field(default_factory=list)
    total: int = 0
    rows: list[Row] = Field(default_factory=list)

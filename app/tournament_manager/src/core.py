from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def configure_logging() -> None:
    """Configure basic logging once."""
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@dataclass(frozen=True)
class Settings:
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    identity_column: str | None = None
    host: str = "127.0.0.1"
    port: int = 8000


def _env_positive_int(name: str, default: int) -> int:
    """Read a positive int from the environment, falling back to default."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    """Build Settings from TOURNAMENT_* environment variables."""
    identity_column = (os.environ.get("TOURNAMENT_IDENTITY_COLUMN") or "").strip() or None
    return Settings(
        max_upload_bytes=_env_positive_int("TOURNAMENT_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        identity_column=identity_column,
        host=os.environ.get("TOURNAMENT_HOST", "127.0.0.1"),
        port=_env_positive_int("TOURNAMENT_PORT", 8000),
    )


class TournamentManagerError(Exception):
    """Base exception for tournament manager failures."""


class SpreadsheetError(TournamentManagerError, ValueError):
    """Raised when an uploaded spreadsheet cannot be turned into rows."""


class UnsupportedSpreadsheetError(SpreadsheetError):
    """Raised when the upload is not an .xlsx/.xls file."""


@dataclass(frozen=True)
class SpreadsheetTooLargeError(SpreadsheetError):
    """Raised when the upload exceeds the configured size ceiling."""

    size: int
    limit: int

    def __str__(self) -> str:
        return f"File size must be less than {self.limit // (1024 * 1024)}MB (got {self.size} bytes)"


class SpreadsheetFormatError(SpreadsheetError):
    """Raised when the workbook is unreadable or has no usable rows."""


class CategoryNotFoundError(TournamentManagerError, KeyError):
    """Raised when a category id is not in the current set."""

    def __init__(self, category_id: str):
        super().__init__(category_id)
        self.category_id = category_id

    def __str__(self) -> str:
        return f"Category not found: {self.category_id}"


class InvalidCategoryOrderError(TournamentManagerError, ValueError):
    """Raised when a reorder request is not a permutation of the current ids."""

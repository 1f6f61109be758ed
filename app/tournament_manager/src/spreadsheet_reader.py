from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from io import BytesIO
from pathlib import PurePath
from typing import Any

import openpyxl
import xlrd

from ..schemas.schemas import CellValue, Row
from ..schemas.store import RowStore
from .core import (
    DEFAULT_MAX_UPLOAD_BYTES,
    SpreadsheetFormatError,
    SpreadsheetTooLargeError,
    UnsupportedSpreadsheetError,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xls")


def _normalize_cell(value: Any) -> CellValue:
    """Convert a raw workbook cell into a row value ("" for blanks)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _build_headers(raw_header: Sequence[Any]) -> list[str]:
    """Turn the header row into unique column names."""
    headers: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(raw_header):
        name = "" if _is_blank(cell) else str(_normalize_cell(cell)).strip()
        if not name:
            name = f"Column {i + 1}"
        count = seen.get(name, 0) + 1
        seen[name] = count
        headers.append(name if count == 1 else f"{name} ({count})")
    return headers


def rows_from_table(table: Sequence[Sequence[Any]]) -> RowStore:
    """Build a RowStore from a raw 2D table whose first row is the header."""
    if len(table) < 2:
        raise SpreadsheetFormatError("Excel file must contain at least a header row and one data row")

    headers = _build_headers(table[0])
    rows: list[Row] = []
    for raw in table[1:]:
        cells = list(raw or ())
        if all(_is_blank(c) for c in cells):
            continue
        row: Row = {}
        for col_index, header in enumerate(headers):
            row[header] = _normalize_cell(cells[col_index]) if col_index < len(cells) else ""
        rows.append(row)

    if not rows:
        raise SpreadsheetFormatError("No valid data found in the Excel file")

    return RowStore.from_rows(headers, rows)


def _read_xlsx_table(content: bytes) -> list[tuple[Any, ...]]:
    wb = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
    try:
        if not wb.worksheets:
            return []
        return [tuple(r) for r in wb.worksheets[0].iter_rows(values_only=True)]
    finally:
        wb.close()


def _xls_cell_value(cell: Any, datemode: int) -> Any:
    """xlrd stores dates as float serials and booleans as 0/1; recover the real values."""
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode)
        except xlrd.xldate.XLDateError:
            return cell.value
    return cell.value


def _read_xls_table(content: bytes) -> list[list[Any]]:
    book = xlrd.open_workbook(file_contents=content)
    try:
        if book.nsheets == 0:
            return []
        sheet = book.sheet_by_index(0)
        return [[_xls_cell_value(c, book.datemode) for c in sheet.row(i)] for i in range(sheet.nrows)]
    finally:
        book.release_resources()


def validate_upload(filename: str, size: int, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> str:
    """Check extension and size, returning the lower-cased extension."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedSpreadsheetError("Please upload a valid Excel file (.xlsx or .xls)")
    if size > max_bytes:
        raise SpreadsheetTooLargeError(size=size, limit=max_bytes)
    return suffix


def read_spreadsheet(filename: str, content: bytes, *, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> RowStore:
    """Parse the first worksheet of an uploaded .xlsx/.xls file into a RowStore."""
    suffix = validate_upload(filename, len(content), max_bytes)

    reader = _read_xlsx_table if suffix == ".xlsx" else _read_xls_table
    try:
        table = reader(content)
    except Exception as exc:
        logger.info("Could not open workbook %s: %s", filename, exc)
        raise SpreadsheetFormatError("Failed to process Excel file") from exc

    store = rows_from_table(table)
    logger.info("Read %d players across %d columns from %s", store.player_count, len(store.columns), filename)
    return store

"""Excel (``.xlsx``) bank statement parser.

The workbook is read with openpyxl in read-only mode with cached formula
values. The sheet is the first one whose name mentions transactions or a
statement, else the active sheet. Cells are rendered as text (dates as ISO
``YYYY-MM-DD``, whole floats without a trailing ``.0``) and handed to
:func:`~bank_import.ingest.csv_statement.parse_rows`, so header search, bank
formats and amount rules are the same as for CSV.
"""

from __future__ import annotations

import zipfile
from datetime import date, datetime
from io import BytesIO
from typing import Any

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import StatementParseError
from ..logging_setup import get_logger
from ..models import ParseResult
from .csv_statement import parse_rows

_logger = get_logger("bank_import.ingest.excel")

_SHEET_KEYWORDS = ("transaction", "statement", "account", "history", "ledger")


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _pick_sheet(workbook: Any) -> Any:
    for sheet in workbook.worksheets:
        title = sheet.title.lower()
        if any(keyword in title for keyword in _SHEET_KEYWORDS):
            return sheet
    return workbook.active or workbook.worksheets[0]


def parse_xlsx_bytes(content: bytes, bank_hint: str | None = None) -> ParseResult:
    try:
        workbook = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise StatementParseError(f"Could not read Excel workbook: {e}") from e
    try:
        if not workbook.worksheets:
            raise StatementParseError("Excel file contains no sheets")
        sheet = _pick_sheet(workbook)
        rows = [
            [_cell_text(v) for v in row] for row in sheet.iter_rows(values_only=True)
        ]
        _logger.debug("read sheet %r: %d rows", sheet.title, len(rows))
    finally:
        workbook.close()
    return parse_rows(rows, bank_hint, file_type="xlsx")


__all__ = ["parse_xlsx_bytes"]

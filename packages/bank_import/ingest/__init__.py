"""Statement file intake: validation, file-type detection and parsing.

CSV and Excel ``.xlsx`` statements have parsers. Legacy ``.xls`` workbooks and
PDF statements are recognized file types but are rejected with
:class:`~bank_import.errors.UnsupportedFileTypeError` until a parser is
registered for them in ``_PARSERS``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePath

from ..config import MAX_FILE_BYTES_DEFAULT
from ..errors import FileTooLargeError, StatementParseError, UnsupportedFileTypeError
from ..logging_setup import get_logger
from ..models import FileType, ParseResult
from .csv_statement import parse_csv_text
from .excel_statement import parse_xlsx_bytes
from .formats import BANK_FORMATS, BankFormat

_logger = get_logger("bank_import.ingest")

_EXTENSIONS: dict[str, FileType] = {
    ".csv": "csv",
    ".xlsx": "xlsx",
    ".xls": "xls",
    ".pdf": "pdf",
}
_CONTENT_TYPES: dict[str, FileType] = {
    "text/csv": "csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel": "xls",
    "application/pdf": "pdf",
}

_UNSUPPORTED_MESSAGE = "Unsupported file type. Please upload a CSV, Excel (xlsx/xls), or PDF file."


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Older bank portals export Windows-1252/Latin-1.
        return content.decode("latin-1")


_PARSERS: dict[FileType, Callable[[bytes, str | None], ParseResult]] = {
    "csv": lambda content, hint: parse_csv_text(_decode(content), hint),
    "xlsx": parse_xlsx_bytes,
}


def detect_file_type(file_name: str, content_type: str | None = None) -> FileType | None:
    """File type from the extension, else the MIME type; ``None`` if neither fits."""

    suffix = PurePath(file_name).suffix.lower()
    if suffix in _EXTENSIONS:
        return _EXTENSIONS[suffix]
    if content_type:
        return _CONTENT_TYPES.get(content_type.split(";", 1)[0].strip().lower())
    return None


def validate_file(
    size: int,
    file_name: str,
    *,
    content_type: str | None = None,
    max_bytes: int = MAX_FILE_BYTES_DEFAULT,
) -> FileType:
    """Check size and type before reading; returns the detected file type."""

    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)
    file_type = detect_file_type(file_name, content_type)
    if file_type is None:
        raise UnsupportedFileTypeError(_UNSUPPORTED_MESSAGE)
    return file_type


def parse_statement(
    content: bytes,
    *,
    file_name: str,
    bank_hint: str | None = None,
    content_type: str | None = None,
    max_bytes: int = MAX_FILE_BYTES_DEFAULT,
) -> ParseResult:
    """Validate and parse a statement upload.

    Raises a :class:`~bank_import.errors.StatementInputError` subclass for
    oversized, unsupported, empty or unparseable files.
    """

    file_type = validate_file(
        len(content), file_name, content_type=content_type, max_bytes=max_bytes
    )
    if not content.strip():
        raise StatementParseError("File is empty or has insufficient data")
    parser = _PARSERS.get(file_type)
    if parser is None:
        raise UnsupportedFileTypeError(
            f"{file_type.upper()} statements are not supported yet; export the statement as CSV"
        )
    result = parser(content, bank_hint)
    _logger.info(
        "parsed %s: %d transactions (%s), %d warnings",
        file_name,
        len(result.transactions),
        result.bank_name or "unknown bank",
        len(result.warnings),
    )
    return result


def supported_banks() -> list[BankFormat]:
    return list(BANK_FORMATS.values())


__all__ = [
    "detect_file_type",
    "parse_statement",
    "supported_banks",
    "validate_file",
]

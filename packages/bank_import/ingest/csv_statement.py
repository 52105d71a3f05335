"""CSV bank statement parser.

Turns the text of a CSV export into :class:`~bank_import.models.NormalizedTransaction`
rows. Parsing uses the stdlib :mod:`csv` module (quoted fields, embedded
delimiters, doubled quotes); the delimiter is sniffed among ``, ; TAB |``.

Layout handling:

- The header row is the first row (within a short preamble) in which both a
  date and a description column can be identified. Preamble lines are
  scanned for an account number.
- The bank format comes from the caller's hint when given, else from the
  header names (see :mod:`bank_import.ingest.formats`).
- Amount comes from a single signed amount column, or from credit minus debit
  when the amount cell is absent or empty.

Per-row problems (bad date, no amount) become warnings and the row is
dropped; rows without a description or with a zero amount are dropped
silently. A file with no usable header or no transactions at all raises
:class:`~bank_import.errors.StatementParseError`.

:func:`parse_rows` holds the layout handling and is shared with the Excel
parser, which feeds it worksheet rows rendered as text.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import StringIO

from ..errors import StatementParseError
from ..logging_setup import get_logger
from ..models import FileType, NormalizedTransaction, ParseResult
from .formats import (
    COMMON_DATE_FORMATS,
    REFERENCE_COLUMNS,
    BankFormat,
    detect_format,
    find_column,
    format_for_hint,
)

_logger = get_logger("bank_import.ingest.csv")

_DELIMITERS = ",;\t|"
_MAX_PREAMBLE_ROWS = 20
_CURRENCY_PREFIXES = ("NGN", "₦", "$", "€", "£", "¥", "N")
_DRCR_SUFFIX = re.compile(r"^(?P<value>.*?)\s*(?P<marker>DR|CR)\.?$", re.IGNORECASE)
_ACCOUNT_NUMBER = re.compile(
    r"account\s*(?:number|no\.?|#)?\s*[:\-]?\s*(?P<number>\d[\d\s-]{5,}\d)",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------


def parse_amount(raw: str | None) -> Decimal | None:
    """Parse a money cell; ``None`` for an empty cell.

    Accepts thousands separators, currency prefixes (``₦``, ``NGN``, ``N``,
    ``$``...), a leading ``-``, surrounding parentheses and a trailing
    ``DR``/``CR`` marker (``DR`` means money out).
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s or s == "-":
        return None

    negative = False
    m = _DRCR_SUFFIX.match(s)
    if m and m.group("value"):
        s = m.group("value").strip()
        negative = m.group("marker").upper() == "DR"

    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        for prefix in _CURRENCY_PREFIXES:
            if s.upper().startswith(prefix) and len(s) > len(prefix):
                s = s[len(prefix) :].lstrip()
                changed = True
                break
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").replace(" ", "")
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -abs(d) if negative else d


def parse_date(raw: str | None, formats: Sequence[str] = ()) -> date | None:
    """Try ``formats`` then the common fallbacks; ``None`` when nothing fits.

    A trailing time component (``15/01/2024 10:32``) is ignored.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    candidates = [s]
    first = s.split()[0]
    if first != s:
        candidates.append(first)
    if "T" in first:
        candidates.append(first.split("T", 1)[0])

    seen: set[str] = set()
    for fmt in (*formats, *COMMON_DATE_FORMATS):
        if fmt in seen:
            continue
        seen.add(fmt)
        for value in candidates:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
    return None


# ---------------------------------------------------------------------------
# Layout detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnMap:
    date: int
    description: int
    amount: int | None = None
    credit: int | None = None
    debit: int | None = None
    balance: int | None = None
    reference: int | None = None


def map_columns(headers: Sequence[str], fmt: BankFormat) -> ColumnMap | None:
    """Locate the columns a format needs; ``None`` when required ones are missing."""

    date_idx = find_column(headers, fmt.date_columns)
    desc_idx = find_column(headers, fmt.description_columns)
    if date_idx is None or desc_idx is None:
        return None
    credit_idx = find_column(headers, fmt.credit_columns)
    debit_idx = find_column(headers, fmt.debit_columns)
    amount_idx = find_column(headers, fmt.amount_columns)
    # "CR Amount" / "DR Amount" are credit/debit columns, not a signed amount.
    if amount_idx is not None and amount_idx in (credit_idx, debit_idx):
        amount_idx = None
    if amount_idx is None and credit_idx is None and debit_idx is None:
        return None
    taken = {date_idx, desc_idx}
    reference_idx = find_column(headers, REFERENCE_COLUMNS)
    if reference_idx in taken:
        reference_idx = None
    return ColumnMap(
        date=date_idx,
        description=desc_idx,
        amount=amount_idx,
        credit=credit_idx,
        debit=debit_idx,
        balance=find_column(headers, fmt.balance_columns),
        reference=reference_idx,
    )


def sniff_delimiter(text: str) -> str:
    sample = "\n".join(text.splitlines()[:_MAX_PREAMBLE_ROWS + 5])
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS).delimiter
    except csv.Error:
        # Fall back to the delimiter that occurs most on the densest line.
        best, best_count = ",", 0
        for line in sample.splitlines():
            for d in _DELIMITERS:
                n = line.count(d)
                if n > best_count:
                    best, best_count = d, n
        return best


def _cell(row: Sequence[str], idx: int | None) -> str | None:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def parse_csv_text(text: str, bank_hint: str | None = None) -> ParseResult:
    if not text.strip():
        raise StatementParseError("File is empty or has insufficient data")

    delimiter = sniff_delimiter(text)
    with StringIO(text, newline="") as f:
        rows = list(csv.reader(f, delimiter=delimiter))
    return parse_rows(rows, bank_hint, file_type="csv")


def parse_rows(
    rows: Sequence[Sequence[str]], bank_hint: str | None = None, *, file_type: FileType
) -> ParseResult:
    """Parse a statement already split into cells (CSV rows, worksheet rows)."""

    table = [[c.strip() for c in row] for row in rows]
    table = [r for r in table if any(r)]
    if len(table) < 2:
        raise StatementParseError("File is empty or has insufficient data")

    hinted = format_for_hint(bank_hint)
    header_pos: int | None = None
    fmt: BankFormat | None = None
    columns: ColumnMap | None = None
    for pos, row in enumerate(table[:_MAX_PREAMBLE_ROWS]):
        candidate = hinted or detect_format(row)
        mapped = map_columns(row, candidate)
        if mapped is not None:
            header_pos, fmt, columns = pos, candidate, mapped
            break
    if header_pos is None or fmt is None or columns is None:
        raise StatementParseError(
            "Could not identify required columns (date, description, amount)"
        )

    account_number = _find_account_number(table[:header_pos])
    headers = table[header_pos]
    transactions: list[NormalizedTransaction] = []
    warnings: list[str] = []

    for offset, row in enumerate(table[header_pos + 1 :], start=header_pos + 2):
        try:
            tx = _parse_row(row, headers, columns, fmt)
        except ValueError as e:
            warnings.append(f"Row {offset}: {e}")
            continue
        if tx is not None:
            transactions.append(tx)

    if warnings:
        _logger.info("%d statement rows dropped with warnings", len(warnings))
    if not transactions:
        raise StatementParseError("No transactions found in file")

    dates = sorted(tx.date for tx in transactions)
    return ParseResult(
        transactions=tuple(transactions),
        file_type=file_type,
        bank_name=fmt.name,
        account_number=account_number,
        period_start=dates[0],
        period_end=dates[-1],
        warnings=tuple(warnings),
    )


def _find_account_number(preamble: Sequence[Sequence[str]]) -> str | None:
    for row in preamble:
        m = _ACCOUNT_NUMBER.search(" ".join(row))
        if m:
            return re.sub(r"[\s-]", "", m.group("number"))
    return None


def _parse_row(
    row: Sequence[str], headers: Sequence[str], columns: ColumnMap, fmt: BankFormat
) -> NormalizedTransaction | None:
    date_raw = _cell(row, columns.date)
    tx_date = parse_date(date_raw, fmt.date_formats)
    if tx_date is None:
        raise ValueError(f"Invalid date: {date_raw!r}")

    description = (_cell(row, columns.description) or "").strip()
    if not description:
        return None

    amount = parse_amount(_cell(row, columns.amount))
    if amount is None:
        credit = parse_amount(_cell(row, columns.credit))
        debit = parse_amount(_cell(row, columns.debit))
        if credit is None and debit is None:
            raise ValueError("Could not determine transaction amount")
        amount = abs(credit or Decimal(0)) - abs(debit or Decimal(0))
    if amount == 0:
        return None

    try:
        balance = parse_amount(_cell(row, columns.balance))
    except ValueError:
        balance = None

    raw_fields = {
        header: row[idx]
        for idx, header in enumerate(headers)
        if idx < len(row) and header and row[idx]
    }
    return NormalizedTransaction(
        date=tx_date,
        description=description,
        amount=amount,
        balance=balance,
        reference=_cell(row, columns.reference),
        raw_fields=raw_fields,
    )


__all__ = [
    "ColumnMap",
    "map_columns",
    "parse_amount",
    "parse_csv_text",
    "parse_date",
    "parse_rows",
    "sniff_delimiter",
]

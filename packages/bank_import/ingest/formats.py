"""Column-name patterns and date formats for supported bank statement exports.

Header matching is case-insensitive substring matching: a header
``"Transaction Date (WAT)"`` matches the pattern ``"transaction date"``.
Patterns are tried in order, so list the most specific first.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BankFormat:
    key: str
    name: str
    date_columns: tuple[str, ...]
    description_columns: tuple[str, ...]
    amount_columns: tuple[str, ...]
    credit_columns: tuple[str, ...] = ()
    debit_columns: tuple[str, ...] = ()
    balance_columns: tuple[str, ...] = ()
    # strptime formats, tried in order before the shared fallbacks
    date_formats: tuple[str, ...] = ()


REFERENCE_COLUMNS: tuple[str, ...] = (
    "reference",
    "trans ref",
    "transaction id",
    "txn id",
    "ref",
)

# Shared fallbacks, appended after a format's own list.
COMMON_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d-%b-%Y",
    "%d %b %Y",
    "%d-%b-%y",
    "%d/%m/%y",
    "%Y/%m/%d",
)

BANK_FORMATS: dict[str, BankFormat] = {
    "gtbank": BankFormat(
        key="gtbank",
        name="GTBank",
        date_columns=("transaction date", "txn date", "date"),
        description_columns=("description", "narration", "details"),
        amount_columns=("amount",),
        credit_columns=("credit", "cr"),
        debit_columns=("debit", "dr"),
        balance_columns=("running balance", "balance"),
        date_formats=("%d-%b-%Y", "%d/%m/%Y", "%Y-%m-%d"),
    ),
    "access": BankFormat(
        key="access",
        name="Access Bank",
        date_columns=("trans date", "transaction date", "date"),
        description_columns=("narration", "description"),
        amount_columns=("amount",),
        credit_columns=("credit",),
        debit_columns=("debit",),
        balance_columns=("balance",),
        date_formats=("%d-%b-%Y", "%d/%m/%Y"),
    ),
    "firstbank": BankFormat(
        key="firstbank",
        name="First Bank",
        date_columns=("trans date", "value date", "date"),
        description_columns=("narration", "description", "remarks"),
        amount_columns=("amount",),
        credit_columns=("cr amount", "credit"),
        debit_columns=("dr amount", "debit"),
        balance_columns=("book balance", "balance"),
        date_formats=("%d/%m/%Y", "%d-%m-%Y"),
    ),
    "uba": BankFormat(
        key="uba",
        name="UBA",
        date_columns=("trans date", "posted date", "date"),
        description_columns=("narration", "description"),
        amount_columns=("amount",),
        credit_columns=("credit",),
        debit_columns=("debit",),
        balance_columns=("balance",),
        date_formats=("%d-%b-%Y", "%d/%m/%Y"),
    ),
    "zenith": BankFormat(
        key="zenith",
        name="Zenith Bank",
        date_columns=("transaction date", "value date", "date"),
        description_columns=("description", "narration"),
        amount_columns=("amount",),
        credit_columns=("credit", "cr"),
        debit_columns=("debit", "dr"),
        balance_columns=("balance",),
        date_formats=("%d/%m/%Y", "%d-%b-%Y"),
    ),
    "generic": BankFormat(
        key="generic",
        name="Generic",
        date_columns=("transaction date", "trans date", "posted date", "value date", "date"),
        description_columns=("description", "narration", "details", "remarks", "memo"),
        amount_columns=("transaction amount", "amount"),
        credit_columns=("credit", "deposit", "money in", "cr"),
        debit_columns=("debit", "withdrawal", "money out", "dr"),
        balance_columns=("running balance", "available balance", "balance"),
        date_formats=("%d/%m/%Y", "%m/%d/%Y", "%Y-%m-%d", "%d-%b-%Y", "%d-%m-%Y"),
    ),
}

GENERIC = BANK_FORMATS["generic"]


def _normalize_key(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


_ALIASES: dict[str, str] = {
    "gtb": "gtbank",
    "guarantytrust": "gtbank",
    "guarantytrustbank": "gtbank",
    "accessbank": "access",
    "firstbankofnigeria": "firstbank",
    "unitedbankforafrica": "uba",
    "zenithbank": "zenith",
}


def format_for_hint(bank_hint: str | None) -> BankFormat | None:
    """Resolve a user-supplied bank name to a format; unknown names → generic."""

    if not bank_hint or not bank_hint.strip():
        return None
    key = _normalize_key(bank_hint)
    key = _ALIASES.get(key, key)
    for fmt in BANK_FORMATS.values():
        if key in (fmt.key, _normalize_key(fmt.name)):
            return fmt
    return GENERIC


def find_column(headers: Sequence[str], patterns: Sequence[str]) -> int | None:
    """Index of the first header containing a pattern; patterns take priority."""

    lowered = [h.strip().lower() for h in headers]
    for pattern in patterns:
        for idx, header in enumerate(lowered):
            if _header_matches(header, pattern):
                return idx
    return None


def _header_matches(header: str, pattern: str) -> bool:
    # Two-letter patterns ("cr", "dr") must be a whole word, else "description"
    # would match "cr".
    if len(pattern) <= 3:
        return pattern in header.replace("(", " ").replace(")", " ").replace(".", " ").split()
    return pattern in header


def detect_format(headers: Sequence[str]) -> BankFormat:
    """First bank-specific format with at least two date/description hits."""

    lowered = [h.strip().lower() for h in headers]
    for fmt in BANK_FORMATS.values():
        if fmt is GENERIC:
            continue
        hits = sum(
            1
            for pattern in (*fmt.date_columns, *fmt.description_columns)
            if any(_header_matches(h, pattern) for h in lowered)
        )
        if hits >= 2:
            return fmt
    return GENERIC


__all__ = [
    "BANK_FORMATS",
    "BankFormat",
    "COMMON_DATE_FORMATS",
    "GENERIC",
    "REFERENCE_COLUMNS",
    "detect_format",
    "find_column",
    "format_for_hint",
]

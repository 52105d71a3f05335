"""Counterparty name heuristics for bank descriptions.

Both helpers are best-effort: returning ``None`` is always acceptable, while
returning a name that still contains transaction mechanics (channel codes,
reference numbers, dates) is not.
"""

from __future__ import annotations

import re

# Applied in order; each match is replaced with a single space.
_VENDOR_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Dates while their separators are intact: 05/01/2024, 2024-01-05, DOE_05-01-24
    re.compile(r"(?<!\d)\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}(?!\d)"),
    re.compile(r"(?<!\d)\d{4}[/.\-]\d{1,2}[/.\-]\d{1,2}(?!\d)"),
    # Separators before any \b pattern: NIP_TRANSFER, WEB-POS_123
    re.compile(r"[_\-/\\|:*#]+"),
    # Channel/mechanics tokens
    re.compile(r"\b(?:pos|atm|web|nip|transfer|trf|tfr|mc)\b", re.IGNORECASE),
    # Long digit runs: references, card/account numbers
    re.compile(r"\b\d{6,}\b"),
    re.compile(r"\b(?:from|to|for|via)\b", re.IGNORECASE),
)
_WHITESPACE = re.compile(r"\s+")

_MIN_VENDOR_LEN = 3
_MAX_VENDOR_LEN = 100


def _title_word(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def extract_vendor_name(description: str) -> str | None:
    """Return a cleaned, title-cased counterparty name or ``None``.

    >>> extract_vendor_name("POS/WEB PURCHASE SHOPRITE LEKKI 12345678")
    'Purchase Shoprite Lekki'
    """

    cleaned = description
    for pattern in _VENDOR_STRIP_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    if len(cleaned) < _MIN_VENDOR_LEN or len(cleaned) > _MAX_VENDOR_LEN:
        return None
    return " ".join(_title_word(w) for w in cleaned.split(" "))


_CUSTOMER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"from\s+([A-Z][A-Za-z\s]+?)(?:\s+(?:ltd|limited|plc|inc|corp))?(?:\s|$)",
        re.IGNORECASE,
    ),
    re.compile(r"payment\s+(?:from|by)\s+([A-Z][A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)+)"),
)

DEFAULT_CUSTOMER_NAME = "Bank Import Customer"


def extract_customer_name(description: str) -> str | None:
    """Guess the paying customer's name from an income description.

    All-caps captures are rejected since they are usually bank abbreviations
    rather than names.
    """

    for pattern in _CUSTOMER_PATTERNS:
        m = pattern.search(description)
        if not m or not m.group(1):
            continue
        name = m.group(1).strip()
        if 2 <= len(name) <= 50 and name != name.upper():
            return name
    return None


__all__ = ["DEFAULT_CUSTOMER_NAME", "extract_customer_name", "extract_vendor_name"]

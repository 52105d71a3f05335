"""Runtime settings for imports, read from the process environment.

The CLI loads a ``.env`` from the working directory (python-dotenv, without
overriding variables already set) before calling :meth:`ImportSettings.from_env`.
Library callers may also construct :class:`ImportSettings` directly.

Variables
---------
- ``DATABASE_URL``: SQLAlchemy URL for the ledger database.
- ``BANK_IMPORT_DEFAULT_CURRENCY``: currency stamped on new expenses/invoices.
- ``BANK_IMPORT_AUTO_CREATE_INVOICES``: create a paid invoice for unmatched
  income (``1/true/yes`` or ``0/false/no``).
- ``BANK_IMPORT_MIN_MATCH_CONFIDENCE``: matches below this confidence are not
  applied. The default 0.4 equals the matcher's own floor, so every match it
  returns is applied, including amount-only matches within 1% of an invoice
  total (0.50, up to 0.60 with a recent issue date), which mark the invoice
  paid. ``0.6`` is the stricter setting: an amount-only match then also needs
  an invoice issued within the last week.
- ``BANK_IMPORT_MAX_FILE_BYTES``: upload size limit.
- ``BANK_IMPORT_STORE_TIMEOUT_SEC``: connect/statement timeout for store calls.
- ``BANK_IMPORT_DEDUP_LOOKBACK``: cap on existing records loaded for duplicate
  checks (most recent first); unset loads all of them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

MAX_FILE_BYTES_DEFAULT = 10 * 1024 * 1024


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean flag, got {raw!r}")


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _env_int(env: Mapping[str, str], key: str, default: int | None) -> int | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class ImportSettings:
    database_url: str | None = None
    default_currency: str = "NGN"
    auto_create_invoices: bool = True
    min_match_confidence: float = 0.4
    max_file_bytes: int = MAX_FILE_BYTES_DEFAULT
    store_timeout_sec: float = 10.0
    dedup_lookback: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_match_confidence <= 1.0:
            raise ValueError("min_match_confidence must be within [0,1]")
        if self.max_file_bytes <= 0:
            raise ValueError("max_file_bytes must be positive")
        if self.store_timeout_sec <= 0:
            raise ValueError("store_timeout_sec must be positive")
        if self.dedup_lookback is not None and self.dedup_lookback <= 0:
            raise ValueError("dedup_lookback must be positive when set")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter code")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ImportSettings:
        e = os.environ if env is None else env
        max_bytes = _env_int(e, "BANK_IMPORT_MAX_FILE_BYTES", MAX_FILE_BYTES_DEFAULT)
        return cls(
            database_url=e.get("DATABASE_URL") or None,
            default_currency=(e.get("BANK_IMPORT_DEFAULT_CURRENCY") or "NGN").strip().upper(),
            auto_create_invoices=_env_bool(e, "BANK_IMPORT_AUTO_CREATE_INVOICES", True),
            min_match_confidence=_env_float(e, "BANK_IMPORT_MIN_MATCH_CONFIDENCE", 0.4),
            max_file_bytes=max_bytes if max_bytes is not None else MAX_FILE_BYTES_DEFAULT,
            store_timeout_sec=_env_float(e, "BANK_IMPORT_STORE_TIMEOUT_SEC", 10.0),
            dedup_lookback=_env_int(e, "BANK_IMPORT_DEDUP_LOOKBACK", None),
        )


__all__ = ["ImportSettings", "MAX_FILE_BYTES_DEFAULT"]

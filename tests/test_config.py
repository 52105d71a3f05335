from __future__ import annotations

import pytest

from bank_import.config import MAX_FILE_BYTES_DEFAULT, ImportSettings


def test_defaults_from_empty_env() -> None:
    s = ImportSettings.from_env({})
    assert s == ImportSettings()
    assert s.database_url is None
    assert s.default_currency == "NGN"
    assert s.auto_create_invoices is True
    assert s.min_match_confidence == 0.4
    assert s.max_file_bytes == MAX_FILE_BYTES_DEFAULT
    assert s.dedup_lookback is None


def test_values_from_env() -> None:
    s = ImportSettings.from_env(
        {
            "DATABASE_URL": "sqlite:///ledger.db",
            "BANK_IMPORT_DEFAULT_CURRENCY": " usd ",
            "BANK_IMPORT_AUTO_CREATE_INVOICES": "No",
            "BANK_IMPORT_MIN_MATCH_CONFIDENCE": "0.75",
            "BANK_IMPORT_MAX_FILE_BYTES": "2048",
            "BANK_IMPORT_STORE_TIMEOUT_SEC": "2.5",
            "BANK_IMPORT_DEDUP_LOOKBACK": "500",
        }
    )
    assert s.database_url == "sqlite:///ledger.db"
    assert s.default_currency == "USD"
    assert s.auto_create_invoices is False
    assert s.min_match_confidence == 0.75
    assert s.max_file_bytes == 2048
    assert s.store_timeout_sec == 2.5
    assert s.dedup_lookback == 500


def test_blank_values_fall_back_to_defaults() -> None:
    s = ImportSettings.from_env(
        {"DATABASE_URL": "", "BANK_IMPORT_DEDUP_LOOKBACK": " ", "BANK_IMPORT_STORE_TIMEOUT_SEC": ""}
    )
    assert s.database_url is None
    assert s.dedup_lookback is None
    assert s.store_timeout_sec == 10.0


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BANK_IMPORT_AUTO_CREATE_INVOICES", "off")
    assert ImportSettings.from_env().auto_create_invoices is False


@pytest.mark.parametrize(
    ("key", "value", "fragment"),
    [
        ("BANK_IMPORT_AUTO_CREATE_INVOICES", "maybe", "boolean"),
        ("BANK_IMPORT_MIN_MATCH_CONFIDENCE", "high", "number"),
        ("BANK_IMPORT_MIN_MATCH_CONFIDENCE", "1.5", "[0,1]"),
        ("BANK_IMPORT_MAX_FILE_BYTES", "10MB", "integer"),
        ("BANK_IMPORT_MAX_FILE_BYTES", "0", "positive"),
        ("BANK_IMPORT_STORE_TIMEOUT_SEC", "-1", "positive"),
        ("BANK_IMPORT_DEDUP_LOOKBACK", "0", "positive"),
        ("BANK_IMPORT_DEFAULT_CURRENCY", "NAIRA", "3-letter"),
    ],
)
def test_invalid_values_are_rejected(key: str, value: str, fragment: str) -> None:
    with pytest.raises(ValueError) as exc:
        ImportSettings.from_env({key: value})
    assert fragment in str(exc.value)

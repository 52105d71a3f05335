from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import openpyxl
import pytest

from bank_import.errors import StatementParseError
from bank_import.ingest import parse_statement


def _save(wb: openpyxl.Workbook, path: Path) -> bytes:
    wb.save(path)
    return path.read_bytes()


def test_statement_sheet_is_found_and_parsed(tmp_path: Path) -> None:
    wb = openpyxl.Workbook()
    cover = wb.active
    cover.title = "Summary"
    cover.append(["Generated by", "Internet Banking"])
    sheet = wb.create_sheet("Account Statement")
    sheet.append(["Account Number", "0123456789"])
    sheet.append([])
    sheet.append(["Trans Date", "Narration", "Debit", "Credit", "Balance"])
    sheet.append([datetime(2024, 1, 5), "POS PURCHASE SHOPRITE", 4500.0, None, 95500.5])
    sheet.append([datetime(2024, 1, 6), "TRANSFER FROM ACME LTD", None, 150000, 245500.5])
    sheet.append([None, None, None, None, None])

    result = parse_statement(_save(wb, tmp_path / "jan.xlsx"), file_name="jan.xlsx")

    assert result.file_type == "xlsx"
    assert result.bank_name == "GTBank"
    assert result.account_number == "0123456789"
    assert [t.amount for t in result.transactions] == [Decimal("-4500"), Decimal("150000")]
    assert [t.date for t in result.transactions] == [date(2024, 1, 5), date(2024, 1, 6)]
    assert result.transactions[0].balance == Decimal("95500.5")
    assert result.transactions[0].raw_fields["Narration"] == "POS PURCHASE SHOPRITE"
    assert (result.period_start, result.period_end) == (date(2024, 1, 5), date(2024, 1, 6))


def test_active_sheet_with_signed_amounts_and_text_dates(tmp_path: Path) -> None:
    wb = openpyxl.Workbook()
    sheet = wb.active
    sheet.append(["Date", "Description", "Amount"])
    sheet.append(["15/01/2024", "NETFLIX.COM", -4400.0])
    sheet.append([date(2024, 1, 16), "PAYMENT RECEIVED", 25000.75])
    sheet.append(["not a date", "BROKEN ROW", 10])

    result = parse_statement(
        _save(wb, tmp_path / "export.xlsx"), file_name="export.xlsx", bank_hint="generic"
    )

    assert result.bank_name == "Generic"
    assert [t.amount for t in result.transactions] == [Decimal("-4400"), Decimal("25000.75")]
    assert result.transactions[0].date == date(2024, 1, 15)
    assert len(result.warnings) == 1
    assert "Invalid date" in result.warnings[0]


def test_corrupt_workbook_is_a_parse_error() -> None:
    with pytest.raises(StatementParseError, match="Could not read Excel workbook"):
        parse_statement(b"PK\x03\x04 not really a zip", file_name="broken.xlsx")


def test_workbook_without_transactions(tmp_path: Path) -> None:
    wb = openpyxl.Workbook()
    wb.active.append(["Date", "Description", "Amount"])
    wb.active.append(["2024-01-01", "ZERO", 0])
    with pytest.raises(StatementParseError):
        parse_statement(_save(wb, tmp_path / "empty.xlsx"), file_name="empty.xlsx")

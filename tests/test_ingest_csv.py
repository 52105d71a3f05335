from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from bank_import.errors import FileTooLargeError, StatementParseError, UnsupportedFileTypeError
from bank_import.ingest import detect_file_type, parse_statement, validate_file
from bank_import.ingest.csv_statement import parse_amount, parse_date
from bank_import.ingest.formats import detect_format, format_for_hint


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("4,500.00", Decimal("4500.00")),
        ("-4,500.00", Decimal("-4500.00")),
        ("(1,234.56)", Decimal("-1234.56")),
        ("₦12,000", Decimal("12000")),
        ("NGN 2,500.50", Decimal("2500.50")),
        ("1,000.00 DR", Decimal("-1000.00")),
        ("1,000.00 CR", Decimal("1000.00")),
        ("+75", Decimal("75")),
    ],
)
def test_parse_amount(raw: str, expected: Decimal) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "-", None])
def test_parse_amount_empty(raw) -> None:
    assert parse_amount(raw) is None


def test_parse_amount_garbage() -> None:
    with pytest.raises(ValueError):
        parse_amount("twelve")


@pytest.mark.parametrize(
    ("raw", "formats", "expected"),
    [
        ("15-Jan-2024", (), date(2024, 1, 15)),
        ("15/01/2024", (), date(2024, 1, 15)),
        ("2024-01-15", (), date(2024, 1, 15)),
        ("2024-01-15T10:22:00", (), date(2024, 1, 15)),
        ("15 Jan 2024", (), date(2024, 1, 15)),
        ("15/01/2024 10:32", (), date(2024, 1, 15)),
        # format order decides ambiguous day/month
        ("02/03/2024", ("%m/%d/%Y",), date(2024, 2, 3)),
        ("02/03/2024", ("%d/%m/%Y",), date(2024, 3, 2)),
    ],
)
def test_parse_date(raw: str, formats: tuple[str, ...], expected: date) -> None:
    assert parse_date(raw, formats) == expected


def test_parse_date_invalid() -> None:
    assert parse_date("not a date") is None
    assert parse_date("") is None


def test_detect_file_type() -> None:
    assert detect_file_type("Statement.CSV") == "csv"
    assert detect_file_type("s.xlsx") == "xlsx"
    assert detect_file_type("s.xls") == "xls"
    assert detect_file_type("s.pdf") == "pdf"
    assert detect_file_type("upload", "text/csv; charset=utf-8") == "csv"
    assert detect_file_type("s.txt") is None


def test_validate_file_limits() -> None:
    assert validate_file(10, "a.csv") == "csv"
    with pytest.raises(FileTooLargeError) as exc:
        validate_file(11 * 1024 * 1024, "a.csv")
    assert "10MB" in str(exc.value)
    with pytest.raises(UnsupportedFileTypeError):
        validate_file(10, "a.docx")


def test_legacy_excel_and_pdf_are_recognized_but_unsupported() -> None:
    for name in ("s.xls", "s.pdf"):
        with pytest.raises(UnsupportedFileTypeError, match="not supported yet"):
            parse_statement(b"binary", file_name=name)


def test_bank_hints() -> None:
    assert format_for_hint("GTBank").name == "GTBank"
    assert format_for_hint("Guaranty Trust Bank").name == "GTBank"
    assert format_for_hint("zenith").name == "Zenith Bank"
    assert format_for_hint("Some Other Bank").name == "Generic"
    assert format_for_hint(None) is None


def test_detect_format_from_headers() -> None:
    # Every format accepts "date", so the first format listed wins ties.
    assert detect_format(["Trans Date", "Narration", "Debit", "Credit"]).name == "GTBank"
    assert detect_format(["Date", "Remarks", "DR Amount", "CR Amount"]).name == "First Bank"
    assert detect_format(["When", "What", "How much"]).name == "Generic"


def test_debit_credit_columns_with_preamble() -> None:
    content = (
        "Account Name:,ACME STUDIOS\n"
        "Account Number:,0123456789\n"
        "\n"
        "Trans Date,Value Date,Narration,Debit,Credit,Balance,Reference\n"
        '05-Jan-2024,05-Jan-2024,"POS PURCHASE SHOPRITE, LEKKI","4,500.00",,"95,500.00",FT001\n'
        "06-Jan-2024,06-Jan-2024,TRANSFER FROM ACME LTD INV-2024-0007,,\"150,000.00\",245500.00,FT002\n"
        "07-Jan-2024,07-Jan-2024,ZERO ROW,,,245500.00,FT003\n"
        "bad-date,08-Jan-2024,SOMETHING,100.00,,245400.00,FT004\n"
    ).encode()
    result = parse_statement(content, file_name="statement.csv")

    assert result.bank_name == "GTBank"
    assert result.account_number == "0123456789"
    assert [t.amount for t in result.transactions] == [Decimal("-4500.00"), Decimal("150000.00")]
    first = result.transactions[0]
    assert first.description == "POS PURCHASE SHOPRITE, LEKKI"
    assert first.reference == "FT001"
    assert first.balance == Decimal("95500.00")
    assert first.raw_fields["Narration"] == "POS PURCHASE SHOPRITE, LEKKI"
    assert (result.period_start, result.period_end) == (date(2024, 1, 5), date(2024, 1, 6))
    # ZERO ROW has no amount at all; bad-date row fails on its date.
    assert len(result.warnings) == 2
    assert any("Invalid date" in w for w in result.warnings)


def test_signed_amount_column_semicolon_delimited() -> None:
    content = (
        "Date;Description;Amount;Balance\n"
        "2024-02-01;NETFLIX.COM;-4400;10000\n"
        "2024-02-02;PAYMENT RECEIVED;25000;35000\n"
    ).encode()
    result = parse_statement(content, file_name="x.csv", bank_hint="generic")
    assert result.bank_name == "Generic"
    assert [t.amount for t in result.transactions] == [Decimal("-4400"), Decimal("25000")]
    assert result.transactions[0].reference is None


def test_first_bank_dr_cr_amount_columns() -> None:
    content = (
        "Date,Remarks,DR Amount,CR Amount,Book Balance\n"
        "15/01/2024,DSTV SUBSCRIPTION,\"12,000.00\",,88000.00\n"
    ).encode()
    result = parse_statement(content, file_name="fbn.csv", bank_hint="firstbank")
    assert result.transactions[0].amount == Decimal("-12000.00")
    assert result.transactions[0].date == date(2024, 1, 15)


def test_bom_and_latin1_are_decoded() -> None:
    utf8 = "\ufeffDate,Description,Amount\n2024-01-01,CAFÉ,-10\n".encode()
    assert parse_statement(utf8, file_name="a.csv").transactions[0].description == "CAFÉ"
    latin1 = "Date,Description,Amount\n2024-01-01,CAFÉ,-10\n".encode("latin-1")
    assert parse_statement(latin1, file_name="a.csv").transactions[0].description == "CAFÉ"


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"Date,Description,Amount\n",
        b"foo,bar\n1,2\n",
        b"Date,Description,Amount\n2024-01-01,ZERO,0\n",
    ],
)
def test_unusable_files_raise_parse_error(content: bytes) -> None:
    with pytest.raises(StatementParseError):
        parse_statement(content, file_name="a.csv")

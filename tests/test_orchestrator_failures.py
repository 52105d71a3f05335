"""Row-level vs batch-level failure handling, using in-memory stores."""

from __future__ import annotations

from datetime import date

import pytest

from bank_import.config import ImportSettings
from bank_import.errors import (
    BatchNotUndoableError,
    StoreError,
    StoreUnavailableError,
)
from bank_import.models import ExistingRecord, NormalizedTransaction, ParseResult
from bank_import.orchestrator import NOT_PROCESSED, ImportBatchOrchestrator

from tests.helpers.fakes import fake_stores

USER = "user-1"


def _parsed(*rows: tuple[str, str]) -> ParseResult:
    return ParseResult(
        transactions=tuple(
            NormalizedTransaction(date=date(2024, 3, i + 1), description=desc, amount=amt)
            for i, (desc, amt) in enumerate(rows)
        )
    )


@pytest.fixture()
def stores():
    return fake_stores()


@pytest.fixture()
def orch(stores) -> ImportBatchOrchestrator:
    return ImportBatchOrchestrator(stores, settings=ImportSettings())


def test_row_store_error_is_recorded_and_batch_completes(orch, stores) -> None:
    stores.expenses.fail["insert_expense"] = [None, StoreError("insert_expense", "constraint"), None]
    result = orch.import_statement(
        USER,
        _parsed(("UBER A", "-100"), ("UBER B", "-200"), ("UBER C", "-300")),
        file_name="m.csv",
    )
    assert result.status == "completed"
    assert result.summary.imported_expenses == 2
    assert result.summary.failed_transactions == 1
    failed = result.transactions[1]
    assert not failed.imported
    assert "constraint" in failed.error
    assert len(result.errors) == 1 and result.errors[0].startswith("Row 2")
    assert stores.batches.batches[result.batch_id].status == "completed"
    assert stores.batches.batches[result.batch_id].failed_transactions == 1


def test_store_unavailable_fails_batch_and_keeps_committed_rows(orch, stores) -> None:
    stores.expenses.fail["insert_expense"] = [None, StoreUnavailableError("insert_expense", "gone")]
    result = orch.import_statement(
        USER,
        _parsed(("UBER A", "-100"), ("UBER B", "-200"), ("UBER C", "-300")),
        file_name="m.csv",
    )
    assert result.status == "failed"
    assert not result.success
    assert len(result.transactions) == 3
    assert result.transactions[0].imported
    assert result.transactions[1].error
    assert result.transactions[2].error == NOT_PROCESSED
    assert len(stores.expenses.expenses) == 1
    batch = stores.batches.batches[result.batch_id]
    assert batch.status == "failed"
    assert batch.error_message
    assert any("store unavailable" in e for e in result.errors)


def test_snapshot_failure_fails_batch_without_writes(orch, stores) -> None:
    stores.expenses.fail["list_existing_records"] = StoreUnavailableError("list", "timeout")
    result = orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")
    assert result.status == "failed"
    assert stores.expenses.expenses == {}
    assert result.transactions[0].error == NOT_PROCESSED


def test_batch_creation_failure_propagates(orch, stores) -> None:
    stores.batches.fail["create_batch"] = StoreUnavailableError("create_batch", "down")
    with pytest.raises(StoreUnavailableError):
        orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")


def test_failed_finalize_is_reported(orch, stores) -> None:
    stores.batches.fail["finalize_batch"] = StoreError("finalize_batch", "nope")
    result = orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")
    assert result.status == "failed"
    assert any("Could not finalize" in e for e in result.errors)
    assert any("Could not record failure" in e for e in result.errors)


def test_matcher_store_error_is_a_row_error(orch, stores) -> None:
    stores.ledger.fail["find_open_invoices"] = [StoreError("find_open_invoices", "bad")]
    result = orch.import_statement(
        USER, _parsed(("CASH DEPOSIT", "100"), ("CASH DEPOSIT", "200")), file_name="m.csv"
    )
    assert result.status == "completed"
    assert result.summary.failed_transactions == 1
    assert result.summary.new_invoices_created == 1


def test_low_confidence_match_is_not_applied(stores) -> None:
    invoice_id = stores.ledger.add_invoice(
        USER, invoice_number="INV-1", total="1000", issue_date=date(2024, 3, 1)
    )
    orch = ImportBatchOrchestrator(stores, settings=ImportSettings(min_match_confidence=0.9))
    result = orch.import_statement(USER, _parsed(("CASH DEPOSIT", "1000")), file_name="m.csv")
    # amount 50 + date 10 = 0.60 < 0.9: a new invoice is created instead
    assert result.transactions[0].matched_invoice_id is None
    assert result.summary.new_invoices_created == 1
    assert stores.ledger.invoices[invoice_id]["status"] == "sent"


def test_dedup_lookback_is_passed_to_store(stores) -> None:
    stores.expenses.existing = [
        ExistingRecord(date=date(2024, 3, 1), amount="100"),
        ExistingRecord(date=date(2024, 3, 2), amount="200"),
    ]
    orch = ImportBatchOrchestrator(stores, settings=ImportSettings(dedup_lookback=1))
    result = orch.import_statement(
        USER, _parsed(("UBER A", "-100"), ("UBER B", "-200")), file_name="m.csv"
    )
    assert result.summary.skipped_transactions == 1
    assert result.summary.imported_expenses == 1


def test_failed_batch_cannot_be_undone(orch, stores) -> None:
    stores.expenses.fail["insert_expense"] = StoreUnavailableError("insert_expense", "gone")
    result = orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")
    with pytest.raises(BatchNotUndoableError):
        orch.undo_batch(USER, result.batch_id)


def test_undo_delete_failure_leaves_batch_completed(orch, stores) -> None:
    result = orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")
    stores.expenses.fail["delete_by_batch"] = [StoreUnavailableError("delete_by_batch", "gone")]
    with pytest.raises(StoreUnavailableError):
        orch.undo_batch(USER, result.batch_id)
    assert stores.batches.batches[result.batch_id].status == "completed"

    retry = orch.undo_batch(USER, result.batch_id)
    assert retry.deleted_expenses == 1
    assert stores.batches.batches[result.batch_id].status == "undone"


@pytest.mark.parametrize(("threshold", "applied"), [(0.4, True), (0.6, False)])
def test_amount_only_match_depends_on_threshold(stores, threshold: float, applied: bool) -> None:
    invoice_id = stores.ledger.add_invoice(
        USER, invoice_number="INV-77", total="1000", issue_date=date(2024, 2, 10)
    )
    orch = ImportBatchOrchestrator(
        stores, settings=ImportSettings(min_match_confidence=threshold)
    )
    result = orch.import_statement(USER, _parsed(("CASH DEPOSIT", "1000")), file_name="m.csv")
    # exact amount 50 + issued 20 days earlier 5 = 0.55
    assert (result.transactions[0].matched_invoice_id == invoice_id) is applied
    assert (stores.ledger.invoices[invoice_id]["status"] == "paid") is applied


def test_programming_errors_are_not_turned_into_row_errors(orch, stores) -> None:
    stores.expenses.fail["insert_expense"] = TypeError("unexpected keyword argument")
    with pytest.raises(TypeError):
        orch.import_statement(USER, _parsed(("UBER A", "-100")), file_name="m.csv")

"""Import batch lifecycle: import → commit → undo.

:class:`ImportBatchOrchestrator` sequences categorizer → duplicate detector →
invoice matcher → persistence for every row of one statement, inside one
``import_batches`` row.

Batch states::

    processing ──► completed ──► undone
         └───────► failed

Row handling is independent per row and runs in file order against the
existing-record snapshot taken at batch start, so results are deterministic
for a given input and snapshot. A row-level failure (bad data, a rejected
write) is recorded on that row and in ``ImportResult.errors``; the batch
still completes. Losing the store (:class:`StoreUnavailableError`) stops the
batch and marks it ``failed``; rows already written stay written.

Undo deletes every expense tagged with the batch and only then flips the
batch to ``undone``. A crash between the two leaves the batch ``completed``,
so undo can simply be retried. Invoices the batch marked paid or created are
reported back but never reverted: an invoice may have been settled for real
in the meantime.
"""

from __future__ import annotations

from collections.abc import Callable

from .categorizer import FALLBACK_EXPENSE_CATEGORY, categorize_transaction
from .config import ImportSettings
from .duplicates import DuplicateIndex
from .errors import (
    BatchAlreadyUndoneError,
    BatchNotFoundError,
    BatchNotUndoableError,
    StatementParseError,
    StoreError,
    StoreUnavailableError,
)
from .ingest import parse_statement
from .invoice_matcher import InvoiceMatcher
from .logging_setup import get_logger
from .models import (
    BatchDetail,
    BatchPage,
    BatchRecord,
    CategorizedTransaction,
    ImportResult,
    ImportSummary,
    NormalizedTransaction,
    ParseResult,
    UndoResult,
)
from .persistence import Stores
from .rules import DEFAULT_RULE_SET, RuleSet
from .vendors import extract_vendor_name

_logger = get_logger("bank_import.orchestrator")

type StatementParser = Callable[..., ParseResult]

SKIP_DUPLICATE = "Duplicate transaction"
SKIP_TRANSFER = "Internal transfer"
SKIP_UNKNOWN = "Unknown or zero amount"
SKIP_UNMATCHED_INCOME = "Unmatched income (invoice auto-create disabled)"
NOT_PROCESSED = "Not processed: import aborted"

MAX_PAGE_SIZE = 100

# Row data problems (unparseable amounts, bad arithmetic) that should not stop a batch.
_ROW_DATA_ERRORS = (ValueError, ArithmeticError)


def _row_label(pos: int, tx: NormalizedTransaction) -> str:
    return f"Row {pos + 1} ({tx.date.isoformat()} {tx.description[:40]!r})"


class ImportBatchOrchestrator:
    def __init__(
        self,
        stores: Stores,
        *,
        settings: ImportSettings | None = None,
        rules: RuleSet = DEFAULT_RULE_SET,
        parser: StatementParser = parse_statement,
    ) -> None:
        self._ledger = stores.ledger
        self._expenses = stores.expenses
        self._batches = stores.batches
        self._settings = settings or ImportSettings()
        self._rules = rules
        self._parser = parser
        self._matcher = InvoiceMatcher(stores.ledger, currency=self._settings.default_currency)

    # ---- import --------------------------------------------------------------

    def import_file(
        self,
        user_id: str,
        content: bytes,
        *,
        file_name: str,
        bank_hint: str | None = None,
        auto_create_invoices: bool | None = None,
    ) -> ImportResult:
        """Validate + parse ``content`` and import it.

        Input errors raise :class:`~bank_import.errors.StatementInputError`
        before any batch exists.
        """

        parsed = self._parser(
            content,
            file_name=file_name,
            bank_hint=bank_hint,
            max_bytes=self._settings.max_file_bytes,
        )
        return self.import_statement(
            user_id,
            parsed,
            file_name=file_name,
            file_size=len(content),
            bank_hint=bank_hint,
            auto_create_invoices=auto_create_invoices,
        )

    def import_statement(
        self,
        user_id: str,
        parsed: ParseResult,
        *,
        file_name: str,
        file_size: int | None = None,
        bank_hint: str | None = None,
        auto_create_invoices: bool | None = None,
    ) -> ImportResult:
        """Commit one parsed statement as a batch and return its summary.

        Row- and batch-level failures are reported in the result rather than
        raised. An empty statement raises ``StatementParseError`` and creates
        no batch; a store failure while creating the batch row propagates.
        """

        if not parsed.transactions:
            raise StatementParseError("No transactions found in file")
        auto_create = (
            self._settings.auto_create_invoices
            if auto_create_invoices is None
            else auto_create_invoices
        )

        batch = self._batches.create_batch(
            user_id,
            file_name=file_name,
            file_type=parsed.file_type,
            file_size=file_size,
            bank_name=parsed.bank_name or bank_hint,
            account_number=parsed.account_number,
            period_start=parsed.period_start,
            period_end=parsed.period_end,
            total_transactions=len(parsed.transactions),
        )
        _logger.info(
            "batch %s started: %s, %d rows, user %s",
            batch.id,
            file_name,
            len(parsed.transactions),
            user_id,
        )

        summary = ImportSummary(total_transactions=len(parsed.transactions))
        results: list[CategorizedTransaction] = []
        errors: list[str] = [f"Parser warning: {w}" for w in parsed.warnings]

        try:
            existing = self._expenses.list_existing_records(
                user_id, limit=self._settings.dedup_lookback
            )
        except StoreError as e:
            errors.append(f"Could not load existing records: {e}")
            results = [self._categorize(tx) for tx in parsed.transactions]
            for row in results:
                row.error = NOT_PROCESSED
            return self._fail(batch, summary, results, errors)
        index = DuplicateIndex(existing)

        rows = list(parsed.transactions)
        for pos, tx in enumerate(rows):
            try:
                row = self._categorize(tx)
            except _ROW_DATA_ERRORS as e:
                row = CategorizedTransaction(transaction=tx, type="unknown", confidence=0.0)
                self._record_row_error(row, pos, e, summary, errors)
                results.append(row)
                continue
            results.append(row)

            try:
                self._process_row(
                    row,
                    user_id=user_id,
                    batch_id=batch.id,
                    index=index,
                    auto_create=auto_create,
                    summary=summary,
                )
            except StoreUnavailableError as e:
                self._record_row_error(row, pos, e, summary, errors)
                for rest in rows[pos + 1 :]:
                    pending = self._categorize(rest)
                    pending.error = NOT_PROCESSED
                    results.append(pending)
                errors.append(f"Import aborted: store unavailable ({e.operation})")
                return self._fail(batch, summary, results, errors)
            except (StoreError, *_ROW_DATA_ERRORS) as e:
                self._record_row_error(row, pos, e, summary, errors)

        try:
            self._batches.finalize_batch(batch.id, summary=summary, status="completed")
        except StoreError as e:
            errors.append(f"Could not finalize import: {e}")
            return self._fail(batch, summary, results, errors)

        _logger.info(
            "batch %s completed: %d expenses, %d income (%d paid, %d created), "
            "%d skipped, %d failed",
            batch.id,
            summary.imported_expenses,
            summary.imported_income,
            summary.invoices_marked_paid,
            summary.new_invoices_created,
            summary.skipped_transactions,
            summary.failed_transactions,
        )
        return ImportResult(
            batch_id=batch.id,
            status="completed",
            summary=summary,
            transactions=results,
            errors=errors,
        )

    def _categorize(self, tx: NormalizedTransaction) -> CategorizedTransaction:
        result = categorize_transaction(tx, self._rules)
        return CategorizedTransaction(
            transaction=tx,
            type=result.type,
            category=result.category or None,
            confidence=result.confidence,
        )

    def _process_row(
        self,
        row: CategorizedTransaction,
        *,
        user_id: str,
        batch_id: str,
        index: DuplicateIndex,
        auto_create: bool,
        summary: ImportSummary,
    ) -> None:
        tx = row.transaction

        if index.check(tx):
            self._skip(row, SKIP_DUPLICATE, summary)
            return
        if row.type == "transfer":
            self._skip(row, SKIP_TRANSFER, summary)
            return
        if row.type == "unknown":
            self._skip(row, SKIP_UNKNOWN, summary)
            return

        if row.type == "expense":
            row.imported_record_id = self._expenses.insert_expense(
                user_id,
                batch_id=batch_id,
                transaction=tx,
                category=row.category or FALLBACK_EXPENSE_CATEGORY,
                vendor_name=extract_vendor_name(tx.description),
                currency=self._settings.default_currency,
            )
            row.imported = True
            summary.imported_expenses += 1
            return

        match = self._matcher.find_match(tx, user_id)
        if match is not None and match.confidence >= self._settings.min_match_confidence:
            self._matcher.mark_paid(match, tx, user_id=user_id, batch_id=batch_id)
            row.matched_invoice_id = match.invoice_id
            row.matched_invoice_number = match.invoice_number
            row.match_type = match.match_type
            row.matched_customer_name = match.client_name
            row.imported_record_id = match.invoice_id
            row.imported = True
            summary.invoices_marked_paid += 1
            summary.imported_income += 1
            return

        if not auto_create:
            self._skip(row, SKIP_UNMATCHED_INCOME, summary)
            return

        created = self._matcher.create_invoice_from_transaction(
            tx, user_id=user_id, batch_id=batch_id
        )
        row.imported_record_id = created.invoice_id
        row.matched_customer_name = created.customer_name
        row.imported = True
        summary.new_invoices_created += 1
        summary.imported_income += 1

    @staticmethod
    def _skip(row: CategorizedTransaction, reason: str, summary: ImportSummary) -> None:
        row.skip_reason = reason
        row.imported = False
        summary.skipped_transactions += 1

    @staticmethod
    def _record_row_error(
        row: CategorizedTransaction,
        pos: int,
        error: Exception,
        summary: ImportSummary,
        errors: list[str],
    ) -> None:
        row.imported = False
        row.error = str(error)
        summary.failed_transactions += 1
        message = f"{_row_label(pos, row.transaction)}: {error}"
        errors.append(message)
        _logger.warning("row failed: %s", message)

    def _fail(
        self,
        batch: BatchRecord,
        summary: ImportSummary,
        results: list[CategorizedTransaction],
        errors: list[str],
    ) -> ImportResult:
        message = errors[-1] if errors else "Processing failed"
        _logger.error("batch %s failed: %s", batch.id, message)
        try:
            self._batches.finalize_batch(
                batch.id, summary=summary, status="failed", error_message=message
            )
        except StoreError as e:
            # The batch row stays ``processing``; surfaced to the caller below.
            _logger.error("could not mark batch %s failed: %s", batch.id, e)
            errors.append(f"Could not record failure on batch: {e}")
        return ImportResult(
            batch_id=batch.id,
            status="failed",
            summary=summary,
            transactions=results,
            errors=errors,
        )

    # ---- read ----------------------------------------------------------------

    def get_batch(self, user_id: str, batch_id: str) -> BatchDetail:
        batch = self._batches.get_batch(user_id, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return BatchDetail(
            batch=batch,
            expenses=self._expenses.list_batch_expenses(user_id, batch_id),
            invoice_links=self._batches.list_invoice_links(user_id, batch_id),
        )

    def list_batches(self, user_id: str, *, limit: int = 20, offset: int = 0) -> BatchPage:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("offset must be non-negative")
        imports, total = self._batches.list_batches(user_id, limit=limit, offset=offset)
        return BatchPage(imports=imports, total=total, limit=limit, offset=offset)

    # ---- undo ----------------------------------------------------------------

    def undo_batch(self, user_id: str, batch_id: str) -> UndoResult:
        """Delete the batch's expenses, then mark it ``undone``.

        Raises ``BatchNotFoundError`` (unknown or another user's batch),
        ``BatchAlreadyUndoneError`` or ``BatchNotUndoableError`` (not
        ``completed``) without mutating anything.
        """

        batch = self._batches.get_batch(user_id, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        if batch.status == "undone":
            raise BatchAlreadyUndoneError(batch_id)
        if batch.status != "completed":
            raise BatchNotUndoableError(batch_id, batch.status)

        links = self._batches.list_invoice_links(user_id, batch_id)
        deleted = self._expenses.delete_by_batch(user_id, batch_id)
        if not self._batches.mark_undone(user_id, batch_id):
            # Another undo flipped the status between our read and write.
            _logger.warning("batch %s was undone concurrently", batch_id)
            raise BatchAlreadyUndoneError(batch_id)

        linked = [link.invoice_id for link in links]
        _logger.info(
            "batch %s undone: %d expenses deleted, %d linked invoices left as-is",
            batch_id,
            deleted,
            len(linked),
        )
        return UndoResult(
            batch_id=batch_id,
            deleted_expenses=deleted,
            linked_invoice_ids=linked,
            message="Import has been undone. Expenses have been deleted.",
        )


__all__ = [
    "ImportBatchOrchestrator",
    "MAX_PAGE_SIZE",
    "NOT_PROCESSED",
    "SKIP_DUPLICATE",
    "SKIP_TRANSFER",
    "SKIP_UNKNOWN",
    "SKIP_UNMATCHED_INCOME",
    "StatementParser",
]

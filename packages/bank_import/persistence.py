# ruff: noqa: I001
"""Store interfaces and their SQLAlchemy implementations.

The orchestrator and invoice matcher depend only on the three protocols
below; :func:`sql_stores` wires the SQLAlchemy versions against the shared
database owned by ``libs/db``.

Transaction scope: every store method opens its own short session
transaction and commits before returning, so one statement row's writes are
isolated from every other row's. Writes that must be traceable together
(flip an invoice to ``paid`` + record which batch did it; create an invoice +
its line item + the batch link) happen inside a single transaction.

Error mapping: ``OperationalError``/``DisconnectionError``/pool timeouts
become :class:`~bank_import.errors.StoreUnavailableError`; any other
``SQLAlchemyError`` becomes :class:`~bank_import.errors.StoreError`.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from db.models.ledger import (
    BatchInvoiceLink,
    Customer,
    Expense,
    ImportBatch,
    Invoice,
    InvoiceItem,
)
from .errors import StoreError, StoreUnavailableError
from .logging_setup import get_logger
from .models import (
    BatchRecord,
    BatchStatus,
    CreatedInvoice,
    ExistingRecord,
    ExpenseRecord,
    FileType,
    ImportSummary,
    InvoiceCandidate,
    InvoiceLinkRecord,
    InvoiceStatus,
    NormalizedTransaction,
)

_logger = get_logger("bank_import.persistence")

OPEN_INVOICE_STATUSES: tuple[InvoiceStatus, ...] = ("sent", "draft", "overdue")

_CENT = Decimal("0.01")


def _money(d: Decimal) -> Decimal:
    return d.quantize(_CENT, rounding=ROUND_HALF_UP)


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NewInvoice:
    """Everything needed to insert an auto-created invoice for one income row."""

    invoice_number: str
    customer_name: str
    title: str
    notes: str
    currency: str
    status: InvoiceStatus = "paid"


class LedgerStore(Protocol):
    def find_open_invoices(
        self,
        user_id: str,
        *,
        statuses: Sequence[InvoiceStatus],
        issued_from: date,
        issued_to: date,
    ) -> list[InvoiceCandidate]: ...

    def mark_invoice_paid(
        self,
        user_id: str,
        invoice_id: str,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> str: ...

    def insert_invoice(
        self,
        user_id: str,
        new_invoice: NewInvoice,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> CreatedInvoice: ...


class ExpenseStore(Protocol):
    def insert_expense(
        self,
        user_id: str,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
        category: str,
        vendor_name: str | None,
        currency: str,
    ) -> str: ...

    def delete_by_batch(self, user_id: str, batch_id: str) -> int: ...

    def list_existing_records(
        self, user_id: str, *, limit: int | None = None
    ) -> list[ExistingRecord]: ...

    def list_batch_expenses(self, user_id: str, batch_id: str) -> list[ExpenseRecord]: ...


class BatchStore(Protocol):
    def create_batch(
        self,
        user_id: str,
        *,
        file_name: str,
        file_type: FileType,
        file_size: int | None,
        bank_name: str | None,
        account_number: str | None,
        period_start: date | None,
        period_end: date | None,
        total_transactions: int,
    ) -> BatchRecord: ...

    def finalize_batch(
        self,
        batch_id: str,
        *,
        summary: ImportSummary,
        status: BatchStatus,
        error_message: str | None = None,
    ) -> None: ...

    def get_batch(self, user_id: str, batch_id: str) -> BatchRecord | None: ...

    def mark_undone(self, user_id: str, batch_id: str) -> bool: ...

    def list_batches(
        self, user_id: str, *, limit: int, offset: int
    ) -> tuple[list[BatchRecord], int]: ...

    def list_invoice_links(self, user_id: str, batch_id: str) -> list[InvoiceLinkRecord]: ...


class Stores(NamedTuple):
    ledger: LedgerStore
    expenses: ExpenseStore
    batches: BatchStore


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------


class _SqlStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        """Yield a session inside ``begin()``; commit on success, map DB errors."""

        try:
            with self._session_factory() as session, session.begin():
                yield session
        except (OperationalError, DisconnectionError, PoolTimeoutError) as e:
            _logger.error("store unavailable during %s: %s", operation, e)
            raise StoreUnavailableError(operation, str(e)) from e
        except SQLAlchemyError as e:
            _logger.warning("store error during %s: %s", operation, e)
            raise StoreError(operation, str(e)) from e


class SqlLedgerStore(_SqlStore):
    def find_open_invoices(
        self,
        user_id: str,
        *,
        statuses: Sequence[InvoiceStatus],
        issued_from: date,
        issued_to: date,
    ) -> list[InvoiceCandidate]:
        stmt = (
            select(Invoice, Customer.full_name, Customer.company_name)
            .outerjoin(Customer, Customer.id == Invoice.client_id)
            .where(Invoice.user_id == user_id)
            .where(Invoice.status.in_(list(statuses)))
            .where(Invoice.issue_date >= issued_from)
            .where(Invoice.issue_date <= issued_to)
            .order_by(Invoice.total.desc(), Invoice.issue_date.asc())
        )
        with self._transaction("find_open_invoices") as session:
            rows = session.execute(stmt).all()
            return [
                InvoiceCandidate(
                    id=inv.id,
                    invoice_number=inv.invoice_number,
                    total=inv.total,
                    status=inv.status,  # type: ignore[arg-type]
                    issue_date=inv.issue_date,
                    due_date=inv.due_date,
                    client_id=inv.client_id,
                    client_name=full_name,
                    company_name=company_name,
                )
                for inv, full_name, company_name in rows
            ]

    def mark_invoice_paid(
        self,
        user_id: str,
        invoice_id: str,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> str:
        """Flip an open invoice to ``paid`` and link it to ``batch_id``.

        Returns the status the invoice had before the flip.
        """

        with self._transaction("mark_invoice_paid") as session:
            inv = session.execute(
                select(Invoice)
                .where(Invoice.id == invoice_id, Invoice.user_id == user_id)
                .with_for_update()
            ).scalar_one_or_none()
            if inv is None:
                raise StoreError("mark_invoice_paid", f"invoice {invoice_id} not found")
            if inv.status not in OPEN_INVOICE_STATUSES:
                raise StoreError(
                    "mark_invoice_paid",
                    f"invoice {inv.invoice_number} is {inv.status!r}, not open",
                )
            previous = inv.status
            inv.status = "paid"
            inv.updated_at = _now()
            session.add(
                BatchInvoiceLink(
                    batch_id=batch_id,
                    user_id=user_id,
                    invoice_id=inv.id,
                    action="marked_paid",
                    previous_status=previous,
                    transaction_date=transaction.date,
                    amount=_money(abs(transaction.amount)),
                    bank_transaction_id=transaction.reference,
                )
            )
            return previous

    def insert_invoice(
        self,
        user_id: str,
        new_invoice: NewInvoice,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> CreatedInvoice:
        """Find-or-create the customer, then insert invoice, line item and link."""

        amount = _money(abs(transaction.amount))
        with self._transaction("insert_invoice") as session:
            customer = session.execute(
                select(Customer)
                .where(Customer.user_id == user_id)
                .where(func.lower(Customer.full_name) == new_invoice.customer_name.lower())
                .order_by(Customer.created_at.asc())
                .limit(1)
            ).scalar_one_or_none()
            customer_created = customer is None
            if customer is None:
                customer = Customer(
                    user_id=user_id,
                    full_name=new_invoice.customer_name,
                    notes="Auto-created from bank statement import",
                )
                session.add(customer)
                session.flush()

            invoice = Invoice(
                user_id=user_id,
                client_id=customer.id,
                invoice_number=new_invoice.invoice_number,
                title=new_invoice.title,
                status=new_invoice.status,
                issue_date=transaction.date,
                due_date=transaction.date,
                currency=new_invoice.currency,
                subtotal=amount,
                tax_amount=Decimal("0.00"),
                total=amount,
                notes=new_invoice.notes,
            )
            session.add(invoice)
            session.flush()
            session.add(
                InvoiceItem(
                    invoice_id=invoice.id,
                    description=transaction.description,
                    quantity=Decimal("1"),
                    unit_price=amount,
                    amount=amount,
                    sort_order=0,
                )
            )
            session.add(
                BatchInvoiceLink(
                    batch_id=batch_id,
                    user_id=user_id,
                    invoice_id=invoice.id,
                    action="created",
                    previous_status=None,
                    transaction_date=transaction.date,
                    amount=amount,
                    bank_transaction_id=transaction.reference,
                )
            )
            return CreatedInvoice(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                customer_id=customer.id,
                customer_name=customer.full_name,
                customer_created=customer_created,
            )


class SqlExpenseStore(_SqlStore):
    def insert_expense(
        self,
        user_id: str,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
        category: str,
        vendor_name: str | None,
        currency: str,
    ) -> str:
        with self._transaction("insert_expense") as session:
            expense = Expense(
                user_id=user_id,
                description=transaction.description,
                amount=_money(abs(transaction.amount)),
                currency=currency,
                category=category,
                expense_date=transaction.date,
                vendor_name=vendor_name,
                status="approved",
                import_batch_id=batch_id,
                bank_transaction_id=transaction.reference,
                bank_description=transaction.description,
            )
            session.add(expense)
            session.flush()
            return expense.id

    def delete_by_batch(self, user_id: str, batch_id: str) -> int:
        with self._transaction("delete_by_batch") as session:
            result = session.execute(
                delete(Expense)
                .where(Expense.import_batch_id == batch_id)
                .where(Expense.user_id == user_id)
            )
            return int(result.rowcount or 0)

    def list_existing_records(
        self, user_id: str, *, limit: int | None = None
    ) -> list[ExistingRecord]:
        """Expenses plus income rows recorded by batches that were not undone."""

        expense_stmt = (
            select(Expense.expense_date, Expense.amount, Expense.bank_transaction_id)
            .where(Expense.user_id == user_id)
            .order_by(Expense.expense_date.desc())
        )
        income_stmt = (
            select(
                BatchInvoiceLink.transaction_date,
                BatchInvoiceLink.amount,
                BatchInvoiceLink.bank_transaction_id,
            )
            .join(ImportBatch, ImportBatch.id == BatchInvoiceLink.batch_id)
            .where(BatchInvoiceLink.user_id == user_id)
            .where(ImportBatch.status != "undone")
            .order_by(BatchInvoiceLink.transaction_date.desc())
        )
        if limit is not None:
            expense_stmt = expense_stmt.limit(limit)
            income_stmt = income_stmt.limit(limit)

        with self._transaction("list_existing_records") as session:
            rows = list(session.execute(expense_stmt).all())
            rows.extend(session.execute(income_stmt).all())
        return [
            ExistingRecord(date=d, amount=amt, bank_transaction_id=ref) for d, amt, ref in rows
        ]

    def list_batch_expenses(self, user_id: str, batch_id: str) -> list[ExpenseRecord]:
        with self._transaction("list_batch_expenses") as session:
            rows = session.execute(
                select(Expense)
                .where(Expense.import_batch_id == batch_id)
                .where(Expense.user_id == user_id)
                .order_by(Expense.expense_date.desc())
            ).scalars()
            return [ExpenseRecord.model_validate(r) for r in rows]


class SqlBatchStore(_SqlStore):
    def create_batch(
        self,
        user_id: str,
        *,
        file_name: str,
        file_type: FileType,
        file_size: int | None,
        bank_name: str | None,
        account_number: str | None,
        period_start: date | None,
        period_end: date | None,
        total_transactions: int,
    ) -> BatchRecord:
        with self._transaction("create_batch") as session:
            batch = ImportBatch(
                user_id=user_id,
                file_name=file_name,
                file_type=file_type,
                file_size=file_size,
                bank_name=bank_name,
                account_number=account_number,
                statement_period_start=period_start,
                statement_period_end=period_end,
                total_transactions=total_transactions,
                status="processing",
            )
            session.add(batch)
            session.flush()
            return BatchRecord.model_validate(batch)

    def finalize_batch(
        self,
        batch_id: str,
        *,
        summary: ImportSummary,
        status: BatchStatus,
        error_message: str | None = None,
    ) -> None:
        with self._transaction("finalize_batch") as session:
            session.execute(
                update(ImportBatch)
                .where(ImportBatch.id == batch_id)
                .values(
                    total_transactions=summary.total_transactions,
                    imported_expenses=summary.imported_expenses,
                    imported_income=summary.imported_income,
                    skipped_transactions=summary.skipped_transactions,
                    new_invoices_created=summary.new_invoices_created,
                    invoices_marked_paid=summary.invoices_marked_paid,
                    failed_transactions=summary.failed_transactions,
                    status=status,
                    error_message=error_message,
                    completed_at=_now(),
                )
            )

    def get_batch(self, user_id: str, batch_id: str) -> BatchRecord | None:
        with self._transaction("get_batch") as session:
            batch = session.execute(
                select(ImportBatch)
                .where(ImportBatch.id == batch_id)
                .where(ImportBatch.user_id == user_id)
            ).scalar_one_or_none()
            return BatchRecord.model_validate(batch) if batch is not None else None

    def mark_undone(self, user_id: str, batch_id: str) -> bool:
        """Flip ``completed`` → ``undone``; False when the batch was not completed."""

        with self._transaction("mark_undone") as session:
            result = session.execute(
                update(ImportBatch)
                .where(ImportBatch.id == batch_id)
                .where(ImportBatch.user_id == user_id)
                .where(ImportBatch.status == "completed")
                .values(status="undone", completed_at=_now())
            )
            return (result.rowcount or 0) == 1

    def list_batches(
        self, user_id: str, *, limit: int, offset: int
    ) -> tuple[list[BatchRecord], int]:
        with self._transaction("list_batches") as session:
            total = session.execute(
                select(func.count()).select_from(ImportBatch).where(ImportBatch.user_id == user_id)
            ).scalar_one()
            rows = session.execute(
                select(ImportBatch)
                .where(ImportBatch.user_id == user_id)
                .order_by(ImportBatch.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            return [BatchRecord.model_validate(r) for r in rows], int(total)

    def list_invoice_links(self, user_id: str, batch_id: str) -> list[InvoiceLinkRecord]:
        with self._transaction("list_invoice_links") as session:
            rows = session.execute(
                select(BatchInvoiceLink)
                .where(BatchInvoiceLink.batch_id == batch_id)
                .where(BatchInvoiceLink.user_id == user_id)
                .order_by(BatchInvoiceLink.created_at.asc())
            ).scalars()
            return [InvoiceLinkRecord.model_validate(r) for r in rows]


def sql_stores(session_factory: sessionmaker[Session]) -> Stores:
    return Stores(
        ledger=SqlLedgerStore(session_factory),
        expenses=SqlExpenseStore(session_factory),
        batches=SqlBatchStore(session_factory),
    )


__all__ = [
    "BatchStore",
    "ExpenseStore",
    "LedgerStore",
    "NewInvoice",
    "OPEN_INVOICE_STATUSES",
    "SqlBatchStore",
    "SqlExpenseStore",
    "SqlLedgerStore",
    "Stores",
    "sql_stores",
]

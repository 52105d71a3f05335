"""In-memory store fakes with failure injection, for orchestrator tests.

``fail`` maps a store method name to either an exception instance (raised on
every call) or a list of exceptions/``None`` consumed one per call.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from bank_import.models import (
    BatchRecord,
    CreatedInvoice,
    ExistingRecord,
    ExpenseRecord,
    InvoiceCandidate,
    InvoiceLinkRecord,
    ImportSummary,
    NormalizedTransaction,
)
from bank_import.persistence import OPEN_INVOICE_STATUSES, NewInvoice, Stores

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


class _Faulty:
    def __init__(self) -> None:
        self.fail: dict[str, Any] = {}
        self.calls: list[str] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        planned = self.fail.get(name)
        if planned is None:
            return
        if isinstance(planned, list):
            if not planned:
                return
            exc = planned.pop(0)
            if exc is not None:
                raise exc
            return
        raise planned


class FakeLedgerStore(_Faulty):
    def __init__(self) -> None:
        super().__init__()
        self.invoices: dict[str, dict[str, Any]] = {}
        self.links: list[InvoiceLinkRecord] = []

    def add_invoice(
        self,
        user_id: str,
        *,
        invoice_number: str,
        total: str,
        issue_date: date,
        status: str = "sent",
        client_name: str | None = None,
    ) -> str:
        invoice_id = _next_id("inv")
        self.invoices[invoice_id] = {
            "user_id": user_id,
            "invoice_number": invoice_number,
            "total": Decimal(total),
            "issue_date": issue_date,
            "status": status,
            "client_name": client_name,
        }
        return invoice_id

    def find_open_invoices(
        self,
        user_id: str,
        *,
        statuses: Sequence[str],
        issued_from: date,
        issued_to: date,
    ) -> list[InvoiceCandidate]:
        self._maybe_fail("find_open_invoices")
        return [
            InvoiceCandidate(
                id=inv_id,
                invoice_number=inv["invoice_number"],
                total=inv["total"],
                status=inv["status"],
                issue_date=inv["issue_date"],
                client_name=inv["client_name"],
            )
            for inv_id, inv in self.invoices.items()
            if inv["user_id"] == user_id
            and inv["status"] in statuses
            and issued_from <= inv["issue_date"] <= issued_to
        ]

    def _link(self, batch_id: str, invoice_id: str, action: str, previous: str | None, tx) -> None:
        self.links.append(
            InvoiceLinkRecord(
                batch_id=batch_id,
                invoice_id=invoice_id,
                action=action,
                previous_status=previous,
                transaction_date=tx.date,
                amount=abs(tx.amount),
                bank_transaction_id=tx.reference,
            )
        )

    def mark_invoice_paid(
        self,
        user_id: str,
        invoice_id: str,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> str:
        self._maybe_fail("mark_invoice_paid")
        inv = self.invoices[invoice_id]
        assert inv["status"] in OPEN_INVOICE_STATUSES
        previous = inv["status"]
        inv["status"] = "paid"
        self._link(batch_id, invoice_id, "marked_paid", previous, transaction)
        return previous

    def insert_invoice(
        self,
        user_id: str,
        new_invoice: NewInvoice,
        *,
        batch_id: str,
        transaction: NormalizedTransaction,
    ) -> CreatedInvoice:
        self._maybe_fail("insert_invoice")
        invoice_id = self.add_invoice(
            user_id,
            invoice_number=new_invoice.invoice_number,
            total=str(abs(transaction.amount)),
            issue_date=transaction.date,
            status=new_invoice.status,
            client_name=new_invoice.customer_name,
        )
        self._link(batch_id, invoice_id, "created", None, transaction)
        return CreatedInvoice(
            invoice_id=invoice_id,
            invoice_number=new_invoice.invoice_number,
            customer_id=_next_id("cust"),
            customer_name=new_invoice.customer_name,
            customer_created=True,
        )


class FakeExpenseStore(_Faulty):
    def __init__(self) -> None:
        super().__init__()
        self.expenses: dict[str, dict[str, Any]] = {}
        self.existing: list[ExistingRecord] = []

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
        self._maybe_fail("insert_expense")
        expense_id = _next_id("exp")
        self.expenses[expense_id] = {
            "user_id": user_id,
            "batch_id": batch_id,
            "transaction": transaction,
            "category": category,
            "vendor_name": vendor_name,
        }
        return expense_id

    def delete_by_batch(self, user_id: str, batch_id: str) -> int:
        self._maybe_fail("delete_by_batch")
        doomed = [
            k
            for k, v in self.expenses.items()
            if v["user_id"] == user_id and v["batch_id"] == batch_id
        ]
        for k in doomed:
            del self.expenses[k]
        return len(doomed)

    def list_existing_records(
        self, user_id: str, *, limit: int | None = None
    ) -> list[ExistingRecord]:
        self._maybe_fail("list_existing_records")
        own = [
            ExistingRecord(
                date=v["transaction"].date,
                amount=abs(v["transaction"].amount),
                bank_transaction_id=v["transaction"].reference,
            )
            for v in self.expenses.values()
            if v["user_id"] == user_id
        ]
        records = [*self.existing, *own]
        return records[:limit] if limit is not None else records

    def list_batch_expenses(self, user_id: str, batch_id: str) -> list[ExpenseRecord]:
        self._maybe_fail("list_batch_expenses")
        return [
            ExpenseRecord(
                id=k,
                description=v["transaction"].description,
                amount=abs(v["transaction"].amount),
                category=v["category"],
                expense_date=v["transaction"].date,
                vendor_name=v["vendor_name"],
                import_batch_id=batch_id,
                bank_transaction_id=v["transaction"].reference,
            )
            for k, v in self.expenses.items()
            if v["user_id"] == user_id and v["batch_id"] == batch_id
        ]


class FakeBatchStore(_Faulty):
    def __init__(self, ledger: FakeLedgerStore) -> None:
        super().__init__()
        self.batches: dict[str, BatchRecord] = {}
        self._ledger = ledger

    def create_batch(self, user_id: str, *, file_name: str, file_type: str, **fields: Any) -> BatchRecord:
        self._maybe_fail("create_batch")
        batch = BatchRecord(
            id=_next_id("batch"),
            user_id=user_id,
            file_name=file_name,
            file_type=file_type,
            file_size=fields.get("file_size"),
            bank_name=fields.get("bank_name"),
            account_number=fields.get("account_number"),
            statement_period_start=fields.get("period_start"),
            statement_period_end=fields.get("period_end"),
            total_transactions=fields.get("total_transactions", 0),
            status="processing",
            created_at=datetime.now(UTC),
        )
        self.batches[batch.id] = batch
        return batch

    def finalize_batch(
        self,
        batch_id: str,
        *,
        summary: ImportSummary,
        status: str,
        error_message: str | None = None,
    ) -> None:
        self._maybe_fail("finalize_batch")
        self.batches[batch_id] = self.batches[batch_id].model_copy(
            update={
                **summary.model_dump(),
                "status": status,
                "error_message": error_message,
                "completed_at": datetime.now(UTC),
            }
        )

    def get_batch(self, user_id: str, batch_id: str) -> BatchRecord | None:
        self._maybe_fail("get_batch")
        batch = self.batches.get(batch_id)
        if batch is None or batch.user_id != user_id:
            return None
        return batch

    def mark_undone(self, user_id: str, batch_id: str) -> bool:
        self._maybe_fail("mark_undone")
        batch = self.get_batch(user_id, batch_id)
        if batch is None or batch.status != "completed":
            return False
        self.batches[batch_id] = batch.model_copy(update={"status": "undone"})
        return True

    def list_batches(self, user_id: str, *, limit: int, offset: int) -> tuple[list[BatchRecord], int]:
        self._maybe_fail("list_batches")
        own = sorted(
            (b for b in self.batches.values() if b.user_id == user_id),
            key=lambda b: b.created_at,
            reverse=True,
        )
        return own[offset : offset + limit], len(own)

    def list_invoice_links(self, user_id: str, batch_id: str) -> list[InvoiceLinkRecord]:
        self._maybe_fail("list_invoice_links")
        return [link for link in self._ledger.links if link.batch_id == batch_id]


def fake_stores() -> Stores:
    ledger = FakeLedgerStore()
    return Stores(ledger=ledger, expenses=FakeExpenseStore(), batches=FakeBatchStore(ledger))

"""Data models and type aliases for ``bank_import``.

Two kinds of models live here:

- Plain dataclasses for the in-process pipeline (statement rows, per-row
  categorization state, invoice candidates/matches). These are cheap, carry
  no validation beyond coercing amounts to ``Decimal`` and are what the
  categorizer, duplicate detector and matcher operate on.
- Pydantic models for data that crosses a boundary: the import summary,
  stored batch/expense/invoice-link views read back from the database, and
  undo/history results. They serialize with camelCase keys for the HTTP layer.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, NamedTuple

from pydantic import AliasGenerator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

type TransactionType = Literal["expense", "income", "transfer", "unknown"]
type BatchStatus = Literal["processing", "completed", "failed", "undone"]
type InvoiceStatus = Literal["draft", "sent", "paid", "overdue"]
type MatchType = Literal["amount", "customer", "reference", "combined"]
type FileType = Literal["csv", "xlsx", "xls", "pdf"]
type LinkAction = Literal["marked_paid", "created"]


def to_decimal(raw: Any) -> Decimal:
    """Coerce ints/strings/floats to ``Decimal`` via ``str`` (no binary noise)."""

    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, bool):
        raise TypeError("amount must be numeric, not bool")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc


# ---------------------------------------------------------------------------
# Statement rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """One statement row as produced by a statement parser.

    ``amount`` is signed: negative for money out (expense), positive for money
    in (income). ``raw_fields`` keeps the original cells keyed by header for
    debugging and display.
    """

    date: date
    description: str
    amount: Decimal
    balance: Decimal | None = None
    reference: str | None = None
    raw_fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if self.balance is not None:
            object.__setattr__(self, "balance", to_decimal(self.balance))
        if self.reference is not None:
            ref = str(self.reference).strip()
            object.__setattr__(self, "reference", ref or None)


class CategorizationResult(NamedTuple):
    type: TransactionType
    category: str
    confidence: float


@dataclass(slots=True)
class CategorizedTransaction:
    """Per-row pipeline state, filled in progressively by the orchestrator."""

    transaction: NormalizedTransaction
    type: TransactionType
    confidence: float
    category: str | None = None
    matched_invoice_id: str | None = None
    matched_invoice_number: str | None = None
    match_type: MatchType | None = None
    matched_customer_name: str | None = None
    imported: bool = False
    imported_record_id: str | None = None
    skip_reason: str | None = None
    error: str | None = None

    @property
    def date(self) -> date:
        return self.transaction.date

    @property
    def description(self) -> str:
        return self.transaction.description

    @property
    def amount(self) -> Decimal:
        return self.transaction.amount

    @property
    def reference(self) -> str | None:
        return self.transaction.reference

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    def to_dict(self) -> dict[str, Any]:
        tx = self.transaction
        return {
            "date": tx.date.isoformat(),
            "description": tx.description,
            "amount": str(tx.amount),
            "balance": str(tx.balance) if tx.balance is not None else None,
            "reference": tx.reference,
            "rawFields": dict(tx.raw_fields),
            "type": self.type,
            "category": self.category,
            "confidence": self.confidence,
            "matchedInvoiceId": self.matched_invoice_id,
            "matchedInvoiceNumber": self.matched_invoice_number,
            "matchType": self.match_type,
            "matchedCustomerName": self.matched_customer_name,
            "imported": self.imported,
            "importedRecordId": self.imported_record_id,
            "skipReason": self.skip_reason,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Parser output: ordered rows plus whatever the parser could detect."""

    transactions: tuple[NormalizedTransaction, ...]
    file_type: FileType = "csv"
    bank_name: str | None = None
    account_number: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Duplicate detection / invoice matching inputs and outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExistingRecord:
    """A persisted money movement that an incoming row may duplicate."""

    date: date
    amount: Decimal
    bank_transaction_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True, slots=True)
class InvoiceCandidate:
    """Read-only view of an open invoice, as returned by the ledger store."""

    id: str
    invoice_number: str
    total: Decimal
    status: InvoiceStatus
    issue_date: date
    due_date: date | None = None
    client_id: str | None = None
    client_name: str | None = None
    company_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "total", to_decimal(self.total))


@dataclass(frozen=True, slots=True)
class InvoiceMatch:
    invoice_id: str
    invoice_number: str
    confidence: float
    match_type: MatchType
    score: int
    client_name: str | None = None


@dataclass(frozen=True, slots=True)
class CreatedInvoice:
    invoice_id: str
    invoice_number: str
    customer_id: str
    customer_name: str
    customer_created: bool


# ---------------------------------------------------------------------------
# Boundary models (pydantic)
# ---------------------------------------------------------------------------


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=AliasGenerator(serialization_alias=to_camel),
        from_attributes=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ImportSummary(_ApiModel):
    total_transactions: int = 0
    imported_expenses: int = 0
    imported_income: int = 0
    skipped_transactions: int = 0
    new_invoices_created: int = 0
    invoices_marked_paid: int = 0
    failed_transactions: int = 0


class BatchRecord(_ApiModel):
    id: str
    user_id: str
    file_name: str
    file_type: FileType
    file_size: int | None = None
    bank_name: str | None = None
    account_number: str | None = None
    statement_period_start: date | None = None
    statement_period_end: date | None = None
    total_transactions: int = 0
    imported_expenses: int = 0
    imported_income: int = 0
    skipped_transactions: int = 0
    new_invoices_created: int = 0
    invoices_marked_paid: int = 0
    failed_transactions: int = 0
    status: BatchStatus
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class ExpenseRecord(_ApiModel):
    id: str
    description: str
    amount: Decimal
    category: str
    expense_date: date
    vendor_name: str | None = None
    import_batch_id: str | None = None
    bank_transaction_id: str | None = None


class InvoiceLinkRecord(_ApiModel):
    batch_id: str
    invoice_id: str
    action: LinkAction
    previous_status: str | None = None
    transaction_date: date
    amount: Decimal
    bank_transaction_id: str | None = None


class BatchDetail(_ApiModel):
    batch: BatchRecord
    expenses: list[ExpenseRecord]
    invoice_links: list[InvoiceLinkRecord]


class BatchPage(_ApiModel):
    imports: list[BatchRecord]
    total: int
    limit: int
    offset: int


class UndoResult(_ApiModel):
    batch_id: str
    deleted_expenses: int
    # Invoices this batch marked paid or created; their status is left as-is.
    linked_invoice_ids: list[str]
    message: str


@dataclass(slots=True)
class ImportResult:
    """Outcome of one import; ``errors`` lists row- and batch-level failures."""

    batch_id: str
    status: BatchStatus
    summary: ImportSummary
    transactions: list[CategorizedTransaction]
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "batchId": self.batch_id,
            "status": self.status,
            "summary": self.summary.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
            "errors": list(self.errors),
        }


__all__ = [
    "BatchDetail",
    "BatchPage",
    "BatchRecord",
    "BatchStatus",
    "CategorizationResult",
    "CategorizedTransaction",
    "CreatedInvoice",
    "ExistingRecord",
    "ExpenseRecord",
    "FileType",
    "ImportResult",
    "ImportSummary",
    "InvoiceCandidate",
    "InvoiceLinkRecord",
    "InvoiceMatch",
    "InvoiceStatus",
    "LinkAction",
    "MatchType",
    "NormalizedTransaction",
    "ParseResult",
    "TransactionType",
    "UndoResult",
    "to_decimal",
]

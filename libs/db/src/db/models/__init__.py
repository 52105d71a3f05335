"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger/import models used by ``bank_import``.
"""

from .ledger import (
    Base,
    BatchInvoiceLink,
    Customer,
    Expense,
    ImportBatch,
    Invoice,
    InvoiceItem,
)

__all__ = [
    "Base",
    "BatchInvoiceLink",
    "Customer",
    "Expense",
    "ImportBatch",
    "Invoice",
    "InvoiceItem",
]

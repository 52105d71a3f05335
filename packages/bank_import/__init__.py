"""Public interface for the ``bank_import`` package.

Bank statement import and reconciliation: parse a statement, categorize each
row, skip duplicates, record expenses, settle or create invoices for income,
and undo a whole import later. This module only re-exports the stable import
surface; see :mod:`bank_import.orchestrator` for the lifecycle.
"""

from .api import ApiResponse, BatchApi
from .categorizer import categorize_transaction, categorize_transactions, category_summary
from .config import ImportSettings
from .duplicates import DuplicateIndex, is_duplicate
from .errors import (
    BankImportError,
    BatchAlreadyUndoneError,
    BatchNotFoundError,
    BatchNotUndoableError,
    FileTooLargeError,
    StatementInputError,
    StatementParseError,
    StoreError,
    StoreUnavailableError,
    UndoError,
    UnsupportedFileTypeError,
)
from .ingest import detect_file_type, parse_statement, validate_file
from .invoice_matcher import InvoiceMatcher, generate_invoice_number
from .models import (
    BatchDetail,
    BatchPage,
    BatchRecord,
    CategorizationResult,
    CategorizedTransaction,
    ImportResult,
    ImportSummary,
    NormalizedTransaction,
    ParseResult,
    UndoResult,
)
from .orchestrator import ImportBatchOrchestrator
from .rules import DEFAULT_RULE_SET, CategoryRule, RuleSet
from .vendors import extract_customer_name, extract_vendor_name

__all__ = [
    # Orchestration / API
    "ApiResponse",
    "BatchApi",
    "ImportBatchOrchestrator",
    "ImportSettings",
    # Components
    "CategoryRule",
    "DEFAULT_RULE_SET",
    "DuplicateIndex",
    "InvoiceMatcher",
    "RuleSet",
    "categorize_transaction",
    "categorize_transactions",
    "category_summary",
    "detect_file_type",
    "extract_customer_name",
    "extract_vendor_name",
    "generate_invoice_number",
    "is_duplicate",
    "parse_statement",
    "validate_file",
    # Models
    "BatchDetail",
    "BatchPage",
    "BatchRecord",
    "CategorizationResult",
    "CategorizedTransaction",
    "ImportResult",
    "ImportSummary",
    "NormalizedTransaction",
    "ParseResult",
    "UndoResult",
    # Errors
    "BankImportError",
    "BatchAlreadyUndoneError",
    "BatchNotFoundError",
    "BatchNotUndoableError",
    "FileTooLargeError",
    "StatementInputError",
    "StatementParseError",
    "StoreError",
    "StoreUnavailableError",
    "UndoError",
    "UnsupportedFileTypeError",
]

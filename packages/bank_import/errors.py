"""Exception taxonomy for bank statement imports.

Four families, matching where a failure can happen in the import lifecycle:

- ``StatementInputError``: the uploaded file cannot be turned into
  transactions (unsupported type, too large, unparseable, empty). Raised
  before any batch row exists, so there is never partial state.
- ``StoreError``: a ledger/expense/batch store call failed. A plain
  ``StoreError`` during a row write is recorded on that row; a
  ``StoreUnavailableError`` (connection lost, timeout) fails the batch.
- ``UndoError``: undo was rejected (unknown or foreign batch, already undone,
  not in an undoable state). Nothing is mutated when these are raised.
"""

from __future__ import annotations


class BankImportError(Exception):
    """Base class for all errors raised by ``bank_import``."""


# ---- Input -------------------------------------------------------------------


class StatementInputError(BankImportError, ValueError):
    """The statement file was rejected before a batch was created."""


class UnsupportedFileTypeError(StatementInputError):
    pass


class FileTooLargeError(StatementInputError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"File size ({size / 1024 / 1024:.1f}MB) exceeds maximum allowed size "
            f"({limit / 1024 / 1024:.0f}MB)"
        )
        self.size = size
        self.limit = limit


class StatementParseError(StatementInputError):
    pass


# ---- Stores ------------------------------------------------------------------


class StoreError(BankImportError):
    """A store operation failed; ``operation`` names the call for diagnostics."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class StoreUnavailableError(StoreError):
    """The store could not be reached or the call timed out."""


# ---- Undo --------------------------------------------------------------------


class UndoError(BankImportError):
    def __init__(self, batch_id: str, reason: str) -> None:
        super().__init__(reason)
        self.batch_id = batch_id
        self.reason = reason


class BatchNotFoundError(UndoError):
    """Unknown batch id, or the batch belongs to another user."""

    def __init__(self, batch_id: str) -> None:
        super().__init__(batch_id, "Import not found")


class BatchAlreadyUndoneError(UndoError):
    def __init__(self, batch_id: str) -> None:
        super().__init__(batch_id, "Import already undone")


class BatchNotUndoableError(UndoError):
    def __init__(self, batch_id: str, status: str) -> None:
        super().__init__(batch_id, f"Import cannot be undone from status {status!r}")
        self.status = status


__all__ = [
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

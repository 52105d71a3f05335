"""Batch API facade for a thin HTTP layer.

Each handler takes already-extracted request values (the authenticated
``user_id`` or ``None``, path/query params, the uploaded file) and returns an
:class:`ApiResponse` whose ``body`` is JSON-ready (camelCase keys). Routing,
auth and multipart decoding belong to the web framework in front of this.

Status codes: 200 success, 400 bad input / already undone / not undoable,
401 no user, 404 unknown or foreign batch, 500 store failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import (
    BatchNotFoundError,
    StatementInputError,
    StoreError,
    UndoError,
)
from .logging_setup import get_logger
from .orchestrator import ImportBatchOrchestrator

_logger = get_logger("bank_import.api")


@dataclass(frozen=True, slots=True)
class ApiResponse:
    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _error(status_code: int, message: str) -> ApiResponse:
    return ApiResponse(status_code, {"error": message})


_UNAUTHORIZED = _error(401, "Unauthorized")


def _parse_int(raw: int | str | None, default: int, name: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be an integer") from e


class BatchApi:
    def __init__(self, orchestrator: ImportBatchOrchestrator) -> None:
        self._orchestrator = orchestrator

    def post_import(
        self,
        user_id: str | None,
        content: bytes | None,
        *,
        file_name: str | None,
        bank_hint: str | None = None,
        auto_create_invoices: bool | None = None,
    ) -> ApiResponse:
        """Upload + import one statement; body is the full import result."""

        if not user_id:
            return _UNAUTHORIZED
        if content is None or not file_name:
            return _error(400, "No file provided")
        try:
            result = self._orchestrator.import_file(
                user_id,
                content,
                file_name=file_name,
                bank_hint=bank_hint or None,
                auto_create_invoices=auto_create_invoices,
            )
        except StatementInputError as e:
            return _error(400, str(e))
        except StoreError as e:
            _logger.error("import of %s failed before processing: %s", file_name, e)
            return _error(500, "Failed to create import record")
        # A failed batch is still reported with 200; ``success`` is false and
        # ``errors`` says why.
        return ApiResponse(200, result.to_dict())

    def get_import(self, user_id: str | None, batch_id: str) -> ApiResponse:
        if not user_id:
            return _UNAUTHORIZED
        try:
            detail = self._orchestrator.get_batch(user_id, batch_id)
        except BatchNotFoundError as e:
            return _error(404, e.reason)
        except StoreError as e:
            _logger.error("fetching import %s failed: %s", batch_id, e)
            return _error(500, "Failed to fetch import")
        body = detail.to_dict()
        return ApiResponse(
            200,
            {
                "import": body["batch"],
                "expenses": body["expenses"],
                "invoiceLinks": body["invoiceLinks"],
            },
        )

    def delete_import(self, user_id: str | None, batch_id: str) -> ApiResponse:
        """Undo a batch."""

        if not user_id:
            return _UNAUTHORIZED
        try:
            result = self._orchestrator.undo_batch(user_id, batch_id)
        except BatchNotFoundError as e:
            return _error(404, e.reason)
        except UndoError as e:
            return _error(400, e.reason)
        except StoreError as e:
            _logger.error("undo of import %s failed: %s", batch_id, e)
            return _error(500, "Failed to undo import")
        return ApiResponse(200, {"success": True, **result.to_dict()})

    def list_imports(
        self,
        user_id: str | None,
        *,
        limit: int | str | None = None,
        offset: int | str | None = None,
    ) -> ApiResponse:
        if not user_id:
            return _UNAUTHORIZED
        try:
            page = self._orchestrator.list_batches(
                user_id,
                limit=_parse_int(limit, 20, "limit"),
                offset=_parse_int(offset, 0, "offset"),
            )
        except ValueError as e:
            return _error(400, str(e))
        except StoreError as e:
            _logger.error("listing imports failed: %s", e)
            return _error(500, "Failed to fetch import history")
        return ApiResponse(200, page.to_dict())


__all__ = ["ApiResponse", "BatchApi"]

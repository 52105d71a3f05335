"""Pytest configuration: per-test SQLite ledger and environment isolation.

Every DB-backed test gets its own file-backed SQLite database under
``tmp_path`` so no state leaks between tests. Import paths come from the
``pythonpath`` setting in pyproject.toml. ``BANK_IMPORT_*`` variables from
the developer's shell are cleared so settings come only from what a test sets.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bank_import.config import ImportSettings
from bank_import.orchestrator import ImportBatchOrchestrator
from bank_import.persistence import sql_stores

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("BANK_IMPORT_") or key == "DATABASE_URL":
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def session_factory(tmp_path: Path):
    factory = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture()
def orchestrator(session_factory) -> ImportBatchOrchestrator:
    return ImportBatchOrchestrator(sql_stores(session_factory), settings=ImportSettings())

"""Centralized SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import get_session_factory

factory = get_session_factory(database_url=url)
with factory.begin() as s:
    s.execute(...)

``make_session_factory`` builds an independent engine + ``sessionmaker`` for
callers that need more than one database per process (tests, tooling).
"""

from __future__ import annotations

import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_DB_URL: str | None = None

_DEFAULT_TIMEOUT_SEC: float = 10.0


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _engine_kwargs(url: str, timeout_sec: float) -> dict[str, Any]:
    """Per-dialect connect/statement timeouts so no store call blocks forever."""

    backend = make_url(url).get_backend_name()
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if backend == "sqlite":
        # sqlite3 busy timeout (seconds) while waiting on a locked database
        kwargs["connect_args"] = {"timeout": timeout_sec}
    elif backend == "postgresql":
        kwargs["pool_timeout"] = timeout_sec
        kwargs["connect_args"] = {
            "connect_timeout": max(1, int(timeout_sec)),
            "options": f"-c statement_timeout={int(timeout_sec * 1000)}",
        }
    else:
        kwargs["pool_timeout"] = timeout_sec
    return kwargs


def create_engine_for(url: str, *, timeout_sec: float = _DEFAULT_TIMEOUT_SEC) -> Engine:
    """Create a new engine for ``url`` with the workspace's timeout policy."""

    return create_engine(url, **_engine_kwargs(url, timeout_sec))


def get_engine(
    *, database_url: str | None = None, timeout_sec: float = _DEFAULT_TIMEOUT_SEC
) -> Engine:
    """Return a shared SQLAlchemy engine, creating it on first use."""

    global _ENGINE, _SESSION_MAKER
    url = _database_url(database_url)
    if _ENGINE is None:
        engine = create_engine_for(url, timeout_sec=timeout_sec)
        _SESSION_MAKER = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        _ENGINE = engine
        global _DB_URL
        _DB_URL = url
        return engine
    # Engine already initialized; guard against cross-environment misuse.
    if _DB_URL is not None and url != _DB_URL:
        raise RuntimeError(
            "get_engine() already initialized with a different DATABASE_URL; "
            "restart the process or use make_session_factory() for a second database"
        )
    return _ENGINE


def get_session_factory(
    *, database_url: str | None = None, timeout_sec: float = _DEFAULT_TIMEOUT_SEC
) -> sessionmaker[Session]:
    """Return the shared ``sessionmaker`` bound to the shared engine."""

    get_engine(database_url=database_url, timeout_sec=timeout_sec)
    assert _SESSION_MAKER is not None  # bound by get_engine
    return _SESSION_MAKER


def make_session_factory(
    database_url: str, *, timeout_sec: float = _DEFAULT_TIMEOUT_SEC
) -> sessionmaker[Session]:
    """Return a ``sessionmaker`` bound to a fresh, unshared engine."""

    engine = create_engine_for(database_url, timeout_sec=timeout_sec)
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


__all__ = [
    "create_engine_for",
    "get_engine",
    "get_session_factory",
    "make_session_factory",
]

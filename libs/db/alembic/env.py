# ruff: noqa: I001
"""
Alembic environment for the ledger schema (``db`` library).

The database URL comes from ``DATABASE_URL`` (a ``.env`` in the working
directory or the repository root is loaded first, without overriding the
process environment), falling back to ``sqlalchemy.url`` in ``alembic.ini``.
``target_metadata`` is the ``db`` package's ORM metadata, so
``alembic revision --autogenerate`` diffs against ``db.models.ledger``.
"""

from __future__ import annotations

import os
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from dotenv import find_dotenv, load_dotenv

import db

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# repo root: libs/db/alembic/env.py → ../../..
for candidate in (find_dotenv(usecwd=True), Path(__file__).resolve().parents[3] / ".env"):
    if candidate and Path(candidate).is_file():
        load_dotenv(dotenv_path=candidate, override=False)

db_url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url") or ""
if not db_url:
    raise RuntimeError(
        "DATABASE_URL is not set. Provide it via environment or set "
        "'sqlalchemy.url' in alembic.ini."
    )
config.set_main_option("sqlalchemy.url", db_url)

target_metadata = db.metadata

# SQLite cannot ALTER most constraints in place; batch mode rebuilds tables.
_render_as_batch = make_url(db_url).get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=_render_as_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_render_as_batch,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed it."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

from db import Base
from db.client import make_session_factory
from db.models.ledger import BatchInvoiceLink, Customer, Expense, ImportBatch, Invoice
from sqlalchemy import event, func, select
from sqlalchemy.orm import Session, sessionmaker


def bootstrap_sqlite_db(db_file: Path) -> sessionmaker[Session]:
    """Create a file-backed SQLite ledger and return a session factory for it.

    File-backed (not ``:memory:``) so every pooled connection sees the same
    data.
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    factory = make_session_factory(f"sqlite+pysqlite:///{db_file}", timeout_sec=5.0)
    engine = factory.kw["bind"]

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    Base.metadata.create_all(bind=engine)
    return factory


def seed_customer(
    factory: sessionmaker[Session],
    user_id: str,
    full_name: str,
    *,
    company_name: str | None = None,
) -> str:
    with factory() as session, session.begin():
        customer = Customer(user_id=user_id, full_name=full_name, company_name=company_name)
        session.add(customer)
        session.flush()
        return customer.id


def seed_invoice(
    factory: sessionmaker[Session],
    user_id: str,
    *,
    invoice_number: str,
    total: Decimal | str,
    issue_date: date,
    status: str = "sent",
    client_id: str | None = None,
) -> str:
    amount = Decimal(str(total))
    with factory() as session, session.begin():
        invoice = Invoice(
            user_id=user_id,
            client_id=client_id,
            invoice_number=invoice_number,
            title=f"Invoice {invoice_number}",
            status=status,
            issue_date=issue_date,
            due_date=issue_date,
            subtotal=amount,
            total=amount,
        )
        session.add(invoice)
        session.flush()
        return invoice.id


def invoice_status(factory: sessionmaker[Session], invoice_id: str) -> str:
    with factory() as session:
        return session.execute(select(Invoice.status).where(Invoice.id == invoice_id)).scalar_one()


def count_expenses(factory: sessionmaker[Session], user_id: str, *, batch_id: str | None = None) -> int:
    stmt = select(func.count()).select_from(Expense).where(Expense.user_id == user_id)
    if batch_id is not None:
        stmt = stmt.where(Expense.import_batch_id == batch_id)
    with factory() as session:
        return int(session.execute(stmt).scalar_one())


def count_invoices(factory: sessionmaker[Session], user_id: str) -> int:
    with factory() as session:
        return int(
            session.execute(
                select(func.count()).select_from(Invoice).where(Invoice.user_id == user_id)
            ).scalar_one()
        )


def batch_status(factory: sessionmaker[Session], batch_id: str) -> str:
    with factory() as session:
        return session.execute(
            select(ImportBatch.status).where(ImportBatch.id == batch_id)
        ).scalar_one()


def batch_links(factory: sessionmaker[Session], batch_id: str) -> list[tuple[str, str]]:
    """``(invoice_id, action)`` pairs recorded for a batch."""

    with factory() as session:
        rows = session.execute(
            select(BatchInvoiceLink.invoice_id, BatchInvoiceLink.action).where(
                BatchInvoiceLink.batch_id == batch_id
            )
        ).all()
        return [(r[0], r[1]) for r in rows]

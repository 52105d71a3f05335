# ruff: noqa: I001
"""Import batches, ledger tables and batch/invoice traceability.

Revision ID: 0001_bank_import_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_bank_import_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            )
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "import_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(8), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("bank_name", sa.String(), nullable=True),
        sa.Column("account_number", sa.String(), nullable=True),
        sa.Column("statement_period_start", sa.Date(), nullable=True),
        sa.Column("statement_period_end", sa.Date(), nullable=True),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("imported_expenses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("imported_income", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("new_invoices_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("invoices_marked_paid", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status", sa.String(16), nullable=False, server_default=sa.text("'processing'")
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status in ('processing','completed','failed','undone')",
            name="ck_import_batches_status",
        ),
        sa.CheckConstraint(
            "file_type in ('csv','xlsx','xls','pdf')",
            name="ck_import_batches_file_type",
        ),
    )
    op.create_index("ix_import_batches_user_id", "import_batches", ["user_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_user_id", "customers", ["user_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("invoice_number", sa.String(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'NGN'")),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(18, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=True),
        sa.CheckConstraint(
            "status in ('draft','sent','paid','overdue')",
            name="ck_invoices_status",
        ),
        sa.UniqueConstraint("user_id", "invoice_number", name="uq_invoices_user_number"),
    )
    op.create_index(
        "ix_invoices_user_status_issue", "invoices", ["user_id", "status", "issue_date"]
    )

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "invoice_id",
            sa.String(36),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'NGN'")),
        sa.Column(
            "category",
            sa.String(),
            nullable=False,
            server_default=sa.text("'Miscellaneous'"),
        ),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("vendor_name", sa.Text(), nullable=True),
        sa.Column(
            "status", sa.String(16), nullable=False, server_default=sa.text("'approved'")
        ),
        sa.Column(
            "import_batch_id",
            sa.String(36),
            sa.ForeignKey("import_batches.id"),
            nullable=True,
        ),
        sa.Column("bank_transaction_id", sa.String(), nullable=True),
        sa.Column("bank_description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_expenses_user_date", "expenses", ["user_id", "expense_date"])
    op.create_index("ix_expenses_import_batch", "expenses", ["import_batch_id"])

    op.create_table(
        "import_batch_invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "batch_id", sa.String(36), sa.ForeignKey("import_batches.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("invoice_id", sa.String(36), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("previous_status", sa.String(16), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("bank_transaction_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "action in ('marked_paid','created')",
            name="ck_import_batch_invoices_action",
        ),
    )
    op.create_index(
        "ix_import_batch_invoices_batch_id", "import_batch_invoices", ["batch_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_import_batch_invoices_batch_id", table_name="import_batch_invoices")
    op.drop_table("import_batch_invoices")
    op.drop_index("ix_expenses_import_batch", table_name="expenses")
    op.drop_index("ix_expenses_user_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_table("invoice_items")
    op.drop_index("ix_invoices_user_status_issue", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_customers_user_id", table_name="customers")
    op.drop_table("customers")
    op.drop_index("ix_import_batches_user_id", table_name="import_batches")
    op.drop_table("import_batches")

"""Typer CLI for bank statement imports.

Commands: ``init-db``, ``import``, ``show``, ``undo`` and ``history``. The root
callback loads ``.env`` from the working directory (``python-dotenv``, without
overriding variables already set) and configures logging before any command
runs. Results are printed with ``rich``; business logic lives in
:mod:`bank_import.orchestrator`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import ImportSettings
from .errors import BankImportError, BatchNotFoundError, StatementInputError, StoreError
from .logging_setup import configure_logging
from .models import BatchRecord, ImportResult

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Import bank statements into the expense/invoice ledger, review and undo imports.",
)
console = Console()
err_console = Console(stderr=True)


@dataclass(slots=True)
class _State:
    settings: ImportSettings
    user_id: str


UserOption = Annotated[
    str | None,
    typer.Option("--user", envvar="BANK_IMPORT_USER_ID", help="Owner of the imported records."),
]


def _fail(message: str, code: int = 1) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code)


def _state(ctx: typer.Context) -> _State:
    state = ctx.obj
    if not isinstance(state, _State):
        raise RuntimeError("CLI state missing; commands must run through the root callback")
    return state


def _orchestrator(settings: ImportSettings):
    # Local imports keep ``--help`` fast and avoid touching the DB layer.
    from db.client import get_session_factory

    from .orchestrator import ImportBatchOrchestrator
    from .persistence import sql_stores

    if not settings.database_url:
        raise _fail("DATABASE_URL is not set (pass --database-url or set it in .env)")
    factory = get_session_factory(
        database_url=settings.database_url, timeout_sec=settings.store_timeout_sec
    )
    return ImportBatchOrchestrator(sql_stores(factory), settings=settings)


def _user(ctx: typer.Context, override: str | None) -> str:
    user_id = override or _state(ctx).user_id
    if not user_id:
        raise _fail("No user id; pass --user or set BANK_IMPORT_USER_ID")
    return user_id


# ---- Rendering ---------------------------------------------------------------


def _render_result(result: ImportResult) -> None:
    s = result.summary
    colour = "green" if result.success else "red"
    console.print(f"Import [bold]{result.batch_id}[/bold]: [{colour}]{result.status}[/{colour}]")

    table = Table(show_header=True, header_style="bold")
    for col in ("Date", "Description", "Amount", "Type", "Category", "Outcome"):
        table.add_column(col, justify="right" if col == "Amount" else "left")
    for row in result.transactions:
        if row.error:
            outcome = f"[red]error: {row.error}[/red]"
        elif row.skip_reason:
            outcome = f"[yellow]skipped: {row.skip_reason}[/yellow]"
        elif row.matched_invoice_number:
            outcome = f"paid {row.matched_invoice_number} ({row.match_type})"
        elif row.type == "income":
            outcome = f"new invoice for {row.matched_customer_name}"
        else:
            outcome = "imported"
        table.add_row(
            row.date.isoformat(),
            row.description[:48],
            str(row.amount),
            row.type,
            row.category or "",
            outcome,
        )
    console.print(table)
    console.print(
        f"{s.total_transactions} rows: {s.imported_expenses} expenses, "
        f"{s.imported_income} income ({s.invoices_marked_paid} invoices paid, "
        f"{s.new_invoices_created} created), {s.skipped_transactions} skipped, "
        f"{s.failed_transactions} failed"
    )
    for err in result.errors:
        err_console.print(f"[red]-[/red] {err}")


def _batch_table(batches: list[BatchRecord]) -> Table:
    table = Table(show_header=True, header_style="bold")
    for col in ("Id", "Created", "File", "Bank", "Status", "Rows", "Expenses", "Income", "Skipped"):
        table.add_column(col)
    for b in batches:
        table.add_row(
            b.id,
            b.created_at.strftime("%Y-%m-%d %H:%M"),
            b.file_name,
            b.bank_name or "",
            b.status,
            str(b.total_transactions),
            str(b.imported_expenses),
            str(b.imported_income),
            str(b.skipped_transactions),
        )
    return table


# ---- Commands ----------------------------------------------------------------


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create the ledger tables (use alembic for managed databases)."""

    from db.client import create_engine_for
    from db.models import Base

    settings = _state(ctx).settings
    if not settings.database_url:
        raise _fail("DATABASE_URL is not set (pass --database-url or set it in .env)")
    engine = create_engine_for(settings.database_url, timeout_sec=settings.store_timeout_sec)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()
    console.print("[green]Database tables created.[/green]")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Argument(help="Bank statement file (CSV or XLSX).", dir_okay=False, exists=True),
    ],
    bank: Annotated[
        str | None, typer.Option("--bank", help="Bank format hint, e.g. gtbank, access, uba.")
    ] = None,
    user: UserOption = None,
    auto_create: Annotated[
        bool | None,
        typer.Option(
            "--auto-create/--no-auto-create",
            help="Create paid invoices for unmatched income (default from settings).",
        ),
    ] = None,
) -> None:
    """Import a statement file as one batch."""

    state = _state(ctx)
    user_id = _user(ctx, user)
    orchestrator = _orchestrator(state.settings)
    try:
        result = orchestrator.import_file(
            user_id,
            file.read_bytes(),
            file_name=file.name,
            bank_hint=bank,
            auto_create_invoices=auto_create,
        )
    except StatementInputError as e:
        raise _fail(str(e), code=2) from e
    except StoreError as e:
        raise _fail(f"store failure: {e}") from e
    _render_result(result)
    if not result.success:
        raise typer.Exit(1)


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    batch_id: Annotated[str, typer.Argument(help="Import batch id.")],
    user: UserOption = None,
) -> None:
    """Show one import and the expenses it created."""

    orchestrator = _orchestrator(_state(ctx).settings)
    try:
        detail = orchestrator.get_batch(_user(ctx, user), batch_id)
    except BatchNotFoundError as e:
        raise _fail(e.reason) from e
    except StoreError as e:
        raise _fail(f"store failure: {e}") from e

    console.print(_batch_table([detail.batch]))
    if detail.batch.error_message:
        err_console.print(f"[red]{detail.batch.error_message}[/red]")

    expenses = Table(title="Expenses", show_header=True, header_style="bold")
    for col in ("Date", "Description", "Vendor", "Category", "Amount"):
        expenses.add_column(col, justify="right" if col == "Amount" else "left")
    for e in detail.expenses:
        expenses.add_row(
            e.expense_date.isoformat(), e.description[:48], e.vendor_name or "", e.category, str(e.amount)
        )
    console.print(expenses)

    if detail.invoice_links:
        links = Table(title="Invoices", show_header=True, header_style="bold")
        for col in ("Invoice", "Action", "Previous status", "Date", "Amount"):
            links.add_column(col)
        for link in detail.invoice_links:
            links.add_row(
                link.invoice_id,
                link.action,
                link.previous_status or "",
                link.transaction_date.isoformat(),
                str(link.amount),
            )
        console.print(links)


@app.command("undo")
def undo_cmd(
    ctx: typer.Context,
    batch_id: Annotated[str, typer.Argument(help="Import batch id.")],
    user: UserOption = None,
) -> None:
    """Undo an import: delete its expenses and mark it undone."""

    orchestrator = _orchestrator(_state(ctx).settings)
    try:
        result = orchestrator.undo_batch(_user(ctx, user), batch_id)
    except BankImportError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]{result.message}[/green] ({result.deleted_expenses} deleted)")
    if result.linked_invoice_ids:
        console.print(
            f"{len(result.linked_invoice_ids)} invoice(s) were paid or created by this import "
            "and were left unchanged; review them manually:"
        )
        for invoice_id in result.linked_invoice_ids:
            console.print(f"  - {invoice_id}")


@app.command("history")
def history_cmd(
    ctx: typer.Context,
    user: UserOption = None,
    limit: Annotated[int, typer.Option(min=1, max=100, help="Page size.")] = 20,
    offset: Annotated[int, typer.Option(min=0, help="Rows to skip.")] = 0,
) -> None:
    """List imports, newest first."""

    orchestrator = _orchestrator(_state(ctx).settings)
    try:
        page = orchestrator.list_batches(_user(ctx, user), limit=limit, offset=offset)
    except StoreError as e:
        raise _fail(f"store failure: {e}") from e
    if not page.imports:
        console.print("No imports yet.")
        return
    console.print(_batch_table(page.imports))
    shown_to = page.offset + len(page.imports)
    console.print(f"Showing {page.offset + 1}-{shown_to} of {page.total}")


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: Annotated[
        str | None, typer.Option(help="Override DATABASE_URL (falls back to env var).")
    ] = None,
    user: UserOption = None,
    log_level: Annotated[
        str | None, typer.Option(help="Override BANK_IMPORT_LOG_LEVEL.")
    ] = None,
) -> None:
    """Load ``.env``, configure logging and resolve settings for all commands."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)
    try:
        settings = ImportSettings.from_env()
    except ValueError as e:
        raise _fail(f"invalid configuration: {e}") from e
    if database_url:
        settings = replace(settings, database_url=database_url)
    ctx.obj = _State(settings=settings, user_id=user or "")


if __name__ == "__main__":  # pragma: no cover
    app()

"""Typer CLI commands for manual record entry and deletion."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import Annotated, Any

import typer
from rich.markup import escape
from rich.table import Table

from satledger.cli.utils import console, open_store, parse_record_kind, resolve_report
from satledger.paths import DEFAULT_STORE_DIR
from satledger.store import AddStatus, CurrencyUnit, RecordKind

app = typer.Typer(help="Record entry commands (investments, profits, withdrawals).")

StoreOption = Annotated[
    Path,
    typer.Option("--store", "-s", help="Directory holding the report store."),
]
ReportOption = Annotated[
    str | None,
    typer.Option("--report", "-r", help="Target report id (default: active report)."),
]


@app.command("list")
def records_list(
    kind: Annotated[str, typer.Argument(help="investment, profit or withdrawal.")],
    report_id: ReportOption = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """List records of one kind."""
    record_kind = parse_record_kind(kind)
    store = open_store(store_dir)
    report = resolve_report(store, report_id)
    records = report.records(record_kind)

    if not records:
        console.print(f"[yellow]No {record_kind.collection_field} in '{report.name}'.[/yellow]")
        return

    table = Table(title=f"{record_kind.collection_field.title()} - {report.name}")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date", style="white")
    table.add_column("Amount", justify="right")
    table.add_column("Unit", style="dim")
    table.add_column("Source", style="dim")
    for record in records:
        amount = f"{record.amount:g}"
        if record_kind == RecordKind.PROFIT and not record.is_profit:
            amount = f"[red]-{amount}[/red]"
        table.add_row(
            record.id,
            record.date,
            amount,
            record.unit.value,
            record.source_config_name or record.source_config_id or "manual",
        )
    console.print(table)
    console.print(f"\n[dim]Total: {len(records)} records[/dim]")


@app.command("add")
def records_add(
    kind: Annotated[str, typer.Argument(help="investment, profit or withdrawal.")],
    amount: Annotated[float, typer.Argument(help="Amount (non-negative).")],
    unit: Annotated[
        CurrencyUnit, typer.Option("--unit", "-u", help="Amount unit.")
    ] = CurrencyUnit.SATS,
    date: Annotated[
        str | None, typer.Option("--date", help="ISO date (default: today).")
    ] = None,
    loss: Annotated[bool, typer.Option("--loss", help="Profit record is a loss.")] = False,
    fee: Annotated[float | None, typer.Option("--fee", help="Withdrawal fee.")] = None,
    txid: Annotated[str | None, typer.Option("--txid", help="Withdrawal txid.")] = None,
    report_id: ReportOption = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Add one record to a report."""
    record_kind = parse_record_kind(kind)
    store = open_store(store_dir)
    target = resolve_report(store, report_id) if report_id is not None else None

    data: dict[str, Any] = {
        "date": date or datetime.now(UTC).date().isoformat(),
        "amount": amount,
        "unit": unit.value,
    }
    if record_kind == RecordKind.PROFIT:
        data["isProfit"] = not loss
    if record_kind == RecordKind.WITHDRAWAL:
        if fee is not None:
            data["fee"] = fee
        if txid is not None:
            data["txid"] = txid

    result = store.add_record(record_kind, data, target.id if target else None)
    if result.status == AddStatus.ADDED:
        console.print(f"[green]✓[/green] Added {record_kind.value} {result.record_id}")
        return
    if result.status == AddStatus.DUPLICATE:
        console.print(f"[yellow]Duplicate:[/yellow] {escape(result.reason or '')}")
        return
    console.print(f"[red]Error:[/red] {escape(result.reason or '')}")
    raise typer.Exit(1)


@app.command("delete")
def records_delete(
    kind: Annotated[str, typer.Argument(help="investment, profit or withdrawal.")],
    record_id: Annotated[str, typer.Argument(help="Record id.")],
    report_id: ReportOption = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Delete one record."""
    record_kind = parse_record_kind(kind)
    store = open_store(store_dir)
    report = resolve_report(store, report_id)

    if not store.delete_record(report.id, record_kind, record_id):
        console.print(f"[red]Error:[/red] Record not found: {record_id}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Deleted {record_kind.value} {record_id}")


@app.command("clear")
def records_clear(
    kind: Annotated[str, typer.Argument(help="investment, profit or withdrawal.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    report_id: ReportOption = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Remove every record of one kind from a report."""
    record_kind = parse_record_kind(kind)
    store = open_store(store_dir)
    report = resolve_report(store, report_id)

    if not yes:
        typer.confirm(
            f"Remove all {record_kind.collection_field} from '{report.name}'?", abort=True
        )

    removed = store.bulk_clear(report.id, record_kind)
    console.print(f"[green]✓[/green] Removed {removed} {record_kind.collection_field}")

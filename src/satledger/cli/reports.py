"""Typer CLI commands for report management."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import Annotated

import typer
from rich.table import Table

from satledger.cli.utils import console, open_store, resolve_report
from satledger.paths import DEFAULT_STORE_DIR
from satledger.store import LastReportError

app = typer.Typer(help="Report management commands.")

StoreOption = Annotated[
    Path,
    typer.Option("--store", "-s", help="Directory holding the report store."),
]


@app.command("list")
def reports_list(store_dir: StoreOption = DEFAULT_STORE_DIR) -> None:
    """List all reports."""
    store = open_store(store_dir)

    table = Table(title="Reports")
    table.add_column("", style="green")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Investments", justify="right")
    table.add_column("Profits", justify="right")
    table.add_column("Withdrawals", justify="right")
    table.add_column("Updated", style="dim")

    for report in store.reports:
        table.add_row(
            "*" if report.is_active else "",
            report.id,
            report.name,
            str(len(report.investments)),
            str(len(report.profits)),
            str(len(report.withdrawals)),
            report.updated_at[:19],
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(store.reports)} reports[/dim]")


@app.command("create")
def reports_create(
    name: Annotated[str, typer.Argument(help="Report name.")],
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Optional description.")
    ] = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Create a report and make it active."""
    store = open_store(store_dir)
    try:
        report = store.add_report(name, description)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"[green]✓[/green] Created report '{report.name}' ({report.id})")


@app.command("select")
def reports_select(
    report_id: Annotated[str, typer.Argument(help="Report id (or unique prefix).")],
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Make a report the active one."""
    store = open_store(store_dir)
    report = resolve_report(store, report_id)
    if store.select_active_report(report.id):
        console.print(f"[green]✓[/green] Active report: '{report.name}'")
    else:
        console.print(f"[dim]'{report.name}' is already active.[/dim]")


@app.command("rename")
def reports_rename(
    report_id: Annotated[str, typer.Argument(help="Report id (or unique prefix).")],
    name: Annotated[str, typer.Argument(help="New name.")],
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="New description.")
    ] = None,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Rename a report."""
    store = open_store(store_dir)
    report = resolve_report(store, report_id)
    try:
        updated = store.update_report(report.id, name=name, description=description)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"[green]✓[/green] Renamed '{report.name}' to '{updated.name}'")


@app.command("delete")
def reports_delete(
    report_id: Annotated[str, typer.Argument(help="Report id (or unique prefix).")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    store_dir: StoreOption = DEFAULT_STORE_DIR,
) -> None:
    """Delete a report and all of its records."""
    store = open_store(store_dir)
    report = resolve_report(store, report_id)

    if not yes:
        typer.confirm(f"Delete report '{report.name}' and all its records?", abort=True)

    try:
        active_id = store.delete_report(report.id)
    except LastReportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    active = store.get_report(active_id)
    console.print(f"[green]✓[/green] Deleted report '{report.name}'")
    console.print(f"[dim]Active report: '{active.name}'[/dim]")

"""Typer CLI commands for derived metrics."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date
from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import Annotated

import typer
from rich.table import Table

from satledger.cli.utils import console, format_btc, open_store
from satledger.metrics import HistoryPeriod, MetricsFilter, MetricsService, ViewMode
from satledger.paths import DEFAULT_STORE_DIR

app = typer.Typer(help="Derived metrics (ROI, efficiency, success rate).")


def _parse_day(value: str | None, option: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Error:[/red] {option} must be an ISO date (YYYY-MM-DD)")
        raise typer.Exit(1) from None


@app.command("show")
def metrics_show(
    all_reports: Annotated[
        bool, typer.Option("--all", help="Aggregate every report instead of the active one.")
    ] = False,
    period: Annotated[
        HistoryPeriod, typer.Option("--period", "-p", help="History window.")
    ] = HistoryPeriod.ALL,
    start: Annotated[
        str | None, typer.Option("--start", help="Custom period start (YYYY-MM-DD).")
    ] = None,
    end: Annotated[
        str | None, typer.Option("--end", help="Custom period end (YYYY-MM-DD).")
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
    store_dir: Annotated[
        Path,
        typer.Option("--store", "-s", help="Directory holding the report store."),
    ] = DEFAULT_STORE_DIR,
) -> None:
    """Show ROI, annualized ROI, success rate and efficiency."""
    try:
        metrics_filter = MetricsFilter(
            period=period,
            start=_parse_day(start, "--start"),
            end=_parse_day(end, "--end"),
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    store = open_store(store_dir)
    view_mode = ViewMode.ALL if all_reports else ViewMode.ACTIVE
    metrics = MetricsService(store).metrics(view_mode, metrics_filter)

    if output_json:
        typer.echo(json.dumps(asdict(metrics), indent=2, default=str))
        return

    if view_mode == ViewMode.ALL:
        title = "All Reports"
    else:
        active = store.active_report
        title = active.name if active is not None else "No report"

    table = Table(title=f"Metrics - {title} ({period.value})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total invested", format_btc(metrics.total_investments_btc))
    table.add_row("Net profit", format_btc(metrics.total_profits_btc))
    table.add_row("Withdrawn", format_btc(metrics.total_withdrawals_btc))
    table.add_row("Balance", format_btc(metrics.final_balance_btc))
    table.add_row("ROI", f"{metrics.roi_percent:.2f}%")
    table.add_row("Annualized ROI", f"{metrics.annualized_roi_percent:.2f}%")
    table.add_row(
        "Success rate",
        f"{metrics.success_rate_percent:.1f}% ({metrics.gain_count}/{metrics.profit_count})",
    )
    table.add_row("Efficiency", f"{metrics.efficiency_percent:.2f}%")
    table.add_row("Days active", str(metrics.days_active))
    console.print(table)

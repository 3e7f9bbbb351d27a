"""Shared utilities for CLI commands (console output, store access, async helpers)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

import typer
from rich.console import Console

from satledger.store import JsonFileStorage, ReportStore, StoreCorruptedError
from satledger.store.models import RecordKind

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from pathlib import Path

    from satledger.store.models import Report

console = Console()

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T]) -> T:
    """Run a coroutine from a sync CLI command.

    Raises:
        typer.Exit: With code 130 on KeyboardInterrupt (standard SIGINT exit code).
    """
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130) from None


def open_store(store_dir: Path) -> ReportStore:
    """Load the report store, exiting with a message when the stored data is unreadable."""
    store = ReportStore(JsonFileStorage(store_dir))
    try:
        store.load()
    except StoreCorruptedError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(f"[dim]Store directory: {store_dir}[/dim]")
        console.print("[dim]This command will not modify it.[/dim]")
        raise typer.Exit(1) from None
    if store.migrated_from_legacy:
        console.print("[dim]Migrated legacy single-report data into a new report.[/dim]")
    return store


def resolve_report(store: ReportStore, report_id: str | None) -> Report:
    """Find a report by id or unique id prefix; defaults to the active report."""
    if report_id is None:
        active = store.active_report
        if active is None:
            console.print("[red]Error:[/red] No report available")
            raise typer.Exit(1)
        return active

    matches = [r for r in store.reports if r.id == report_id or r.id.startswith(report_id)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[red]Error:[/red] Report not found: {report_id}")
    else:
        console.print(f"[red]Error:[/red] Ambiguous report id prefix: {report_id}")
    raise typer.Exit(1)


def parse_record_kind(value: str) -> RecordKind:
    """Accept singular or plural record kind names (`investment`, `profits`, ...)."""
    normalized = value.strip().lower().rstrip("s")
    try:
        return RecordKind(normalized)
    except ValueError:
        console.print(
            f"[red]Error:[/red] Invalid record kind '{value}'. "
            "Expected investment, profit or withdrawal."
        )
        raise typer.Exit(1) from None


def format_btc(value: float) -> str:
    """Format a BTC amount with sign coloring."""
    text = f"{value:.8f} BTC"
    if value > 0:
        return f"[green]{text}[/green]"
    if value < 0:
        return f"[red]{text}[/red]"
    return text

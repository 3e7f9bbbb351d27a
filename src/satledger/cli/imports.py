"""Typer CLI commands for LN Markets imports."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import TYPE_CHECKING, Annotated

import typer
from rich.table import Table

from satledger.cli.utils import console, open_store, resolve_report, run_async
from satledger.paths import DEFAULT_STORE_DIR

if TYPE_CHECKING:
    from satledger.importer import ImportProgress, ImportRunResult, SourceKind

app = typer.Typer(help="Import history from LN Markets.")


class ImportKind(str, Enum):
    TRADES = "trades"
    DEPOSITS = "deposits"
    WITHDRAWALS = "withdrawals"
    ALL = "all"


def _source_kinds(kind: ImportKind) -> tuple[SourceKind, ...]:
    from satledger.importer import SourceKind

    mapping = {
        ImportKind.TRADES: (SourceKind.TRADE,),
        ImportKind.DEPOSITS: (SourceKind.DEPOSIT,),
        ImportKind.WITHDRAWALS: (SourceKind.WITHDRAWAL,),
    }
    return mapping.get(kind, tuple(SourceKind))


def _print_results(results: dict[SourceKind, ImportRunResult]) -> None:
    table = Table(title="Import Summary")
    table.add_column("Kind", style="cyan")
    table.add_column("Status")
    table.add_column("Imported", justify="right", style="green")
    table.add_column("Duplicates", justify="right", style="yellow")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Filtered", justify="right", style="dim")
    table.add_column("Pages", justify="right")
    table.add_column("Stopped", style="dim")

    for kind, result in results.items():
        stats = result.stats
        status = "[green]complete[/green]" if result.ok else "[red]error[/red]"
        table.add_row(
            kind.value,
            status,
            str(stats.imported),
            str(stats.duplicated),
            str(stats.errors),
            str(stats.filtered),
            str(stats.pages_searched),
            stats.stopped_reason.value if stats.stopped_reason else "-",
        )
    console.print(table)
    for result in results.values():
        style = "dim" if result.ok else "red"
        console.print(f"[{style}]{result.summary}[/{style}]")


@app.command("run")
def import_run(
    kind: Annotated[
        ImportKind, typer.Option("--kind", "-k", help="Record kind to import.")
    ] = ImportKind.ALL,
    report_id: Annotated[
        str | None,
        typer.Option("--report", "-r", help="Target report id (default: active report)."),
    ] = None,
    config_id: Annotated[
        str | None,
        typer.Option("--config-id", help="API configuration id recorded on imported records."),
    ] = None,
    config_name: Annotated[
        str | None,
        typer.Option("--config-name", help="API configuration name recorded on records."),
    ] = None,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", help="Records per page (default: SATLEDGER_PAGE_SIZE)."),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
    store_dir: Annotated[
        Path,
        typer.Option("--store", "-s", help="Directory holding the report store."),
    ] = DEFAULT_STORE_DIR,
) -> None:
    """Import trades, deposits and withdrawals into a report.

    Re-running an import is safe: already imported records are reported as duplicates.
    """
    from dataclasses import replace

    from satledger.api import LNMarketsClient
    from satledger.api.config import LNMarketsCredentials
    from satledger.importer import ImportEngine, PaginationLimits

    try:
        credentials = LNMarketsCredentials.from_env()
        limits = PaginationLimits.from_env()
        if page_size is not None:
            limits = replace(limits, page_size=page_size)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    store = open_store(store_dir)
    report = resolve_report(store, report_id)
    engine = ImportEngine(store, limits=limits)

    def _progress(source_kind: SourceKind, update: ImportProgress) -> None:
        if not output_json and update.message:
            console.print(f"[dim]{source_kind.value}: {update.message}[/dim]")

    async def _import() -> dict[SourceKind, ImportRunResult]:
        async with LNMarketsClient(credentials) as client:
            return await engine.import_all(
                client,
                report_id=report.id,
                kinds=_source_kinds(kind),
                config_id=config_id,
                config_name=config_name,
                progress=_progress,
            )

    results = run_async(_import())

    if output_json:
        payload = {k.value: r.to_dict() for k, r in results.items()}
        typer.echo(json.dumps(payload, indent=2, default=str))
    else:
        _print_results(results)

    if any(not r.ok for r in results.values()):
        raise typer.Exit(1)

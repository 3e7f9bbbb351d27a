"""
CLI application for SatLedger.

Provides commands for report management, manual record entry, LN Markets imports and metrics.
"""

from __future__ import annotations

import typer
from dotenv import find_dotenv, load_dotenv

from satledger.cli.imports import app as import_app
from satledger.cli.metrics import app as metrics_app
from satledger.cli.records import app as records_app
from satledger.cli.reports import app as reports_app
from satledger.cli.utils import console

app = typer.Typer(
    name="satledger",
    help="SatLedger CLI - Bitcoin investment tracking with LN Markets imports.",
    add_completion=False,
)

app.add_typer(reports_app, name="reports")
app.add_typer(records_app, name="records")
app.add_typer(import_app, name="import")
app.add_typer(metrics_app, name="metrics")


@app.callback()
def main() -> None:
    """SatLedger CLI."""
    load_dotenv(find_dotenv(usecwd=True))


@app.command()
def version() -> None:
    """Show version information."""
    from satledger import __version__

    console.print(f"satledger v{__version__}")


__all__ = ["app"]

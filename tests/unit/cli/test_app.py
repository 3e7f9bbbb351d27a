from __future__ import annotations

from typer.testing import CliRunner

from satledger import __version__
from satledger.cli import app

runner = CliRunner()


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"satledger v{__version__}" in result.stdout


def test_help_lists_command_groups() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for group in ("reports", "records", "import", "metrics"):
        assert group in result.stdout

"""Exceptions raised by the report store."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for report store failures."""


class StoreCorruptedError(StoreError, ValueError):
    """Persisted data is unreadable or has an unknown schema."""


class ReportNotFoundError(StoreError, KeyError):
    """A report id does not exist in the collection."""

    def __init__(self, report_id: str) -> None:
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")

    def __str__(self) -> str:
        return f"Report not found: {self.report_id}"


class LastReportError(StoreError):
    """The last remaining report cannot be deleted."""

    def __init__(self) -> None:
        super().__init__("At least one report must exist")

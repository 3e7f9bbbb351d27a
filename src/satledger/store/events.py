"""Report domain events and a small synchronous event bus."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()


class ReportEventType(str, Enum):
    """Named events emitted by the report store."""

    REPORT_SELECTED = "report-selected"
    REPORT_ADDED = "report-added"
    REPORT_DELETED = "report-deleted"
    REPORT_UPDATED = "report-updated"
    INVESTMENT_ADDED = "investment-added"
    INVESTMENT_DELETED = "investment-deleted"
    PROFIT_ADDED = "profit-added"
    PROFIT_DELETED = "profit-deleted"
    WITHDRAWAL_ADDED = "withdrawal-added"
    WITHDRAWAL_DELETED = "withdrawal-deleted"
    DATA_IMPORTED = "data-imported"
    BULK_OPERATION_COMPLETED = "bulk-operation-completed"


@dataclass(frozen=True)
class ReportEvent:
    """A single emitted event."""

    type: ReportEventType
    report_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class ReportEventListener(Protocol):
    """Protocol for event subscribers."""

    def __call__(self, event: ReportEvent) -> None:
        """Handle an emitted event."""
        ...


class ReportEventBus:
    """
    Fan-out of store events to subscribers.

    Usage:
        bus = ReportEventBus()
        unsubscribe = bus.subscribe(lambda event: print(event.type))
        bus.emit(ReportEventType.REPORT_ADDED, report_id)
        unsubscribe()

    A failing subscriber is logged and skipped; it never affects the emitter or
    other subscribers.
    """

    def __init__(self) -> None:
        self._listeners: list[ReportEventListener] = []
        self._last_event: ReportEvent | None = None

    @property
    def last_event(self) -> ReportEvent | None:
        """Most recently emitted event, if any."""
        return self._last_event

    def subscribe(self, listener: ReportEventListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(
        self,
        event_type: ReportEventType,
        report_id: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> ReportEvent:
        """Build an event and deliver it to every listener."""
        event = ReportEvent(type=event_type, report_id=report_id, detail=detail or {})
        self._last_event = event
        logger.debug("Report event", type=event_type.value, report_id=report_id)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Report event listener failed",
                    type=event_type.value,
                    report_id=report_id,
                )
        return event

"""Multi-report store: models, persistence, migration and domain events."""

from satledger.store.events import ReportEvent, ReportEventBus, ReportEventType
from satledger.store.exceptions import (
    LastReportError,
    ReportNotFoundError,
    StoreCorruptedError,
    StoreError,
)
from satledger.store.models import (
    CurrencyUnit,
    Investment,
    ProfitRecord,
    RecordKind,
    Report,
    ReportCollection,
    TransactionRecord,
    WithdrawalRecord,
)
from satledger.store.report_store import AddResult, AddStatus, ReportStore
from satledger.store.storage import InMemoryStorage, JsonFileStorage, StorageBackend

__all__ = [
    # Store
    "AddResult",
    "AddStatus",
    "ReportStore",
    # Storage
    "InMemoryStorage",
    "JsonFileStorage",
    "StorageBackend",
    # Events
    "ReportEvent",
    "ReportEventBus",
    "ReportEventType",
    # Exceptions
    "LastReportError",
    "ReportNotFoundError",
    "StoreCorruptedError",
    "StoreError",
    # Models
    "CurrencyUnit",
    "Investment",
    "ProfitRecord",
    "RecordKind",
    "Report",
    "ReportCollection",
    "TransactionRecord",
    "WithdrawalRecord",
]

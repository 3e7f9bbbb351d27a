"""Report store: the single source of truth for all reports.

Every mutation is copy-on-write: the next collection is computed from the current one,
normalized, persisted, and only then swapped in. A failed write leaves the in-memory state
untouched, and the state on disk matches memory as soon as a mutation call returns.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from satledger.constants import REPORTS_COLLECTION_KEY
from satledger.store.events import ReportEventBus, ReportEventType
from satledger.store.exceptions import LastReportError, ReportNotFoundError
from satledger.store.keys import DETERMINISTIC_ID_PREFIX, record_composite_key
from satledger.store.migration import migrate_from_legacy, normalize_collection, parse_collection
from satledger.store.models import (
    RECORD_MODELS,
    RecordKind,
    Report,
    ReportCollection,
    TransactionRecord,
    create_new_report,
    generate_id,
    utc_now_iso,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from satledger.store.storage import StorageBackend

logger = structlog.get_logger()

INITIAL_REPORT_NAME = "My First Report"
INITIAL_REPORT_DESCRIPTION = "Initial report"

_ADDED_EVENTS = {
    RecordKind.INVESTMENT: ReportEventType.INVESTMENT_ADDED,
    RecordKind.PROFIT: ReportEventType.PROFIT_ADDED,
    RecordKind.WITHDRAWAL: ReportEventType.WITHDRAWAL_ADDED,
}
_DELETED_EVENTS = {
    RecordKind.INVESTMENT: ReportEventType.INVESTMENT_DELETED,
    RecordKind.PROFIT: ReportEventType.PROFIT_DELETED,
    RecordKind.WITHDRAWAL: ReportEventType.WITHDRAWAL_DELETED,
}


class AddStatus(str, Enum):
    """Outcome of a single-record merge."""

    ADDED = "added"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class AddResult:
    """Result of `ReportStore.add_record`."""

    status: AddStatus
    report_id: str | None = None
    record_id: str | None = None
    reason: str | None = None

    @property
    def added(self) -> bool:
        return self.status == AddStatus.ADDED


class ReportStore:
    """
    In-memory report collection persisted on every mutation.

    Usage:
        store = ReportStore(JsonFileStorage("data/store"))
        store.load()
        store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 10_000})
    """

    def __init__(
        self,
        storage: StorageBackend,
        events: ReportEventBus | None = None,
    ) -> None:
        self._storage = storage
        self.events = events or ReportEventBus()
        self._collection: ReportCollection | None = None
        self.migrated_from_legacy = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> ReportCollection:
        """
        Load the collection from storage.

        First load without a collection migrates legacy single-report data if present,
        otherwise creates one empty report. Invalid persisted data raises
        `StoreCorruptedError` and is never overwritten.
        """
        raw = self._storage.get(REPORTS_COLLECTION_KEY)
        if raw is not None:
            collection = parse_collection(raw)
            if not collection.reports:
                collection = self._initial_collection()
            normalized = normalize_collection(collection)
            if normalized != collection or json.loads(raw).get("version") != normalized.version:
                logger.info("Report collection repaired on load")
                return self._persist(normalized)
            self._collection = normalized
            return normalized

        legacy = migrate_from_legacy(self._storage)
        if legacy is not None:
            self.migrated_from_legacy = True
            return self._persist(legacy)

        return self._persist(self._initial_collection())

    def save(self) -> None:
        """Persist the current collection (invariants re-applied)."""
        self._persist(self.collection)

    @staticmethod
    def _initial_collection() -> ReportCollection:
        report = create_new_report(INITIAL_REPORT_NAME, INITIAL_REPORT_DESCRIPTION)
        return ReportCollection(reports=[report], active_report_id=report.id)

    def _persist(self, collection: ReportCollection) -> ReportCollection:
        normalized = normalize_collection(collection).model_copy(
            update={"last_updated": utc_now_iso()}
        )
        payload = json.dumps(normalized.to_dict(), indent=2)
        self._storage.set(REPORTS_COLLECTION_KEY, payload)
        self._collection = normalized
        return normalized

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def collection(self) -> ReportCollection:
        if self._collection is None:
            return self.load()
        return self._collection

    @property
    def reports(self) -> list[Report]:
        return list(self.collection.reports)

    @property
    def active_report_id(self) -> str | None:
        return self.collection.active_report_id

    @property
    def active_report(self) -> Report | None:
        collection = self.collection
        return collection.find(collection.active_report_id or "") or (
            collection.reports[0] if collection.reports else None
        )

    def get_report(self, report_id: str) -> Report:
        """Get a report by id (raises `ReportNotFoundError`)."""
        report = self.collection.find(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)
        return report

    # ------------------------------------------------------------------
    # Report management
    # ------------------------------------------------------------------

    def _replace_report(
        self,
        collection: ReportCollection,
        report_id: str,
        **changes: Any,
    ) -> ReportCollection:
        reports = [
            report.model_copy(
                update={
                    **changes,
                    "updated_at": utc_now_iso(),
                    "revision": report.revision + 1,
                }
            )
            if report.id == report_id
            else report
            for report in collection.reports
        ]
        return collection.model_copy(update={"reports": reports})

    def add_report(self, name: str, description: str | None = None) -> Report:
        """Create a report and make it the active one."""
        name = name.strip()
        if not name:
            raise ValueError("Report name must not be empty")

        current = self.collection
        report = create_new_report(name, description)
        self._persist(
            current.model_copy(
                update={"reports": [*current.reports, report], "active_report_id": report.id}
            )
        )
        logger.info("Report created", report_id=report.id, name=name)
        self.events.emit(ReportEventType.REPORT_ADDED, report.id, {"name": name})
        return self.get_report(report.id)

    def select_active_report(self, report_id: str) -> bool:
        """
        Make a report the active one.

        Returns False (no write, no event) when it is already active.
        """
        current = self.collection
        if current.find(report_id) is None:
            raise ReportNotFoundError(report_id)
        if current.active_report_id == report_id:
            return False

        self._persist(current.model_copy(update={"active_report_id": report_id}))
        self.events.emit(ReportEventType.REPORT_SELECTED, report_id)
        return True

    def delete_report(self, report_id: str) -> str:
        """
        Delete a report.

        The last remaining report cannot be deleted. Deleting the active report promotes
        the first remaining report in the same write.

        Returns:
            The id of the active report after deletion.
        """
        current = self.collection
        target = current.find(report_id)
        if target is None:
            raise ReportNotFoundError(report_id)
        if len(current.reports) <= 1:
            raise LastReportError

        remaining = [r for r in current.reports if r.id != report_id]
        active_id = current.active_report_id
        if active_id == report_id:
            active_id = remaining[0].id

        updated = self._persist(
            current.model_copy(update={"reports": remaining, "active_report_id": active_id})
        )
        logger.info("Report deleted", report_id=report_id, active_report_id=active_id)
        self.events.emit(
            ReportEventType.REPORT_DELETED,
            report_id,
            {"name": target.name, "active_report_id": updated.active_report_id},
        )
        return updated.active_report_id or active_id

    def update_report(
        self,
        report_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        color: str | None = None,
    ) -> Report:
        """Rename or re-describe a report. Record lists are not editable through this."""
        current = self.collection
        if current.find(report_id) is None:
            raise ReportNotFoundError(report_id)

        changes: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValueError("Report name must not be empty")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if color is not None:
            changes["color"] = color
        if not changes:
            return self.get_report(report_id)

        self._persist(self._replace_report(current, report_id, **changes))
        self.events.emit(ReportEventType.REPORT_UPDATED, report_id, {"fields": sorted(changes)})
        return self.get_report(report_id)

    def associate_config(self, report_id: str, config_id: str) -> Report:
        """Associate an API configuration with a report and mark it last used."""
        current = self.collection
        report = current.find(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        config_ids = list(report.associated_ln_markets_config_ids)
        if config_id not in config_ids:
            config_ids.append(config_id)
        if (
            config_ids == report.associated_ln_markets_config_ids
            and report.last_used_config_id == config_id
        ):
            return report

        self._persist(
            self._replace_report(
                current,
                report_id,
                associated_ln_markets_config_ids=config_ids,
                last_used_config_id=config_id,
            )
        )
        self.events.emit(ReportEventType.REPORT_UPDATED, report_id, {"config_id": config_id})
        return self.get_report(report_id)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _resolve_target(self, target_report_id: str | None) -> Report | None:
        collection = self.collection
        if target_report_id is not None:
            return collection.find(target_report_id)
        return self.active_report

    def add_record(
        self,
        kind: RecordKind,
        data: Mapping[str, Any] | TransactionRecord,
        target_report_id: str | None = None,
        *,
        notify: bool = True,
    ) -> AddResult:
        """
        Append one record to a report.

        Target resolution: explicit id, else the active report, else the first report.
        Store inconsistencies and invalid data produce an `error` result instead of raising,
        so a batch import can continue past one bad record.
        """
        report = self._resolve_target(target_report_id)
        if report is None:
            reason = "report-not-found" if target_report_id else "no-report"
            logger.warning("Record target unresolved", kind=kind.value, reason=reason)
            return AddResult(AddStatus.ERROR, target_report_id, reason=reason)

        payload = data.to_dict() if isinstance(data, TransactionRecord) else dict(data)
        provided_id = payload.get("id")
        if isinstance(provided_id, str) and provided_id.startswith(DETERMINISTIC_ID_PREFIX):
            record_id = provided_id
        else:
            record_id = generate_id()
        payload["id"] = record_id

        try:
            record = RECORD_MODELS[kind].model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid record rejected", kind=kind.value, error=str(e))
            return AddResult(AddStatus.ERROR, report.id, reason=f"invalid-record: {e}")

        # Final guard against the current state (the importer's in-run index may be stale).
        existing = report.records(kind)
        if any(r.id == record_id for r in existing):
            return AddResult(AddStatus.DUPLICATE, report.id, record_id, "id-exists")
        key = record_composite_key(record, kind)
        if key is not None and any(record_composite_key(r, kind) == key for r in existing):
            return AddResult(AddStatus.DUPLICATE, report.id, record_id, "composite-key-exists")

        current = self.collection
        next_collection = self._replace_report(
            current, report.id, **{kind.collection_field: [*existing, record]}
        )
        try:
            self._persist(next_collection)
        except OSError as e:
            logger.error("Failed to persist record", kind=kind.value, error=str(e))
            return AddResult(AddStatus.ERROR, report.id, record_id, f"persist-failed: {e}")

        if notify:
            self.events.emit(_ADDED_EVENTS[kind], report.id, {"record_id": record_id})
        return AddResult(AddStatus.ADDED, report.id, record_id)

    def delete_record(self, report_id: str, kind: RecordKind, record_id: str) -> bool:
        """Delete one record. Returns False when the record does not exist."""
        current = self.collection
        report = current.find(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        existing = report.records(kind)
        remaining = [r for r in existing if r.id != record_id]
        if len(remaining) == len(existing):
            return False

        self._persist(
            self._replace_report(current, report_id, **{kind.collection_field: remaining})
        )
        self.events.emit(_DELETED_EVENTS[kind], report_id, {"record_id": record_id})
        return True

    def bulk_clear(self, report_id: str, kind: RecordKind) -> int:
        """Remove every record of one kind from a report. Returns the number removed."""
        current = self.collection
        report = current.find(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        removed = len(report.records(kind))
        if removed == 0:
            return 0

        self._persist(self._replace_report(current, report_id, **{kind.collection_field: []}))
        logger.info("Records cleared", report_id=report_id, kind=kind.value, removed=removed)
        self.events.emit(
            ReportEventType.BULK_OPERATION_COMPLETED,
            report_id,
            {"operation": "clear", "kind": kind.value, "removed": removed},
        )
        return removed

    def import_records(
        self,
        report_id: str,
        *,
        investments: Sequence[Mapping[str, Any] | TransactionRecord] | None = None,
        profits: Sequence[Mapping[str, Any] | TransactionRecord] | None = None,
        withdrawals: Sequence[Mapping[str, Any] | TransactionRecord] | None = None,
        replace: bool = False,
    ) -> dict[RecordKind, int]:
        """
        Bulk-merge records (e.g. from a file or another report) in one write.

        Merging keeps existing records and appends incoming ones whose id is not present;
        `replace=True` swaps the provided lists in wholesale. Records without an id get one.

        Returns:
            Number of records written per kind.
        """
        current = self.collection
        report = current.find(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        incoming = {
            RecordKind.INVESTMENT: investments,
            RecordKind.PROFIT: profits,
            RecordKind.WITHDRAWAL: withdrawals,
        }
        changes: dict[str, list[Any]] = {}
        counts: dict[RecordKind, int] = {}
        for kind, items in incoming.items():
            if items is None:
                continue
            model = RECORD_MODELS[kind]
            records: list[Any] = []
            for item in items:
                payload = item.to_dict() if isinstance(item, TransactionRecord) else dict(item)
                payload.setdefault("id", generate_id())
                records.append(model.model_validate(payload))

            if replace:
                merged = records
                counts[kind] = len(records)
            else:
                seen = {r.id for r in report.records(kind)}
                fresh = []
                for record in records:
                    if record.id not in seen:
                        seen.add(record.id)
                        fresh.append(record)
                merged = [*report.records(kind), *fresh]
                counts[kind] = len(fresh)
            changes[kind.collection_field] = merged

        if not changes:
            return counts

        self._persist(self._replace_report(current, report_id, **changes))
        self.events.emit(
            ReportEventType.DATA_IMPORTED,
            report_id,
            {"replace": replace, "counts": {k.value: v for k, v in counts.items()}},
        )
        return counts

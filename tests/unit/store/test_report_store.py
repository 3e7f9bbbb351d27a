"""
ReportStore tests - real store over in-memory storage.

Covers the single-active invariant, active promotion on delete, the final duplicate
guard in add_record, copy-on-write persistence and event emission.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from satledger.constants import REPORTS_COLLECTION_KEY
from satledger.store import (
    AddStatus,
    InMemoryStorage,
    LastReportError,
    RecordKind,
    ReportEventBus,
    ReportEventType,
    ReportNotFoundError,
    ReportStore,
)

if TYPE_CHECKING:
    from satledger.store.events import ReportEvent


def _assert_single_active(store: ReportStore) -> None:
    collection = store.collection
    active = [r for r in collection.reports if r.is_active]
    assert len(active) == 1
    assert active[0].id == collection.active_report_id


def _persisted(storage: InMemoryStorage) -> dict[str, Any]:
    raw = storage.get(REPORTS_COLLECTION_KEY)
    assert raw is not None
    data: dict[str, Any] = json.loads(raw)
    return data


class TestLoad:
    def test_first_load_creates_initial_report(self, storage: InMemoryStorage) -> None:
        store = ReportStore(storage)
        collection = store.load()

        assert len(collection.reports) == 1
        assert collection.reports[0].name == "My First Report"
        assert collection.active_report_id == collection.reports[0].id
        assert _persisted(storage)["activeReportId"] == collection.reports[0].id

    def test_reload_reads_persisted_collection(self, storage: InMemoryStorage) -> None:
        first = ReportStore(storage)
        first.load()
        report = first.add_report("Second")

        second = ReportStore(storage)
        collection = second.load()

        assert [r.name for r in collection.reports] == ["My First Report", "Second"]
        assert collection.active_report_id == report.id

    def test_load_repairs_dangling_active_pointer(self, storage: InMemoryStorage) -> None:
        store = ReportStore(storage)
        store.load()
        data = _persisted(storage)
        data["activeReportId"] = "missing"
        data["reports"][0]["isActive"] = False
        storage.set(REPORTS_COLLECTION_KEY, json.dumps(data))

        reloaded = ReportStore(storage)
        collection = reloaded.load()

        assert collection.active_report_id == collection.reports[0].id
        assert collection.reports[0].is_active is True
        assert _persisted(storage)["activeReportId"] == collection.reports[0].id

    def test_active_flags_rederived_from_pointer(self, storage: InMemoryStorage) -> None:
        store = ReportStore(storage)
        store.load()
        second = store.add_report("Second")
        data = _persisted(storage)
        for report in data["reports"]:
            report["isActive"] = True  # both flagged; the pointer wins
        storage.set(REPORTS_COLLECTION_KEY, json.dumps(data))

        reloaded = ReportStore(storage)
        reloaded.load()

        _assert_single_active(reloaded)
        assert reloaded.active_report_id == second.id

    def test_collection_property_loads_lazily(self, storage: InMemoryStorage) -> None:
        store = ReportStore(storage)
        assert len(store.collection.reports) == 1


class TestReportManagement:
    def test_add_report_becomes_active(self, store: ReportStore) -> None:
        report = store.add_report("  Trading  ", "desc")

        assert report.name == "Trading"
        assert report.description == "desc"
        assert store.active_report_id == report.id
        _assert_single_active(store)

    def test_add_report_rejects_empty_name(self, store: ReportStore) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            store.add_report("   ")

    def test_select_active_report(self, store: ReportStore) -> None:
        first = store.reports[0]
        store.add_report("Second")

        assert store.select_active_report(first.id) is True
        assert store.active_report_id == first.id
        _assert_single_active(store)

    def test_select_already_active_is_noop(self, store: ReportStore) -> None:
        events: list[ReportEvent] = []
        store.events.subscribe(events.append)
        active_id = store.active_report_id
        assert active_id is not None

        assert store.select_active_report(active_id) is False
        assert events == []

    def test_select_unknown_report_raises(self, store: ReportStore) -> None:
        with pytest.raises(ReportNotFoundError):
            store.select_active_report("nope")

    def test_delete_active_report_promotes_first_remaining(self, store: ReportStore) -> None:
        a = store.reports[0]
        b = store.add_report("B")
        store.select_active_report(a.id)

        new_active = store.delete_report(a.id)

        assert new_active == b.id
        assert store.active_report_id == b.id
        assert store.get_report(b.id).is_active is True
        _assert_single_active(store)

    def test_delete_inactive_report_keeps_active(self, store: ReportStore) -> None:
        a = store.reports[0]
        b = store.add_report("B")

        store.delete_report(a.id)

        assert store.active_report_id == b.id
        assert [r.id for r in store.reports] == [b.id]

    def test_delete_last_report_rejected(self, store: ReportStore) -> None:
        only = store.reports[0]

        with pytest.raises(LastReportError):
            store.delete_report(only.id)

        assert [r.id for r in store.reports] == [only.id]

    def test_delete_unknown_report_raises(self, store: ReportStore) -> None:
        store.add_report("B")
        with pytest.raises(ReportNotFoundError):
            store.delete_report("nope")

    def test_single_active_invariant_over_operation_sequence(self, store: ReportStore) -> None:
        ids = [store.reports[0].id]
        for name in ("B", "C", "D"):
            ids.append(store.add_report(name).id)
            _assert_single_active(store)

        store.select_active_report(ids[1])
        _assert_single_active(store)
        store.delete_report(ids[1])
        _assert_single_active(store)
        store.delete_report(ids[0])
        _assert_single_active(store)
        store.select_active_report(ids[3])
        _assert_single_active(store)
        store.delete_report(ids[3])
        _assert_single_active(store)
        assert [r.id for r in store.reports] == [ids[2]]

    def test_update_report_renames_and_bumps_revision(self, store: ReportStore) -> None:
        report = store.reports[0]

        updated = store.update_report(report.id, name="Renamed", description="New")

        assert updated.name == "Renamed"
        assert updated.description == "New"
        assert updated.revision == report.revision + 1
        assert store.events.last_event is not None
        assert store.events.last_event.type == ReportEventType.REPORT_UPDATED

    def test_update_report_without_changes_does_not_write(self, store: ReportStore) -> None:
        report = store.reports[0]
        assert store.update_report(report.id) == report

    def test_associate_config_tracks_last_used(self, store: ReportStore) -> None:
        report_id = store.reports[0].id

        store.associate_config(report_id, "cfg-1")
        report = store.associate_config(report_id, "cfg-2")

        assert report.associated_ln_markets_config_ids == ["cfg-1", "cfg-2"]
        assert report.last_used_config_id == "cfg-2"

        again = store.associate_config(report_id, "cfg-1")
        assert again.associated_ln_markets_config_ids == ["cfg-1", "cfg-2"]
        assert again.last_used_config_id == "cfg-1"


class TestAddRecord:
    def test_add_to_active_report_by_default(self, store: ReportStore) -> None:
        result = store.add_record(
            RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 0.5, "unit": "BTC"}
        )

        assert result.status == AddStatus.ADDED
        report = store.active_report
        assert report is not None
        assert [r.id for r in report.investments] == [result.record_id]
        assert report.revision == 1

    def test_add_to_explicit_report(self, store: ReportStore) -> None:
        first = store.reports[0]
        store.add_report("Other")

        result = store.add_record(
            RecordKind.PROFIT,
            {"date": "2024-01-01", "amount": 100, "isProfit": True},
            first.id,
        )

        assert result.report_id == first.id
        assert len(store.get_report(first.id).profits) == 1

    def test_missing_target_report_is_error_result(self, store: ReportStore) -> None:
        result = store.add_record(
            RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 1}, "missing"
        )

        assert result.status == AddStatus.ERROR
        assert result.reason == "report-not-found"

    def test_invalid_record_is_error_result(self, store: ReportStore) -> None:
        result = store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": -5})

        assert result.status == AddStatus.ERROR
        assert result.reason is not None
        assert result.reason.startswith("invalid-record")

    def test_fresh_id_generated_for_manual_records(self, store: ReportStore) -> None:
        result = store.add_record(
            RecordKind.INVESTMENT, {"id": "user-chosen", "date": "2024-01-01", "amount": 1}
        )

        assert result.record_id is not None
        assert result.record_id != "user-chosen"

    def test_deterministic_id_preserved(self, store: ReportStore) -> None:
        payload = {
            "id": "lnm_trade_t1_100.00",
            "originalId": "t1",
            "date": "2024-01-01",
            "amount": 100,
            "isProfit": True,
        }

        first = store.add_record(RecordKind.PROFIT, payload)
        second = store.add_record(RecordKind.PROFIT, payload)

        assert first.record_id == "lnm_trade_t1_100.00"
        assert second.status == AddStatus.DUPLICATE
        assert second.reason == "id-exists"

    def test_same_composite_key_is_duplicate(self, store: ReportStore) -> None:
        base = {"originalId": "trade_t9", "date": "2024-01-01", "amount": 42, "isProfit": False}
        store.add_record(RecordKind.PROFIT, base)

        result = store.add_record(RecordKind.PROFIT, {**base, "originalId": "lnm_trade_t9"})

        assert result.status == AddStatus.DUPLICATE
        assert result.reason == "composite-key-exists"

    def test_same_original_id_different_value_is_added(self, store: ReportStore) -> None:
        store.add_record(
            RecordKind.PROFIT,
            {"originalId": "t1", "date": "2024-01-01", "amount": 100, "isProfit": True},
        )

        result = store.add_record(
            RecordKind.PROFIT,
            {"originalId": "t1", "date": "2024-01-01", "amount": 50, "isProfit": False},
        )

        assert result.status == AddStatus.ADDED

    def test_emits_added_event_unless_suppressed(self, store: ReportStore) -> None:
        events: list[ReportEvent] = []
        store.events.subscribe(events.append)

        store.add_record(RecordKind.WITHDRAWAL, {"date": "2024-01-01", "amount": 10})
        store.add_record(RecordKind.WITHDRAWAL, {"date": "2024-01-02", "amount": 11}, notify=False)

        assert [e.type for e in events] == [ReportEventType.WITHDRAWAL_ADDED]

    def test_persist_failure_leaves_memory_untouched(self) -> None:
        class FailingStorage(InMemoryStorage):
            fail = False

            def set(self, key: str, value: str) -> None:
                if self.fail:
                    raise OSError("disk full")
                super().set(key, value)

        storage = FailingStorage()
        store = ReportStore(storage)
        store.load()
        storage.fail = True

        result = store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 1})

        assert result.status == AddStatus.ERROR
        assert result.reason is not None
        assert "persist-failed" in result.reason
        active = store.active_report
        assert active is not None
        assert active.investments == []

    def test_every_mutation_persists_immediately(
        self, storage: InMemoryStorage, store: ReportStore
    ) -> None:
        store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 7})

        data = _persisted(storage)
        assert data["reports"][0]["investments"][0]["amount"] == 7
        assert data["lastUpdated"] == store.collection.last_updated


class TestDeleteAndClear:
    def test_delete_record(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        added = store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 1})
        assert added.record_id is not None

        assert store.delete_record(report_id, RecordKind.INVESTMENT, added.record_id) is True
        assert store.get_report(report_id).investments == []
        assert store.events.last_event is not None
        assert store.events.last_event.type == ReportEventType.INVESTMENT_DELETED

    def test_delete_missing_record_returns_false(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        assert store.delete_record(report_id, RecordKind.PROFIT, "nope") is False

    def test_bulk_clear(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        for day in ("2024-01-01", "2024-01-02", "2024-01-03"):
            store.add_record(RecordKind.INVESTMENT, {"date": day, "amount": 1})
        store.add_record(RecordKind.PROFIT, {"date": "2024-01-01", "amount": 1, "isProfit": True})

        removed = store.bulk_clear(report_id, RecordKind.INVESTMENT)

        report = store.get_report(report_id)
        assert removed == 3
        assert report.investments == []
        assert len(report.profits) == 1
        assert store.events.last_event is not None
        assert store.events.last_event.type == ReportEventType.BULK_OPERATION_COMPLETED

    def test_bulk_clear_empty_kind_is_noop(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        revision = store.get_report(report_id).revision

        assert store.bulk_clear(report_id, RecordKind.WITHDRAWAL) == 0
        assert store.get_report(report_id).revision == revision


class TestImportRecords:
    def test_merge_keeps_existing_and_skips_known_ids(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        store.import_records(
            report_id,
            investments=[{"id": "a", "date": "2024-01-01", "amount": 1}],
        )

        counts = store.import_records(
            report_id,
            investments=[
                {"id": "a", "date": "2024-01-01", "amount": 1},
                {"id": "b", "date": "2024-01-02", "amount": 2},
            ],
        )

        assert counts == {RecordKind.INVESTMENT: 1}
        assert [r.id for r in store.get_report(report_id).investments] == ["a", "b"]

    def test_replace_swaps_lists(self, store: ReportStore) -> None:
        report_id = store.reports[0].id
        store.add_record(RecordKind.PROFIT, {"date": "2024-01-01", "amount": 5, "isProfit": True})

        store.import_records(
            report_id,
            profits=[{"date": "2024-02-01", "amount": 9, "isProfit": False}],
            replace=True,
        )

        profits = store.get_report(report_id).profits
        assert len(profits) == 1
        assert profits[0].amount == 9
        assert store.events.last_event is not None
        assert store.events.last_event.type == ReportEventType.DATA_IMPORTED

    def test_unknown_report_raises(self, store: ReportStore) -> None:
        with pytest.raises(ReportNotFoundError):
            store.import_records("nope", investments=[])


def test_stores_are_independent() -> None:
    """No hidden singletons: two stores over separate storage do not share state."""
    a = ReportStore(InMemoryStorage(), ReportEventBus())
    b = ReportStore(InMemoryStorage(), ReportEventBus())
    a.load()
    b.load()

    a.add_report("Only in A")

    assert len(a.reports) == 2
    assert len(b.reports) == 1

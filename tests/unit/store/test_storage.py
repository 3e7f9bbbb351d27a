"""Tests for storage backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from satledger.store import InMemoryStorage, JsonFileStorage, RecordKind, ReportStore
from satledger.store import storage as storage_module

if TYPE_CHECKING:
    from pathlib import Path


class TestInMemoryStorage:
    def test_roundtrip_and_delete(self) -> None:
        storage = InMemoryStorage()
        assert storage.get("k") is None

        storage.set("k", "v")
        assert storage.get("k") == "v"
        assert storage.keys() == ["k"]

        storage.delete("k")
        storage.delete("k")
        assert storage.get("k") is None


class TestJsonFileStorage:
    def test_writes_one_file_per_key(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "store")

        storage.set("bitcoinReportsCollection", '{"a": 1}')

        path = tmp_path / "store" / "bitcoinReportsCollection.json"
        assert path.read_text(encoding="utf-8") == '{"a": 1}'
        assert storage.get("bitcoinReportsCollection") == '{"a": 1}'
        assert list((tmp_path / "store").iterdir()) == [path]

    def test_missing_key_returns_none(self, tmp_path: Path) -> None:
        assert JsonFileStorage(tmp_path).get("absent") is None

    def test_delete(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path)
        storage.set("k", "v")
        storage.delete("k")
        storage.delete("k")
        assert storage.get("k") is None

    def test_failed_write_leaves_no_temp_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        storage = JsonFileStorage(tmp_path)
        storage.set("k", "old")

        def _fail(fd: int) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(storage_module.os, "fsync", _fail)

        with pytest.raises(OSError, match="disk full"):
            storage.set("k", "new")

        assert storage.get("k") == "old"
        assert list(tmp_path.iterdir()) == [tmp_path / "k.json"]

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_rejects_unsafe_keys(self, tmp_path: Path, key: str) -> None:
        with pytest.raises(ValueError, match="Invalid storage key"):
            JsonFileStorage(tmp_path).set(key, "v")

    def test_store_survives_restart(self, tmp_path: Path) -> None:
        store = ReportStore(JsonFileStorage(tmp_path))
        store.load()
        store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 3})

        reopened = ReportStore(JsonFileStorage(tmp_path))
        reopened.load()

        active = reopened.active_report
        assert active is not None
        assert [i.amount for i in active.investments] == [3]

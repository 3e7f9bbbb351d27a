"""Duplicate detector: at-most-once import of each logical upstream transaction.

A record is identified by its composite key `normalizedId|roundedSettledValue`. The same
upstream id with a different settled value (a correction or adjustment) is a distinct event.
Transfers without an upstream id get a fallback identity (see `fallback_identity`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from satledger.importer.converters import fallback_identity, settled_value, upstream_id
from satledger.store.keys import composite_key, normalize_record_id, record_composite_key

if TYPE_CHECKING:
    from collections.abc import Mapping

    from satledger.importer.validation import SourceKind
    from satledger.store.models import Report


class DuplicateStatus(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class DuplicateCheck:
    """Decision for one record, with the identity used (for logs and statistics)."""

    status: DuplicateStatus
    composite_key: str
    normalized_id: str
    known_id: bool = False
    """True when the normalized id already exists in the report (with any settled value)."""
    assigned_id: str | None = None
    """Fallback identity given to a record that arrived without an upstream id."""

    @property
    def is_duplicate(self) -> bool:
        return self.status == DuplicateStatus.DUPLICATE

    def identified(self, raw: Mapping[str, Any]) -> Mapping[str, Any]:
        """The raw record carrying its assigned identity, so it is stored as `originalId`."""
        if self.assigned_id is None:
            return raw
        return {**raw, "id": self.assigned_id}


class DuplicateDetector:
    """
    Composite-key index for one import run.

    Seeded once from the target report; lookups never re-query the store. A key is recorded
    on first sight, before the record is merged, so later pages of the same run already see it.

    Id-less records sharing a content-derived identity are numbered in arrival order (`#0`, `#1`...),
    so distinct transfers stay distinct and a re-import in the same upstream order maps onto
    the records already stored.
    """

    def __init__(self, kind: SourceKind) -> None:
        self.kind = kind
        self._seen_keys: set[str] = set()
        self._known_ids: set[str] = set()
        self._occurrences: dict[str, int] = {}

    @classmethod
    def from_report(cls, report: Report | None, kind: SourceKind) -> DuplicateDetector:
        """Build the index from the report's existing records of the matching kind."""
        detector = cls(kind)
        if report is None:
            return detector

        record_kind = kind.record_kind
        for record in report.records(record_kind):
            key = record_composite_key(record, record_kind)
            if key is None:
                continue
            detector._seen_keys.add(key)
            detector._known_ids.add(key.rsplit("|", 1)[0])
        return detector

    def __len__(self) -> int:
        return len(self._seen_keys)

    def __contains__(self, key: object) -> bool:
        return key in self._seen_keys

    def _assign_id(self, raw: Mapping[str, Any]) -> str:
        base = fallback_identity(raw, self.kind)
        if base.startswith("tx:"):
            return base
        occurrence = self._occurrences.get(base, 0)
        self._occurrences[base] = occurrence + 1
        return f"{base}#{occurrence}"

    def check(self, raw: Mapping[str, Any]) -> DuplicateCheck:
        """Classify a record, registering its key when it is new."""
        raw_id = upstream_id(raw, self.kind)
        assigned_id = None
        if raw_id is None:
            raw_id = assigned_id = self._assign_id(raw)

        normalized_id = normalize_record_id(raw_id, self.kind.record_kind)
        key = composite_key(normalized_id, settled_value(raw, self.kind))
        known_id = normalized_id in self._known_ids
        if key in self._seen_keys:
            return DuplicateCheck(
                DuplicateStatus.DUPLICATE, key, normalized_id, known_id, assigned_id
            )

        self._seen_keys.add(key)
        self._known_ids.add(normalized_id)
        return DuplicateCheck(DuplicateStatus.NEW, key, normalized_id, known_id, assigned_id)

    def forget(self, key: str) -> None:
        """Drop a key registered by `check` (the merge that followed it failed)."""
        self._seen_keys.discard(key)

"""Schema versioning, invariant normalization and legacy-format migration."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from satledger.constants import LEGACY_INVESTMENTS_KEY, LEGACY_PROFITS_KEY, SCHEMA_VERSION
from satledger.store.exceptions import StoreCorruptedError
from satledger.store.models import (
    Investment,
    ProfitRecord,
    ReportCollection,
    TransactionRecord,
    create_new_report,
    generate_id,
    utc_now_iso,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from satledger.store.storage import StorageBackend

logger = structlog.get_logger()

LEGACY_REPORT_NAME = "Main Report"
LEGACY_REPORT_DESCRIPTION = "Migrated from the single-report format"


def _migrate_1_0_0(data: dict[str, Any]) -> dict[str, Any]:
    """1.0.0 -> 2.0.0: record lists always present, multi-config association, revision."""
    reports = data.get("reports")
    if not isinstance(reports, list):
        raise StoreCorruptedError("Report collection has no 'reports' list")

    migrated: list[dict[str, Any]] = []
    for index, report in enumerate(reports):
        if not isinstance(report, dict):
            raise StoreCorruptedError(f"Report at index {index} is not an object")
        report = dict(report)
        for field_name in ("investments", "profits", "withdrawals"):
            if not isinstance(report.get(field_name), list):
                report[field_name] = []

        config_ids = report.get("associatedLNMarketsConfigIds")
        if not isinstance(config_ids, list):
            config_ids = []
        legacy_config_id = report.pop("associatedLNMarketsConfigId", None)
        report.pop("associatedLNMarketsConfigName", None)
        if legacy_config_id and legacy_config_id not in config_ids:
            config_ids.append(legacy_config_id)
            report.setdefault("lastUsedConfigId", legacy_config_id)
        report["associatedLNMarketsConfigIds"] = config_ids
        report.setdefault("revision", 0)
        migrated.append(report)

    return {**data, "reports": migrated, "version": "2.0.0"}


# Each step upgrades the payload by exactly one version.
_MIGRATIONS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "1.0.0": _migrate_1_0_0,
}


def migrate_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a decoded collection payload to the current schema version."""
    version = data.get("version") or "1.0.0"
    data = {**data, "version": version}

    while version != SCHEMA_VERSION:
        step = _MIGRATIONS.get(version)
        if step is None:
            raise StoreCorruptedError(f"Unsupported report collection version: {version}")
        logger.info("Migrating report collection", from_version=version)
        data = step(data)
        version = data["version"]

    return data


def parse_collection(raw: str) -> ReportCollection:
    """Decode, migrate and validate a persisted collection."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StoreCorruptedError(
            "Report collection is not valid JSON. Fix the file or restore from backup."
        ) from e

    if not isinstance(data, dict):
        raise StoreCorruptedError("Report collection must be a JSON object")

    data = migrate_payload(data)
    try:
        return ReportCollection.model_validate(data)
    except ValidationError as e:
        raise StoreCorruptedError(f"Report collection has an unexpected schema: {e}") from e


def normalize_collection(collection: ReportCollection) -> ReportCollection:
    """
    Re-derive the active flags from `active_report_id`.

    If the pointer is missing or dangling, the first report is promoted. The flags are never
    trusted on their own, so the two representations cannot drift apart.
    """
    if not collection.reports:
        return collection.model_copy(update={"active_report_id": None})

    active_id = collection.active_report_id
    if collection.find(active_id or "") is None:
        active_id = collection.reports[0].id

    reports = [
        report.model_copy(update={"is_active": report.id == active_id})
        for report in collection.reports
    ]
    return collection.model_copy(update={"reports": reports, "active_report_id": active_id})


def _load_legacy_records(
    storage: StorageBackend,
    key: str,
    model: type[TransactionRecord],
) -> list[Any] | None:
    raw = storage.get(key)
    if raw is None:
        return None
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StoreCorruptedError(f"Legacy data under '{key}' is not valid JSON") from e
    if not isinstance(items, list):
        raise StoreCorruptedError(f"Legacy data under '{key}' must be a list")

    records: list[Any] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping non-object legacy record", key=key, index=index)
            continue
        payload = dict(item)
        payload.setdefault("id", generate_id())
        try:
            records.append(model.model_validate(payload))
        except ValidationError as e:
            logger.warning("Skipping invalid legacy record", key=key, index=index, error=str(e))
    return records


def migrate_from_legacy(storage: StorageBackend) -> ReportCollection | None:
    """
    Build a one-report collection from the legacy single-report keys.

    Returns None when no legacy data exists.
    """
    investments = _load_legacy_records(storage, LEGACY_INVESTMENTS_KEY, Investment)
    profits = _load_legacy_records(storage, LEGACY_PROFITS_KEY, ProfitRecord)
    if investments is None and profits is None:
        return None

    report = create_new_report(LEGACY_REPORT_NAME, LEGACY_REPORT_DESCRIPTION)
    report = report.model_copy(
        update={"investments": investments or [], "profits": profits or []}
    )
    logger.info(
        "Migrated legacy single-report data",
        investments=len(report.investments),
        profits=len(report.profits),
    )
    return ReportCollection(
        reports=[report],
        active_report_id=report.id,
        last_updated=utc_now_iso(),
        version=SCHEMA_VERSION,
    )

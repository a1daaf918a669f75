from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from birthday_roster.models import MigrationRecord, Roster, RosterEntry
from birthday_roster.validation import LEGACY_EXTERNAL_ID_KEY, ValidationError, validate_entry, validate_roster

LOGGER = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 1
LEGACY_SCHEMA_VERSION = 0

LEGACY_LIST_KEYS = ("members", "birthdays")
_LEGACY_DATE_SEPARATOR = re.compile(r"[/-]")


def _first_item(items: list[Any]) -> Mapping[str, Any] | None:
    if items and isinstance(items[0], Mapping):
        return items[0]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def detect_version(raw: Any) -> int | None:
    if not isinstance(raw, Mapping):
        return None

    birthdays = raw.get("birthdays")
    if isinstance(birthdays, list):
        if not birthdays and not raw.get("members"):
            return CURRENT_SCHEMA_VERSION
        first = _first_item(birthdays)
        if (
            first is not None
            and isinstance(first.get("name"), str)
            and _is_number(first.get("month"))
            and _is_number(first.get("day"))
        ):
            return CURRENT_SCHEMA_VERSION

    for key in LEGACY_LIST_KEYS:
        items = raw.get(key)
        if not isinstance(items, list):
            continue
        first = _first_item(items)
        if first is not None and isinstance(first.get("name"), str) and isinstance(first.get("date"), str):
            return LEGACY_SCHEMA_VERSION

    return None


def needs_migration(raw: Any) -> bool:
    version = detect_version(raw)
    return version is not None and version < CURRENT_SCHEMA_VERSION


def _legacy_items(raw: Mapping[str, Any]) -> list[Any] | None:
    for key in LEGACY_LIST_KEYS:
        items = raw.get(key)
        if isinstance(items, list):
            return items
    return None


def parse_legacy_date(value: str) -> tuple[int, int]:
    parts = _LEGACY_DATE_SEPARATOR.split(value.strip())
    if len(parts) != 2:
        raise ValueError(f"Invalid date format: {value}. Expected MM/DD or MM-DD")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ValueError(f"Invalid date numbers in: {value}") from exc


def _migrate_legacy_entry(legacy: Mapping[str, Any], index: int) -> RosterEntry:
    name = legacy.get("name")
    if not isinstance(name, str):
        raise ValueError("Missing or invalid name")

    raw_date = legacy.get("date")
    if not isinstance(raw_date, str):
        raise ValueError("Missing or invalid date")

    month, day = parse_legacy_date(raw_date)
    candidate: dict[str, Any] = {"name": name, "month": month, "day": day}

    external_id = legacy.get("externalId", legacy.get(LEGACY_EXTERNAL_ID_KEY))
    if isinstance(external_id, str):
        candidate["externalId"] = external_id

    return validate_entry(candidate, index)


def _migrate_legacy(raw: Any, record: MigrationRecord) -> MigrationRecord:
    if not isinstance(raw, Mapping):
        record.errors.append("Invalid data format")
        return record

    items = _legacy_items(raw)
    if items is None:
        record.errors.append("No birthday array found in legacy data")
        return record

    migrated: list[dict[str, Any]] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            record.warnings.append(f"Skipping invalid birthday entry at index {index}")
            continue
        try:
            entry = _migrate_legacy_entry(item, index)
        except ValueError as exc:
            record.warnings.append(f"Skipping birthday entry at index {index}: {exc}")
            continue
        migrated.append(entry.to_dict())

    if not migrated:
        record.errors.append("No valid birthdays could be migrated")
        return record

    try:
        record.roster = validate_roster({"birthdays": migrated})
    except ValidationError as exc:
        record.errors.append(f"Migrated data failed validation: {exc.message}")
        return record

    record.success = True
    record.needs_persist = True
    return record


def migrate(raw: Any) -> MigrationRecord:
    record = MigrationRecord(original_version=detect_version(raw), target_version=CURRENT_SCHEMA_VERSION)

    if not isinstance(raw, Mapping):
        record.errors.append("Invalid data format")
        return record

    if record.original_version == CURRENT_SCHEMA_VERSION:
        try:
            record.roster = validate_roster(raw)
        except ValidationError as exc:
            record.errors.append(exc.message)
            return record
        record.success = True
        return record

    if record.original_version is None:
        record.warnings.append("Could not detect data version, attempting legacy migration")

    return _migrate_legacy(raw, record)


def migration_summary(record: MigrationRecord) -> str:
    if not record.success:
        return f"Migration failed: {', '.join(record.errors) or 'unknown error'}"

    count = len(record.roster.entries) if record.roster is not None else 0
    summary = f"Successfully migrated {count} birthdays"
    if record.original_version is not None and record.original_version != record.target_version:
        summary += f" from version {record.original_version} to version {record.target_version}"
    if record.warnings:
        summary += f" with {len(record.warnings)} warnings"
    return summary


def create_backup(roster: Roster, now: datetime) -> str:
    backup = {
        "version": CURRENT_SCHEMA_VERSION,
        "timestamp": now.isoformat(),
        "data": roster.to_dict(),
    }
    return json.dumps(backup, indent=2)


def restore_backup(text: str) -> MigrationRecord:
    try:
        backup = json.loads(text)
    except json.JSONDecodeError as exc:
        record = MigrationRecord(original_version=None, target_version=CURRENT_SCHEMA_VERSION)
        record.errors.append(f"Failed to parse backup: {exc}")
        return record

    if isinstance(backup, Mapping) and "version" in backup and isinstance(backup.get("data"), Mapping):
        LOGGER.info("Restoring backup written at %s", backup.get("timestamp"))
        return migrate(backup["data"])

    return migrate(backup)

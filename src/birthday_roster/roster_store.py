from __future__ import annotations

import json
import logging

from birthday_roster.migration import migrate, migration_summary
from birthday_roster.models import InstallationRecord, MigrationRecord, Roster
from birthday_roster.storage import INSTALLATIONS_KEY, ROSTER_KEY, KeyValueStore, StoreError
from birthday_roster.validation import validate_limits

LOGGER = logging.getLogger(__name__)


class RosterUnreadableError(RuntimeError):
    def __init__(self, message: str, record: MigrationRecord | None = None) -> None:
        super().__init__(message)
        self.record = record


class InstallationNotFoundError(KeyError):
    pass


class RosterRepository:
    def __init__(self, store: KeyValueStore, *, key: str = ROSTER_KEY) -> None:
        self._store = store
        self._key = key

    async def load(self) -> Roster:
        """Read the stored roster, upgrading legacy documents on the way.

        A missing document is an empty roster. A document that cannot be
        parsed or migrated raises ``RosterUnreadableError`` instead of
        looking like an empty roster. Migrated data is written back so the
        upgrade happens once.
        """
        try:
            text = await self._store.get(self._key)
        except StoreError as exc:
            raise RosterUnreadableError(f"Failed to read roster: {exc}") from exc

        if text is None:
            LOGGER.info("No roster stored, using empty roster")
            return Roster()

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RosterUnreadableError(f"Stored roster is not valid JSON: {exc}") from exc

        record = migrate(raw)
        if not record.success or record.roster is None:
            LOGGER.error("Failed to migrate roster: errors=%s warnings=%s", record.errors, record.warnings)
            raise RosterUnreadableError(migration_summary(record), record)

        if record.warnings:
            LOGGER.warning("Roster migration completed with warnings: %s", record.warnings)

        if record.needs_persist:
            await self._persist_migrated(record)

        return record.roster

    async def _persist_migrated(self, record: MigrationRecord) -> None:
        LOGGER.info("%s, updating stored roster", migration_summary(record))
        try:
            await self._store.put(self._key, json.dumps(record.roster.to_dict()))
        except StoreError:
            LOGGER.exception("Failed to write migrated roster back to storage")

    async def save(self, roster: Roster) -> Roster:
        validate_limits(roster)
        await self._store.put(self._key, json.dumps(roster.to_dict()))
        LOGGER.info("Stored roster with %s birthdays", len(roster.entries))
        return roster


class InstallationStore:
    def __init__(self, store: KeyValueStore, *, key: str = INSTALLATIONS_KEY) -> None:
        self._store = store
        self._key = key

    async def get_all(self) -> dict[str, InstallationRecord]:
        text = await self._store.get(self._key)
        if text is None:
            return {}

        data = json.loads(text)
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring malformed installations document")
            return {}

        records: dict[str, InstallationRecord] = {}
        for installation_id, value in data.items():
            try:
                records[str(installation_id)] = InstallationRecord.from_dict(value)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Skipping malformed installation record %s", installation_id)
        return records

    async def get(self, installation_id: str) -> InstallationRecord:
        records = await self.get_all()
        try:
            return records[installation_id]
        except KeyError as exc:
            raise InstallationNotFoundError(installation_id) from exc

    async def _write(self, records: dict[str, InstallationRecord]) -> None:
        payload = {installation_id: record.to_dict() for installation_id, record in records.items()}
        await self._store.put(self._key, json.dumps(payload, sort_keys=True))

    async def put(self, record: InstallationRecord) -> None:
        records = await self.get_all()
        records[record.installation_id] = record
        await self._write(records)
        LOGGER.info("Stored installation %s", record.installation_id)

    async def remove(self, installation_id: str) -> None:
        records = await self.get_all()
        if records.pop(installation_id, None) is None:
            raise InstallationNotFoundError(installation_id)
        await self._write(records)
        LOGGER.info("Removed installation %s", installation_id)

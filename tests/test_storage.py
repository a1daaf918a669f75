import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from birthday_roster.models import InstallationRecord, Roster, RosterEntry
from birthday_roster.roster_store import (
    InstallationNotFoundError,
    InstallationStore,
    RosterRepository,
    RosterUnreadableError,
)
from birthday_roster.storage import ROSTER_KEY, FileKeyValueStore
from birthday_roster.validation import ValidationError


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_file_store_put_get_delete(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)

    asyncio.run(store.put("cache:home_view", "hello"))
    assert asyncio.run(store.get("cache:home_view")) == "hello"
    assert (tmp_path / "cache__home_view.json").exists()

    asyncio.run(store.delete("cache:home_view"))
    assert asyncio.run(store.get("cache:home_view")) is None
    asyncio.run(store.delete("cache:home_view"))


def test_file_store_honors_ttl_hint(tmp_path: Path) -> None:
    clock = FakeClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))
    store = FileKeyValueStore(tmp_path, clock=clock)

    asyncio.run(store.put("k", "v", ttl_seconds=60))
    clock.now += timedelta(seconds=59)
    assert asyncio.run(store.get("k")) == "v"

    clock.now += timedelta(seconds=2)
    assert asyncio.run(store.get("k")) is None


def test_repository_returns_empty_roster_when_nothing_stored(tmp_path: Path) -> None:
    repository = RosterRepository(FileKeyValueStore(tmp_path))
    assert asyncio.run(repository.load()) == Roster()


def test_repository_save_and_load(tmp_path: Path) -> None:
    repository = RosterRepository(FileKeyValueStore(tmp_path))
    roster = Roster(entries=(RosterEntry("Ann", 3, 14, "U12345678"),))

    asyncio.run(repository.save(roster))

    assert asyncio.run(repository.load()) == roster


def test_repository_save_enforces_size_limit(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)
    repository = RosterRepository(store)
    roster = Roster(entries=tuple(RosterEntry(f"P{index}", 1, 1) for index in range(1001)))

    with pytest.raises(ValidationError):
        asyncio.run(repository.save(roster))
    assert asyncio.run(store.get(ROSTER_KEY)) is None


def test_repository_migrates_legacy_data_and_writes_it_back(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)
    asyncio.run(store.put(ROSTER_KEY, json.dumps({"members": [{"name": "Ann", "date": "03/14"}]})))

    roster = asyncio.run(RosterRepository(store).load())

    assert roster.entries == (RosterEntry("Ann", 3, 14),)
    assert json.loads(asyncio.run(store.get(ROSTER_KEY))) == {"birthdays": [{"name": "Ann", "month": 3, "day": 14}]}


def test_repository_loads_oversized_legacy_data(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)
    members = [{"name": f"P{index}", "date": "01/01"} for index in range(1001)]
    asyncio.run(store.put(ROSTER_KEY, json.dumps({"members": members})))

    roster = asyncio.run(RosterRepository(store).load())

    assert len(roster.entries) == 1001


def test_repository_raises_when_data_cannot_be_migrated(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)
    asyncio.run(store.put(ROSTER_KEY, json.dumps({"members": [{"name": "Ann", "date": "garbage"}]})))

    with pytest.raises(RosterUnreadableError) as exc_info:
        asyncio.run(RosterRepository(store).load())
    assert exc_info.value.record is not None


def test_repository_raises_on_invalid_json(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path)
    asyncio.run(store.put(ROSTER_KEY, "{broken"))

    with pytest.raises(RosterUnreadableError):
        asyncio.run(RosterRepository(store).load())


def test_installation_store_roundtrip(tmp_path: Path) -> None:
    installations = InstallationStore(FileKeyValueStore(tmp_path))
    record = InstallationRecord(
        installation_id="-100200",
        installed_by=42,
        installed_at="2024-01-15T08:00:00+00:00",
        title="Family",
    )

    asyncio.run(installations.put(record))

    assert asyncio.run(installations.get("-100200")) == record
    assert list(asyncio.run(installations.get_all())) == ["-100200"]

    asyncio.run(installations.remove("-100200"))
    with pytest.raises(InstallationNotFoundError):
        asyncio.run(installations.get("-100200"))

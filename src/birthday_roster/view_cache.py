from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from birthday_roster.storage import VIEW_CACHE_KEY, KeyValueStore, StoreError, utc_now
from birthday_roster.views import ViewDocument

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass
class CacheMetrics:
    """Counters for one request or task.

    Each owner creates its own instance; totals across owners are only
    combined through ``merge``.
    """

    hits: int = 0
    misses: int = 0
    writes: int = 0
    write_failures: int = 0
    read_failures: int = 0
    invalidations: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def merge(self, other: CacheMetrics) -> None:
        self.hits += other.hits
        self.misses += other.misses
        self.writes += other.writes
        self.write_failures += other.write_failures
        self.read_failures += other.read_failures
        self.invalidations += other.invalidations


@dataclass(frozen=True)
class CacheStatus:
    created_at: datetime | None
    expires_at: datetime | None
    is_expired: bool


class ViewCache:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = VIEW_CACHE_KEY,
        clock: Callable[[], datetime] = utc_now,
        metrics: CacheMetrics | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock
        self.metrics = metrics if metrics is not None else CacheMetrics()

    async def _read_entry(self) -> dict | None:
        text = await self._store.get(self._key)
        if text is None:
            return None
        entry = json.loads(text)
        if not isinstance(entry, dict):
            raise ValueError("cache entry is not an object")
        return entry

    async def get(self) -> ViewDocument | None:
        try:
            entry = await self._read_entry()
            if entry is None:
                self.metrics.misses += 1
                return None

            expires_at = datetime.fromisoformat(entry["expiresAt"])
            if self._clock() > expires_at:
                LOGGER.info("Cached view expired at %s", entry["expiresAt"])
                self.metrics.misses += 1
                return None

            document = ViewDocument.from_dict(entry["payload"])
        except (StoreError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Treating unreadable cached view as a miss: %s", exc)
            self.metrics.read_failures += 1
            self.metrics.misses += 1
            return None

        self.metrics.hits += 1
        return document

    async def set(self, document: ViewDocument, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        created_at = self._clock()
        expires_at = created_at + timedelta(seconds=ttl_seconds)
        entry = {
            "payload": document.to_dict(),
            "createdAt": created_at.isoformat(),
            "expiresAt": expires_at.isoformat(),
        }

        try:
            await self._store.put(self._key, json.dumps(entry), ttl_seconds=ttl_seconds)
        except StoreError:
            LOGGER.exception("Failed to cache rendered view, continuing without cache")
            self.metrics.write_failures += 1
            return False

        self.metrics.writes += 1
        LOGGER.info("Cached rendered view until %s", entry["expiresAt"])
        return True

    async def invalidate(self) -> None:
        await self._store.delete(self._key)
        self.metrics.invalidations += 1
        LOGGER.info("Cached view invalidated")

    async def status(self) -> CacheStatus:
        try:
            entry = await self._read_entry()
            if entry is None:
                return CacheStatus(created_at=None, expires_at=None, is_expired=True)
            created_at = datetime.fromisoformat(entry["createdAt"])
            expires_at = datetime.fromisoformat(entry["expiresAt"])
        except (StoreError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Failed to read cache status: %s", exc)
            return CacheStatus(created_at=None, expires_at=None, is_expired=True)

        return CacheStatus(created_at=created_at, expires_at=expires_at, is_expired=self._clock() > expires_at)

from __future__ import annotations

import logging
from datetime import date

from birthday_roster.date_logic import stats as roster_stats
from birthday_roster.date_logic import todays_entries
from birthday_roster.models import Roster, RosterStats, UpcomingEntry
from birthday_roster.roster_store import RosterRepository
from birthday_roster.validation import validate_limits, validate_roster
from birthday_roster.view_cache import DEFAULT_TTL_SECONDS, ViewCache
from birthday_roster.views import ViewDocument, build_view

LOGGER = logging.getLogger(__name__)


class RosterService:
    def __init__(
        self,
        *,
        repository: RosterRepository,
        cache: ViewCache,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    @property
    def cache(self) -> ViewCache:
        return self._cache

    async def load_roster(self) -> Roster:
        return await self._repository.load()

    async def home_view(self, today: date, *, expanded: bool = False) -> ViewDocument:
        """Return the rendered view, serving the compact one from cache when fresh.

        A cached document rendered for a different reference day counts as a
        miss. The expanded view is always rendered on demand.
        """
        if not expanded:
            cached = await self._cache.get()
            if cached is not None and cached.reference_date == today.isoformat():
                LOGGER.info("Serving cached view")
                return cached

        roster = await self._repository.load()
        document = build_view(roster, today, expanded=expanded)
        if not expanded:
            await self._cache.set(document, self._cache_ttl_seconds)
        return document

    async def refresh_view(self, today: date) -> ViewDocument:
        roster = await self._repository.load()
        document = build_view(roster, today)
        await self._cache.set(document, self._cache_ttl_seconds)
        return document

    async def replace_roster(self, raw: object) -> Roster:
        roster = validate_limits(validate_roster(raw))
        await self._repository.save(roster)
        await self._cache.invalidate()
        LOGGER.info("Roster replaced with %s birthdays", len(roster.entries))
        return roster

    async def todays_entries(self, today: date) -> list[UpcomingEntry]:
        return todays_entries(await self._repository.load(), today)

    async def stats(self, today: date) -> RosterStats:
        return roster_stats(await self._repository.load(), today)

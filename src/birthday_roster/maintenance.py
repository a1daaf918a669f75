from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import TypeVar

from birthday_roster.roster_service import RosterService
from birthday_roster.roster_store import InstallationStore
from birthday_roster.storage import StoreError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 600.0


class ScheduledTaskError(RuntimeError):
    def __init__(self, message: str, *, task_name: str, attempts: int) -> None:
        super().__init__(message)
        self.task_name = task_name
        self.attempts = attempts


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * self.backoff_factor**attempt, self.max_delay)


@dataclass
class CacheWarmingResult:
    warmed_installations: int = 0
    errors: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class CacheRefreshResult:
    cleared: bool = False
    warming: CacheWarmingResult | None = None
    errors: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


R = TypeVar("R", CacheRefreshResult, CacheWarmingResult)


async def run_with_retry(
    task: Callable[[], Awaitable[T]],
    *,
    task_name: str,
    policy: RetryPolicy = RetryPolicy(),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    last_error: Exception | None = None

    for attempt in range(policy.max_retries + 1):
        try:
            LOGGER.info("Scheduled task %s attempt %s/%s", task_name, attempt + 1, policy.max_retries + 1)
            return await task()
        except Exception as exc:
            last_error = exc
            LOGGER.warning("Scheduled task %s attempt %s failed: %s", task_name, attempt + 1, exc)
            if attempt < policy.max_retries:
                delay = policy.delay_for(attempt)
                LOGGER.info("Retrying scheduled task %s in %.1fs", task_name, delay)
                await sleep(delay)

    LOGGER.error("Scheduled task %s failed after %s retries", task_name, policy.max_retries)
    raise ScheduledTaskError(
        f"Task '{task_name}' failed after {policy.max_retries} retries: {last_error}",
        task_name=task_name,
        attempts=policy.max_retries + 1,
    ) from last_error


async def run_scheduled(
    task: Callable[[], Awaitable[T]],
    *,
    task_name: str,
    policy: RetryPolicy = RetryPolicy(),
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run a maintenance task with bounded retries under one overall timeout."""
    try:
        return await asyncio.wait_for(
            run_with_retry(task, task_name=task_name, policy=policy, sleep=sleep),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        LOGGER.error("Scheduled task %s timed out after %ss", task_name, timeout_seconds)
        raise ScheduledTaskError(
            f"Task '{task_name}' timed out after {timeout_seconds}s",
            task_name=task_name,
            attempts=0,
        ) from exc


class MaintenanceService:
    def __init__(
        self,
        *,
        roster_service: RosterService,
        installations: InstallationStore,
        policy: RetryPolicy = RetryPolicy(),
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._roster_service = roster_service
        self._installations = installations
        self._policy = policy
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

    async def warm_one(self, installation_id: str, today: date) -> None:
        await self._installations.get(installation_id)
        started = time.monotonic()
        await self._roster_service.refresh_view(today)
        LOGGER.debug(
            "Cache warmed for installation %s in %.3fs",
            installation_id,
            time.monotonic() - started,
        )

    async def warm_all(self, today: date) -> CacheWarmingResult:
        started = time.monotonic()
        result = CacheWarmingResult()

        installations = await self._installations.get_all()
        LOGGER.info("Warming cache for %s installations", len(installations))

        for installation_id in installations:
            try:
                await self.warm_one(installation_id, today)
            except Exception as exc:
                message = f"Failed to warm cache for installation {installation_id}: {exc}"
                LOGGER.error(message)
                result.errors.append(message)
            else:
                result.warmed_installations += 1

        result.duration = time.monotonic() - started
        return result

    async def refresh_all(self, today: date) -> CacheRefreshResult:
        started = time.monotonic()
        result = CacheRefreshResult()

        try:
            await self._roster_service.cache.invalidate()
            result.cleared = True
        except StoreError as exc:
            message = f"Failed to clear cache: {exc}"
            LOGGER.error(message)
            result.errors.append(message)

        result.warming = await self.warm_all(today)
        result.errors.extend(result.warming.errors)
        result.duration = time.monotonic() - started

        LOGGER.info(
            "Cache refresh completed: success=%s warmed=%s errors=%s duration=%.3fs",
            result.success,
            result.warming.warmed_installations,
            len(result.errors),
            result.duration,
        )
        return result

    async def _checked(self, action: Callable[[], Awaitable[R]], task_name: str) -> R:
        result = await action()
        if not result.success:
            raise ScheduledTaskError(
                f"{task_name} failed: {', '.join(result.errors)}",
                task_name=task_name,
                attempts=1,
            )
        return result

    async def scheduled_refresh(self, today: date) -> CacheRefreshResult | None:
        return await self._run_best_effort("daily-cache-refresh", lambda: self.refresh_all(today))

    async def scheduled_warmup(self, today: date) -> CacheWarmingResult | None:
        return await self._run_best_effort("cache-warming", lambda: self.warm_all(today))

    async def _run_best_effort(self, task_name: str, action: Callable[[], Awaitable[R]]) -> R | None:
        try:
            return await run_scheduled(
                lambda: self._checked(action, task_name),
                task_name=task_name,
                policy=self._policy,
                timeout_seconds=self._timeout_seconds,
                sleep=self._sleep,
            )
        except ScheduledTaskError:
            LOGGER.exception("Scheduled task %s gave up", task_name)
            return None

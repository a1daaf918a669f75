from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)

ROSTER_KEY = "birthdays:data"
INSTALLATIONS_KEY = "installations"
VIEW_CACHE_KEY = "cache:home_view"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class StoreError(RuntimeError):
    pass


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileKeyValueStore:
    """Key-value store keeping one JSON envelope file per key.

    Each write replaces the file atomically, so a reader sees either the old
    or the new value. The optional ``ttl_seconds`` hint is stored as an
    absolute expiry and honored on read.
    """

    def __init__(self, root: Path, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._root = root
        self._clock = clock

    def _path_for(self, key: str) -> Path:
        return self._root / f"{_UNSAFE_KEY_CHARS.sub('__', key)}.json"

    async def get(self, key: str) -> str | None:
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            with path.open("r", encoding="utf-8") as file_obj:
                envelope = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Failed to read key {key}: {exc}") from exc

        expires_at = envelope.get("expires_at")
        if expires_at and datetime.fromisoformat(expires_at) < self._clock():
            LOGGER.debug("Key %s expired at %s", key, expires_at)
            return None

        value = envelope.get("value")
        return str(value) if value is not None else None

    async def put(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = (self._clock() + timedelta(seconds=ttl_seconds)).isoformat()

        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                delete=False,
            ) as temp_file:
                json.dump({"value": value, "expires_at": expires_at}, temp_file, indent=2)
                temp_file.write("\n")
                temp_name = temp_file.name

            os.replace(temp_name, path)
        except OSError as exc:
            raise StoreError(f"Failed to write key {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(f"Failed to delete key {key}: {exc}") from exc

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_admin_user_id: int
    store_path: Path
    reference_timezone: str = "UTC"
    view_cache_ttl_seconds: int = 3600
    warmup_interval_seconds: int = 1800
    daily_refresh_time: str = "08:00"
    maintenance_timeout_seconds: int = 600
    log_level: str = "INFO"


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def parse_time_string(value: str) -> tuple[int, int]:
    pieces = value.split(":")
    if len(pieces) != 2 or not all(piece.isdigit() for piece in pieces):
        raise ValueError("time must be in HH:MM format")

    hour, minute = int(pieces[0]), int(pieces[1])
    if hour > 23 or minute > 59:
        raise ValueError("time must be a valid 24-hour time")
    return hour, minute


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")
    admin_user_id = int(_required_env("TELEGRAM_ADMIN_USER_ID"))

    store_path = Path(os.getenv("ROSTER_STORE_PATH", root / "data" / "store"))

    daily_refresh_time = os.getenv("DAILY_REFRESH_TIME", "08:00").strip()
    parse_time_string(daily_refresh_time)

    return Settings(
        telegram_bot_token=token,
        telegram_admin_user_id=admin_user_id,
        store_path=store_path,
        reference_timezone=os.getenv("REFERENCE_TIMEZONE", "UTC").strip() or "UTC",
        view_cache_ttl_seconds=_positive_int_env("VIEW_CACHE_TTL_SECONDS", 3600),
        warmup_interval_seconds=_positive_int_env("WARMUP_INTERVAL_SECONDS", 1800),
        daily_refresh_time=daily_refresh_time,
        maintenance_timeout_seconds=_positive_int_env("MAINTENANCE_TIMEOUT_SECONDS", 600),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )

from __future__ import annotations

import logging
from datetime import time
from zoneinfo import ZoneInfo

from telegram.ext import Application, CallbackContext

from birthday_roster.bot_handlers import HandlerDependencies, build_handlers
from birthday_roster.maintenance import MaintenanceService
from birthday_roster.settings import Settings, load_settings, parse_time_string
from birthday_roster.storage import FileKeyValueStore

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_maintenance(deps: HandlerDependencies) -> MaintenanceService:
    return MaintenanceService(
        roster_service=deps.roster_service(),
        installations=deps.installations(),
        timeout_seconds=deps.settings.maintenance_timeout_seconds,
    )


async def scheduled_warmup_callback(context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    await build_maintenance(deps).scheduled_warmup(deps.today())


async def scheduled_refresh_callback(context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    await build_maintenance(deps).scheduled_refresh(deps.today())


async def log_handler_error(update: object, context: CallbackContext) -> None:
    LOGGER.error("Unhandled error while processing update", exc_info=context.error)


def build_application(settings: Settings) -> Application:
    settings.store_path.mkdir(parents=True, exist_ok=True)
    deps = HandlerDependencies(settings=settings, store=FileKeyValueStore(settings.store_path))

    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["settings"] = settings
    application.bot_data["handler_deps"] = deps

    for handler in build_handlers():
        application.add_handler(handler)
    application.add_error_handler(log_handler_error)

    tz = ZoneInfo(settings.reference_timezone)
    hour, minute = parse_time_string(settings.daily_refresh_time)

    application.job_queue.run_repeating(
        scheduled_warmup_callback,
        interval=settings.warmup_interval_seconds,
        first=10,
        name="view-cache-warmup",
    )
    application.job_queue.run_daily(
        scheduled_refresh_callback,
        time=time(hour=hour, minute=minute, tzinfo=tz),
        name="daily-cache-refresh",
    )
    return application


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    build_application(settings).run_polling()


if __name__ == "__main__":
    main()

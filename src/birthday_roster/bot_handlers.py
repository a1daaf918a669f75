from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import BaseHandler, CallbackContext, CommandHandler

from birthday_roster.date_logic import month_name
from birthday_roster.migration import create_backup
from birthday_roster.models import InstallationRecord, RosterStats, UpcomingEntry
from birthday_roster.roster_service import RosterService
from birthday_roster.roster_store import InstallationStore, RosterRepository, RosterUnreadableError
from birthday_roster.settings import Settings
from birthday_roster.storage import KeyValueStore, StoreError
from birthday_roster.validation import ValidationError
from birthday_roster.view_cache import CacheMetrics, ViewCache
from birthday_roster.views import display_label, render_text

LOGGER = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Birthday data is currently unavailable. Please try again later."
ADMIN_ONLY_MESSAGE = "Only the configured administrator can do that."
IMPORT_FAILED_MESSAGE = "Roster import did not complete: the roster may not be saved or the cached view may be stale."


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    store: KeyValueStore

    def roster_service(self) -> RosterService:
        cache = ViewCache(self.store, metrics=CacheMetrics())
        return RosterService(
            repository=RosterRepository(self.store),
            cache=cache,
            cache_ttl_seconds=self.settings.view_cache_ttl_seconds,
        )

    def installations(self) -> InstallationStore:
        return InstallationStore(self.store)

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.settings.reference_timezone)).date()


def is_admin(update: Update, settings: Settings) -> bool:
    effective_user = update.effective_user
    if effective_user is None:
        return False
    return effective_user.id == settings.telegram_admin_user_id


def extract_command_payload(text: str | None) -> str:
    value = (text or "").strip()
    if value.startswith("/"):
        pieces = value.split(maxsplit=1)
        return pieces[1].strip() if len(pieces) > 1 else ""
    return value


def format_validation_error(exc: ValidationError) -> str:
    if exc.field:
        return f"Validation failed for {exc.field}: {exc.message}"
    return f"Validation failed: {exc.message}"


def render_today_message(entries: list[UpcomingEntry]) -> str:
    if not entries:
        return "No birthdays today."
    lines = [f"🎂 Today's birthday{'s' if len(entries) > 1 else ''}:"]
    lines.extend(f"🎉 {display_label(entry)}" for entry in entries)
    return "\n".join(lines)


def render_stats_message(value: RosterStats) -> str:
    lines = [
        f"Tracked birthdays: {value.total}",
        f"This month: {value.this_month}",
        f"Next month: {value.next_month}",
        f"Next 30 days: {value.next_30_days}",
    ]
    if value.most_common_month is not None:
        count = value.month_distribution[value.most_common_month]
        lines.append(f"Busiest month: {month_name(value.most_common_month)} ({count})")
    return "\n".join(lines)


def _render_help() -> str:
    return (
        "Commands:\n"
        "/birthdays - Show upcoming birthdays\n"
        "/all - Show the expanded upcoming list\n"
        "/today - Show today's birthdays\n"
        "/stats - Show roster statistics\n"
        "/help - Show this help message\n\n"
        "Administrator commands:\n"
        "/start - Register this chat for scheduled cache warm-up\n"
        '/import {"birthdays": [{"name": "Ann", "month": 3, "day": 14}]} - Replace the roster\n'
        "/export - Download the roster as a backup document"
    )


def _deps(context: CallbackContext) -> HandlerDependencies:
    return context.application.bot_data["handler_deps"]


async def help_command(update: Update, context: CallbackContext) -> None:
    await update.effective_message.reply_text(_render_help())


async def start_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_admin(update, deps.settings):
        await update.effective_message.reply_text(_render_help())
        return

    chat = update.effective_chat
    record = InstallationRecord(
        installation_id=str(chat.id),
        installed_by=update.effective_user.id,
        installed_at=datetime.now(timezone.utc).isoformat(),
        title=getattr(chat, "title", None),
    )
    await deps.installations().put(record)
    await update.effective_message.reply_text("This chat is registered. Use /help to see commands.")


async def _reply_with_view(update: Update, context: CallbackContext, *, expanded: bool) -> None:
    deps = _deps(context)
    service = deps.roster_service()
    try:
        document = await service.home_view(deps.today(), expanded=expanded)
    except (RosterUnreadableError, StoreError):
        LOGGER.exception("Failed to build birthday view")
        await update.effective_message.reply_text(UNAVAILABLE_MESSAGE)
        return

    metrics = service.cache.metrics
    LOGGER.info("View served (expanded=%s, cache hits=%s misses=%s)", expanded, metrics.hits, metrics.misses)
    await update.effective_message.reply_text(render_text(document))


async def birthdays_command(update: Update, context: CallbackContext) -> None:
    await _reply_with_view(update, context, expanded=False)


async def all_command(update: Update, context: CallbackContext) -> None:
    await _reply_with_view(update, context, expanded=True)


async def today_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    try:
        entries = await deps.roster_service().todays_entries(deps.today())
    except (RosterUnreadableError, StoreError):
        LOGGER.exception("Failed to load today's birthdays")
        await update.effective_message.reply_text(UNAVAILABLE_MESSAGE)
        return
    await update.effective_message.reply_text(render_today_message(entries))


async def stats_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    try:
        value = await deps.roster_service().stats(deps.today())
    except (RosterUnreadableError, StoreError):
        LOGGER.exception("Failed to compute roster statistics")
        await update.effective_message.reply_text(UNAVAILABLE_MESSAGE)
        return
    await update.effective_message.reply_text(render_stats_message(value))


async def import_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_admin(update, deps.settings):
        await update.effective_message.reply_text(ADMIN_ONLY_MESSAGE)
        return

    payload = extract_command_payload(update.effective_message.text)
    if not payload:
        await update.effective_message.reply_text("Send the roster JSON after /import.")
        return

    try:
        raw = json.loads(payload)
    except json.JSONDecodeError:
        LOGGER.warning("Rejected roster import with invalid JSON")
        await update.effective_message.reply_text("Invalid JSON format. Please check your syntax and try again.")
        return

    try:
        roster = await deps.roster_service().replace_roster(raw)
    except ValidationError as exc:
        LOGGER.warning("Rejected roster import: %s", exc.message)
        await update.effective_message.reply_text(format_validation_error(exc))
        return
    except StoreError as exc:
        LOGGER.exception("Failed to store imported roster")
        await update.effective_message.reply_text(f"{IMPORT_FAILED_MESSAGE} ({exc})")
        return

    await update.effective_message.reply_text(f"Roster updated: {len(roster.entries)} birthdays stored.")


async def export_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_admin(update, deps.settings):
        await update.effective_message.reply_text(ADMIN_ONLY_MESSAGE)
        return

    try:
        roster = await deps.roster_service().load_roster()
    except (RosterUnreadableError, StoreError) as exc:
        LOGGER.exception("Failed to export roster")
        await update.effective_message.reply_text(f"Roster could not be read: {exc}")
        return

    backup = create_backup(roster, datetime.now(timezone.utc))
    await update.effective_message.reply_document(
        document=backup.encode("utf-8"),
        filename="birthdays-backup.json",
    )


def build_handlers() -> list[BaseHandler]:
    return [
        CommandHandler("start", start_command),
        CommandHandler("help", help_command),
        CommandHandler("birthdays", birthdays_command),
        CommandHandler("all", all_command),
        CommandHandler("today", today_command),
        CommandHandler("stats", stats_command),
        CommandHandler("import", import_command),
        CommandHandler("export", export_command),
    ]

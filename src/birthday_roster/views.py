from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

from birthday_roster.date_logic import format_relative_date, todays_entries, upcoming
from birthday_roster.date_logic import stats as roster_stats
from birthday_roster.models import Roster, RosterStats, UpcomingEntry

LOGGER = logging.getLogger(__name__)

VIEW_TITLE = "🎂 Birthdays"

KIND_WELCOME = "welcome"
KIND_NO_UPCOMING = "no_upcoming"
KIND_UPCOMING = "upcoming"

MARKER_TODAY = "today"
MARKER_TOMORROW = "tomorrow"
MARKER_THIS_WEEK = "this_week"
MARKER_LATER = "later"

MARKER_ICONS = {
    MARKER_TODAY: "🎂",
    MARKER_TOMORROW: "🎁",
    MARKER_THIS_WEEK: "📅",
    MARKER_LATER: "🎉",
}

COMPACT_GROUP_LIMIT = 10
EXPANDED_GROUP_LIMIT = 20
COMPACT_HORIZON_DAYS = 30
EXPANDED_HORIZON_DAYS = 90

WELCOME_TEXT = (
    "📅 Welcome! No birthday information has been added yet.\n"
    "Ask an administrator to import the roster with /import."
)
NO_UPCOMING_TEXT = "🎉 No upcoming birthdays. Check back later!"


@dataclass(frozen=True)
class ViewGroup:
    days_until: int
    display_date: str
    relative_date: str
    marker: str
    names: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "daysUntil": self.days_until,
            "displayDate": self.display_date,
            "relativeDate": self.relative_date,
            "marker": self.marker,
            "names": list(self.names),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViewGroup:
        return cls(
            days_until=int(data["daysUntil"]),
            display_date=str(data["displayDate"]),
            relative_date=str(data["relativeDate"]),
            marker=str(data["marker"]),
            names=tuple(str(name) for name in data["names"]),
        )


@dataclass(frozen=True)
class ViewDocument:
    kind: str
    title: str = VIEW_TITLE
    reference_date: str | None = None
    expanded: bool = False
    today: tuple[str, ...] = ()
    groups: tuple[ViewGroup, ...] = ()
    more_count: int = 0
    horizon_days: int | None = None
    stats: RosterStats | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "referenceDate": self.reference_date,
            "expanded": self.expanded,
            "today": list(self.today),
            "groups": [group.to_dict() for group in self.groups],
            "moreCount": self.more_count,
            "horizonDays": self.horizon_days,
            "stats": self.stats.to_dict() if self.stats is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViewDocument:
        raw_stats = data.get("stats")
        horizon = data.get("horizonDays")
        return cls(
            kind=str(data["kind"]),
            title=str(data.get("title", VIEW_TITLE)),
            reference_date=data.get("referenceDate"),
            expanded=bool(data.get("expanded", False)),
            today=tuple(str(name) for name in data.get("today", [])),
            groups=tuple(ViewGroup.from_dict(group) for group in data.get("groups", [])),
            more_count=int(data.get("moreCount", 0)),
            horizon_days=int(horizon) if horizon is not None else None,
            stats=RosterStats.from_dict(raw_stats) if raw_stats else None,
        )


def marker_for(days_until: int) -> str:
    if days_until == 0:
        return MARKER_TODAY
    if days_until == 1:
        return MARKER_TOMORROW
    if days_until <= 7:
        return MARKER_THIS_WEEK
    return MARKER_LATER


def display_label(item: UpcomingEntry) -> str:
    if item.external_id:
        return f"{item.name} (@{item.external_id})"
    return item.name


def welcome_document(reference_date: str | None = None) -> ViewDocument:
    return ViewDocument(kind=KIND_WELCOME, reference_date=reference_date)


def _usable(items: Iterable[Any]) -> list[UpcomingEntry]:
    usable: list[UpcomingEntry] = []
    for item in items:
        if not isinstance(item, UpcomingEntry) or not isinstance(item.days_until, int) or item.days_until < 0:
            LOGGER.warning("Skipping unrenderable view entry: %r", item)
            continue
        usable.append(item)
    return usable


def _group_future(future: list[UpcomingEntry]) -> list[list[UpcomingEntry]]:
    grouped: dict[tuple[int, str], list[UpcomingEntry]] = {}
    for item in future:
        grouped.setdefault((item.days_until, item.display_date), []).append(item)
    return [grouped[key] for key in sorted(grouped, key=lambda key: key[0])]


def assemble(
    entries: Iterable[UpcomingEntry],
    *,
    expanded: bool = False,
    roster_size: int | None = None,
    today: Iterable[UpcomingEntry] = (),
    reference_date: date | None = None,
    stats: RosterStats | None = None,
    horizon_days: int | None = None,
) -> ViewDocument:
    """Group and paginate upcoming entries into a display document.

    ``roster_size`` tells an empty roster apart from a roster with nothing
    coming up; it defaults to the number of entries passed in. Entries due
    today are taken from both ``entries`` (``days_until == 0``) and the
    explicit ``today`` list. Never raises.
    """
    items = _usable(entries)
    todays = _usable(today)
    reference = reference_date.isoformat() if reference_date is not None else None

    if roster_size is None:
        roster_size = len(items)
    if roster_size == 0:
        return welcome_document(reference)

    today_labels: list[str] = []
    for item in [*todays, *(item for item in items if item.days_until == 0)]:
        label = display_label(item)
        if label not in today_labels:
            today_labels.append(label)

    future = [item for item in items if item.days_until > 0]
    groups = _group_future(future)
    limit = EXPANDED_GROUP_LIMIT if expanded else COMPACT_GROUP_LIMIT
    shown, hidden = groups[:limit], groups[limit:]

    view_groups = tuple(
        ViewGroup(
            days_until=group[0].days_until,
            display_date=group[0].display_date,
            relative_date=format_relative_date(group[0].days_until),
            marker=marker_for(group[0].days_until),
            names=tuple(display_label(item) for item in group),
        )
        for group in shown
    )

    kind = KIND_UPCOMING if today_labels or view_groups else KIND_NO_UPCOMING
    return ViewDocument(
        kind=kind,
        reference_date=reference,
        expanded=expanded,
        today=tuple(today_labels),
        groups=view_groups,
        more_count=sum(len(group) for group in hidden),
        horizon_days=horizon_days,
        stats=stats,
    )


def build_view(roster: Roster, today: date, *, expanded: bool = False) -> ViewDocument:
    horizon = EXPANDED_HORIZON_DAYS if expanded else COMPACT_HORIZON_DAYS
    LOGGER.info("Generating view for %s birthdays (expanded=%s)", len(roster.entries), expanded)
    return assemble(
        upcoming(roster, horizon, today),
        expanded=expanded,
        roster_size=len(roster.entries),
        today=todays_entries(roster, today),
        reference_date=today,
        stats=roster_stats(roster, today),
        horizon_days=horizon,
    )


def _render_stats(value: RosterStats) -> list[str]:
    return [
        "📊 Birthday statistics",
        f"👥 Total: {value.total}",
        f"📅 This month: {value.this_month}",
        f"📅 Next month: {value.next_month}",
        f"🎯 Next 30 days: {value.next_30_days}",
    ]


def render_text(document: ViewDocument) -> str:
    lines = [document.title, ""]

    if document.kind == KIND_WELCOME:
        lines.append(WELCOME_TEXT)
        return "\n".join(lines)

    if document.today:
        plural = "s" if len(document.today) > 1 else ""
        lines.append(f"{MARKER_ICONS[MARKER_TODAY]} Today's birthday{plural}!")
        for label in document.today:
            lines.append(f"🎉 {label} is celebrating today!")
        lines.append("")

    if document.groups:
        header = "📅 Upcoming birthdays"
        if document.horizon_days is not None:
            header += f" (next {document.horizon_days} days)"
        lines.append(header)
        for group in document.groups:
            icon = MARKER_ICONS.get(group.marker, MARKER_ICONS[MARKER_LATER])
            lines.append(f"{icon} {group.display_date} ({group.relative_date}): {', '.join(group.names)}")
        if document.more_count:
            lines.append(f"... and {document.more_count} more")
        lines.append("")
    elif not document.today:
        lines.append(NO_UPCOMING_TEXT)
        lines.append("")

    if document.stats is not None:
        lines.extend(_render_stats(document.stats))

    return "\n".join(lines).rstrip()

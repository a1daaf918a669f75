from __future__ import annotations

import logging
import math
from datetime import date, datetime

from birthday_roster.models import Roster, RosterEntry, RosterStats, UpcomingEntry

LOGGER = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
SHORT_MONTH_NAMES = tuple(name[:3] for name in MONTH_NAMES)

DAYS_PER_WEEK = 7
DAYS_FOR_WEEKS_DISPLAY = 56
DAYS_PER_MONTH_APPROX = 30
STATS_HORIZON_DAYS = 30
NEXT_YEAR_DAYS = 365


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _calendar_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def occurrence_for_year(month: int, day: int, year: int) -> date:
    if month == 2 and day == 29 and not is_leap_year(year):
        return date(year, 2, 28)
    return date(year, month, day)


def next_occurrence(month: int, day: int, from_date: date | datetime) -> date:
    today = _calendar_day(from_date)
    candidate = occurrence_for_year(month, day, today.year)
    if candidate < today:
        candidate = occurrence_for_year(month, day, today.year + 1)
    return candidate


def days_until(month: int, day: int, from_date: date | datetime) -> int:
    today = _calendar_day(from_date)
    return (next_occurrence(month, day, today) - today).days


def month_name(month: int, *, short: bool = False) -> str:
    if not 1 <= month <= 12:
        return "Unknown"
    names = SHORT_MONTH_NAMES if short else MONTH_NAMES
    return names[month - 1]


def format_display_date(month: int, day: int, short: bool = False) -> str:
    return f"{month_name(month, short=short)} {day}"


def format_relative_date(days: int) -> str:
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days <= DAYS_PER_WEEK:
        return f"in {days} days"
    if days <= DAYS_FOR_WEEKS_DISPLAY:
        return f"in {math.ceil(days / DAYS_PER_WEEK)} weeks"
    return f"in {math.ceil(days / DAYS_PER_MONTH_APPROX)} months"


def _annotate(entry: RosterEntry, days: int) -> UpcomingEntry:
    return UpcomingEntry(
        entry=entry,
        days_until=days,
        display_date=format_display_date(entry.month, entry.day),
        month_name=month_name(entry.month),
    )


def _sort_key(item: UpcomingEntry) -> tuple[int, str, str]:
    return (item.days_until, item.name.casefold(), item.name)


def todays_entries(roster: Roster, today: date | datetime) -> list[UpcomingEntry]:
    today = _calendar_day(today)
    leap = is_leap_year(today.year)

    matches: list[UpcomingEntry] = []
    for entry in roster.entries:
        month, day = entry.month, entry.day
        if month == 2 and day == 29 and not leap:
            day = 28
        if (month, day) == (today.month, today.day):
            matches.append(_annotate(entry, 0))
    return matches


def upcoming(roster: Roster, horizon_days: int, today: date | datetime) -> list[UpcomingEntry]:
    today = _calendar_day(today)

    result: list[UpcomingEntry] = []
    for entry in roster.entries:
        days = days_until(entry.month, entry.day, today)
        if days <= horizon_days:
            result.append(_annotate(entry, days))

    result.sort(key=_sort_key)
    return result


def next_entries(roster: Roster, count: int, today: date | datetime) -> list[UpcomingEntry]:
    return upcoming(roster, NEXT_YEAR_DAYS, today)[:count]


def entries_in_month(roster: Roster, month: int) -> list[RosterEntry]:
    return sorted((entry for entry in roster.entries if entry.month == month), key=lambda entry: entry.day)


def _is_countable(entry: RosterEntry) -> bool:
    if not isinstance(entry.month, int) or not isinstance(entry.day, int):
        return False
    if not 1 <= entry.month <= 12:
        return False
    try:
        occurrence_for_year(entry.month, entry.day, 2000)
    except ValueError:
        return False
    return True


def stats(roster: Roster, reference_date: date | datetime) -> RosterStats:
    """Aggregate counts for the statistics block of the rendered view.

    Entries whose month/day cannot form a date are left out of the month
    counts and the histogram instead of raising, since this may run over
    freshly migrated data.
    """
    reference = _calendar_day(reference_date)
    current_month = reference.month
    next_month = 1 if current_month == 12 else current_month + 1

    distribution = {month: 0 for month in range(1, 13)}
    this_month_count = 0
    next_month_count = 0
    next_30 = 0

    for entry in roster.entries:
        if not _is_countable(entry):
            LOGGER.warning("Skipping entry with invalid date in stats: %s", entry.name)
            continue

        distribution[entry.month] += 1
        if entry.month == current_month:
            this_month_count += 1
        if entry.month == next_month:
            next_month_count += 1
        if days_until(entry.month, entry.day, reference) <= STATS_HORIZON_DAYS:
            next_30 += 1

    most_common: int | None = None
    max_count = 0
    for month in range(1, 13):
        if distribution[month] > max_count:
            max_count = distribution[month]
            most_common = month

    return RosterStats(
        total=len(roster.entries),
        this_month=this_month_count,
        next_month=next_month_count,
        next_30_days=next_30,
        month_distribution=distribution,
        most_common_month=most_common,
    )

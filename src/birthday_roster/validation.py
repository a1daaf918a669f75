from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from birthday_roster.models import MAX_NAME_LENGTH, MAX_ROSTER_ENTRIES, Roster, RosterEntry

EXTERNAL_ID_PATTERN = re.compile(r"^U[A-Z0-9]{8,}$")
DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
LEGACY_EXTERNAL_ID_KEY = "slackUserId"


class ValidationError(ValueError):
    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


def is_valid_month_day(month: int, day: int) -> bool:
    if month < 1 or month > 12 or day < 1:
        return False
    if month == 2 and day == 29:
        return True
    return day <= DAYS_IN_MONTH[month - 1]


def normalize_name(value: str) -> str:
    return " ".join(value.split())


def _floored_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Birthday entry must have a valid {label}", label)
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Birthday entry must have a valid {label}", label)
    return math.floor(value)


def _validate_name(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("Birthday entry must have a valid name", "name")

    name = normalize_name(value)
    if not name:
        raise ValidationError("Birthday name cannot be empty", "name")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Birthday name cannot exceed {MAX_NAME_LENGTH} characters", "name")
    return name


def _validate_external_id(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("externalId must be a string", "externalId")

    external_id = value.strip()
    if not external_id:
        return None
    if not EXTERNAL_ID_PATTERN.match(external_id):
        raise ValidationError(
            "externalId must be a valid mention ID (U followed by 8+ uppercase letters or digits)",
            "externalId",
        )
    return external_id


def _check_entry(raw: Any) -> RosterEntry:
    if not isinstance(raw, Mapping):
        raise ValidationError("Birthday entry must be an object")

    name = _validate_name(raw.get("name"))

    month = _floored_int(raw.get("month"), "month")
    if month < 1 or month > 12:
        raise ValidationError("Month must be between 1 and 12", "month")

    day = _floored_int(raw.get("day"), "day")
    if day < 1 or day > 31:
        raise ValidationError("Day must be between 1 and 31", "day")
    if not is_valid_month_day(month, day):
        raise ValidationError(f"Invalid date: {month}/{day}", "day")

    raw_external_id = raw.get("externalId")
    if raw_external_id is None:
        raw_external_id = raw.get(LEGACY_EXTERNAL_ID_KEY)
    external_id = _validate_external_id(raw_external_id)

    return RosterEntry(name=name, month=month, day=day, external_id=external_id)


def validate_entry(raw: Any, index: int) -> RosterEntry:
    try:
        return _check_entry(raw)
    except ValidationError as exc:
        field = f"birthdays[{index}]"
        if exc.field:
            field = f"{field}.{exc.field}"
        raise ValidationError(f"Birthday entry {index}: {exc.message}", field) from exc


def find_duplicate_names(entries: tuple[RosterEntry, ...] | list[RosterEntry]) -> tuple[int, int] | None:
    seen: dict[str, int] = {}
    for index, entry in enumerate(entries):
        key = entry.name.casefold()
        if key in seen:
            return seen[key], index
        seen[key] = index
    return None


def validate_roster(raw: Any) -> Roster:
    if not isinstance(raw, Mapping):
        raise ValidationError("Birthday data must be an object")

    items = raw.get("birthdays")
    if not isinstance(items, list):
        raise ValidationError("Birthday data must have a birthdays array", "birthdays")

    entries = [validate_entry(item, index) for index, item in enumerate(items)]

    duplicate = find_duplicate_names(entries)
    if duplicate is not None:
        first, second = duplicate
        raise ValidationError(
            f"Duplicate name '{entries[second].name}' at entries {first} and {second}",
            f"birthdays[{second}].name",
        )

    return Roster(entries=tuple(entries))


def validate_limits(roster: Roster) -> Roster:
    if len(roster.entries) > MAX_ROSTER_ENTRIES:
        raise ValidationError(
            f"Too many birthdays: {len(roster.entries)}. Maximum allowed: {MAX_ROSTER_ENTRIES}",
            "birthdays",
        )
    return roster

import pytest

from birthday_roster.models import Roster, RosterEntry
from birthday_roster.validation import (
    ValidationError,
    is_valid_month_day,
    validate_entry,
    validate_limits,
    validate_roster,
)


def test_validate_roster_normalizes_entries() -> None:
    roster = validate_roster(
        {
            "birthdays": [
                {"name": "  Mary   Ann  ", "month": 3.9, "day": 14.2, "externalId": "  "},
                {"name": "Bob", "month": 2, "day": 29, "externalId": " U12345678 "},
            ]
        }
    )

    assert roster.entries == (
        RosterEntry(name="Mary Ann", month=3, day=14, external_id=None),
        RosterEntry(name="Bob", month=2, day=29, external_id="U12345678"),
    )


def test_validate_roster_rejects_non_object() -> None:
    with pytest.raises(ValidationError):
        validate_roster(["not", "an", "object"])


def test_validate_roster_requires_birthdays_array() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_roster({"birthdays": "nope"})
    assert exc_info.value.field == "birthdays"


@pytest.mark.parametrize(
    ("entry", "field"),
    [
        ({"month": 1, "day": 1}, "birthdays[1].name"),
        ({"name": "   ", "month": 1, "day": 1}, "birthdays[1].name"),
        ({"name": "x" * 101, "month": 1, "day": 1}, "birthdays[1].name"),
        ({"name": "Ann", "month": "3", "day": 1}, "birthdays[1].month"),
        ({"name": "Ann", "month": True, "day": 1}, "birthdays[1].month"),
        ({"name": "Ann", "month": 13, "day": 1}, "birthdays[1].month"),
        ({"name": "Ann", "month": 0.5, "day": 1}, "birthdays[1].month"),
        ({"name": "Ann", "month": 4, "day": 31}, "birthdays[1].day"),
        ({"name": "Ann", "month": 2, "day": 30}, "birthdays[1].day"),
        ({"name": "Ann", "month": 1, "day": float("nan")}, "birthdays[1].day"),
        ({"name": "Ann", "month": 1, "day": 1, "externalId": "bob"}, "birthdays[1].externalId"),
        ({"name": "Ann", "month": 1, "day": 1, "externalId": 42}, "birthdays[1].externalId"),
    ],
)
def test_validate_roster_reports_field_and_index(entry: dict, field: str) -> None:
    raw = {"birthdays": [{"name": "First", "month": 1, "day": 1}, entry]}

    with pytest.raises(ValidationError) as exc_info:
        validate_roster(raw)

    assert exc_info.value.field == field
    assert "Birthday entry 1:" in exc_info.value.message


@pytest.mark.parametrize("names", [("Ann", "ann"), ("ann", "Ann")])
def test_duplicate_names_are_case_insensitive_in_any_order(names: tuple[str, str]) -> None:
    raw = {"birthdays": [{"name": name, "month": 1, "day": index + 1} for index, name in enumerate(names)]}

    with pytest.raises(ValidationError) as exc_info:
        validate_roster(raw)

    assert "entries 0 and 1" in exc_info.value.message


def test_legacy_external_id_key_is_accepted() -> None:
    entry = validate_entry({"name": "Ann", "month": 5, "day": 1, "slackUserId": "UABCDEFGH1"}, 0)
    assert entry.external_id == "UABCDEFGH1"


def test_is_valid_month_day_allows_leap_day() -> None:
    assert is_valid_month_day(2, 29)
    assert not is_valid_month_day(2, 30)
    assert not is_valid_month_day(11, 31)
    assert is_valid_month_day(12, 31)


def test_validate_limits() -> None:
    entries = tuple(RosterEntry(name=f"P{index}", month=1, day=1) for index in range(1001))

    with pytest.raises(ValidationError):
        validate_limits(Roster(entries=entries))

    assert validate_limits(Roster(entries=entries[:1000])) is not None


def test_large_roster_passes_pure_validation() -> None:
    raw = {"birthdays": [{"name": f"P{index}", "month": 1, "day": 1} for index in range(1001)]}
    assert len(validate_roster(raw).entries) == 1001

from datetime import date

from birthday_roster.date_logic import format_display_date, upcoming
from birthday_roster.models import Roster, RosterEntry, UpcomingEntry
from birthday_roster.validation import validate_roster
from birthday_roster.views import (
    KIND_NO_UPCOMING,
    KIND_UPCOMING,
    KIND_WELCOME,
    MARKER_LATER,
    MARKER_THIS_WEEK,
    MARKER_TODAY,
    MARKER_TOMORROW,
    NO_UPCOMING_TEXT,
    WELCOME_TEXT,
    ViewDocument,
    assemble,
    build_view,
    marker_for,
    render_text,
)

REFERENCE = date(2024, 1, 15)


def _item(name: str, days: int, month: int = 1, day: int = 1, external_id: str | None = None) -> UpcomingEntry:
    return UpcomingEntry(
        entry=RosterEntry(name=name, month=month, day=day, external_id=external_id),
        days_until=days,
        display_date=format_display_date(month, day),
        month_name="January",
    )


def test_empty_roster_renders_welcome_document() -> None:
    roster = validate_roster({"birthdays": []})

    document = assemble(upcoming(roster, 30, REFERENCE))

    assert document.kind == KIND_WELCOME
    assert WELCOME_TEXT in render_text(document)


def test_shared_date_is_grouped_into_one_line() -> None:
    roster = validate_roster(
        {"birthdays": [{"name": "Ann", "month": 1, "day": 20}, {"name": "Bob", "month": 1, "day": 20}]}
    )

    document = assemble(upcoming(roster, 30, REFERENCE))

    assert document.kind == KIND_UPCOMING
    assert len(document.groups) == 1
    assert document.groups[0].names == ("Ann", "Bob")
    assert document.groups[0].days_until == 5
    assert "January 20 (in 5 days): Ann, Bob" in render_text(document)


def test_today_entries_are_separated_from_future_groups() -> None:
    document = assemble([_item("Ann", 0, 1, 15), _item("Bob", 3, 1, 18)])

    assert document.today == ("Ann",)
    assert [group.names for group in document.groups] == [("Bob",)]


def test_explicit_today_list_is_merged_without_duplicates() -> None:
    ann = _item("Ann", 0, 1, 15)

    document = assemble([ann], today=[ann, _item("Cat", 0, 1, 15)])

    assert document.today == ("Ann", "Cat")
    assert document.groups == ()


def test_groups_sorted_by_days_until() -> None:
    document = assemble([_item("Far", 20, 2, 4), _item("Near", 2, 1, 17), _item("Mid", 8, 1, 23)])

    assert [group.days_until for group in document.groups] == [2, 8, 20]


def test_compact_view_caps_groups_and_counts_remaining_entries() -> None:
    items = [_item(f"P{days}", days, 2, days % 28 + 1) for days in range(1, 14)]
    items.append(_item("Twin", 13, 2, 13 % 28 + 1))

    compact = assemble(items)
    expanded = assemble(items, expanded=True)

    assert len(compact.groups) == 10
    assert compact.more_count == 4
    assert "... and 4 more" in render_text(compact)
    assert len(expanded.groups) == 13
    assert expanded.more_count == 0


def test_markers_follow_four_tiers() -> None:
    assert marker_for(0) == MARKER_TODAY
    assert marker_for(1) == MARKER_TOMORROW
    assert marker_for(7) == MARKER_THIS_WEEK
    assert marker_for(8) == MARKER_LATER


def test_no_upcoming_document_when_roster_has_nothing_soon() -> None:
    document = assemble([], roster_size=3)

    assert document.kind == KIND_NO_UPCOMING
    assert NO_UPCOMING_TEXT in render_text(document)


def test_assemble_skips_unrenderable_items() -> None:
    document = assemble([None, "junk", _item("Ann", -1), _item("Bob", 4, 1, 19)], roster_size=4)

    assert [group.names for group in document.groups] == [("Bob",)]


def test_external_id_is_shown_with_name() -> None:
    document = assemble([_item("Ann", 2, 1, 17, external_id="U12345678")])
    assert document.groups[0].names == ("Ann (@U12345678)",)


def test_build_view_includes_stats_and_respects_horizon() -> None:
    roster = Roster(
        entries=(
            RosterEntry("Today", 1, 15),
            RosterEntry("Soon", 1, 20),
            RosterEntry("Later", 3, 1),
        )
    )

    document = build_view(roster, REFERENCE)

    assert document.reference_date == "2024-01-15"
    assert document.today == ("Today",)
    assert all(group.days_until <= 30 for group in document.groups)
    assert [group.names for group in document.groups] == [("Soon",)]
    assert document.stats.total == 3
    assert "Total: 3" in render_text(document)

    expanded = build_view(roster, REFERENCE, expanded=True)
    assert [group.names for group in expanded.groups] == [("Soon",), ("Later",)]


def test_document_dict_roundtrip() -> None:
    roster = Roster(entries=(RosterEntry("Ann", 1, 20), RosterEntry("Bob", 1, 15)))
    document = build_view(roster, REFERENCE)

    assert ViewDocument.from_dict(document.to_dict()) == document

"""Tests for free slot computation."""

from datetime import date

import pytest

from medislot.services.slot_calculator import (
    compute_available_slots,
    find_day_availability,
    format_minutes,
    normalize_time,
    parse_time,
    weekday_name,
)

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)

WEEK = [
    {"day_of_week": "monday", "start_time": "09:00", "end_time": "17:00", "is_available": True},
    {"day_of_week": "wednesday", "start_time": "14:00", "end_time": "15:00", "is_available": False},
]


def test_monday_window_minus_booked_slot():
    """A 09:00-17:00 day with 10:00 booked leaves 15 half-hour slots."""
    slots = compute_available_slots(WEEK, MONDAY, ["10:00"])

    assert len(slots) == 15
    assert slots[0] == "09:00"
    assert slots[-1] == "16:30"
    assert "10:00" not in slots
    assert "10:30" in slots


def test_full_day_without_bookings():
    slots = compute_available_slots(WEEK, MONDAY, [])

    assert len(slots) == 16
    assert slots == sorted(slots)
    assert "17:00" not in slots


def test_day_without_availability_is_empty():
    assert compute_available_slots(WEEK, TUESDAY, []) == []


def test_disabled_day_is_empty():
    wednesday = date(2030, 1, 9)
    assert compute_available_slots(WEEK, wednesday, []) == []


def test_collision_is_exact_start_time_only():
    """Off-grid bookings do not block neighbouring grid slots."""
    slots = compute_available_slots(WEEK, MONDAY, ["10:15"])

    assert "10:00" in slots
    assert "10:30" in slots
    assert len(slots) == 16


def test_window_not_on_grid_stops_before_end():
    week = [{"day_of_week": "monday", "start_time": "09:15", "end_time": "10:30"}]

    assert compute_available_slots(week, MONDAY, []) == ["09:15", "09:45", "10:15"]


def test_inverted_window_yields_nothing():
    week = [{"day_of_week": "monday", "start_time": "17:00", "end_time": "09:00"}]

    assert compute_available_slots(week, MONDAY, []) == []


def test_first_enabled_entry_wins():
    week = [
        {
            "day_of_week": "monday",
            "start_time": "08:00",
            "end_time": "09:00",
            "is_available": False,
        },
        {"day_of_week": "monday", "start_time": "13:00", "end_time": "14:00"},
        {"day_of_week": "monday", "start_time": "15:00", "end_time": "16:00"},
    ]

    assert find_day_availability(week, MONDAY)["start_time"] == "13:00"
    assert compute_available_slots(week, MONDAY, []) == ["13:00", "13:30"]


@pytest.mark.parametrize(
    "value,expected",
    [("9:00", 540), ("09:05", 545), ("23:59", 1439), ("0:00", 0)],
)
def test_parse_time(value, expected):
    assert parse_time(value) == expected


@pytest.mark.parametrize("value", ["24:00", "9:60", "0900", "", "nine"])
def test_parse_time_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_time(value)


def test_normalize_and_format():
    assert normalize_time("9:00") == "09:00"
    assert format_minutes(9 * 60 + 30) == "09:30"


def test_weekday_name():
    assert weekday_name(MONDAY) == "monday"
    assert weekday_name(TUESDAY) == "tuesday"

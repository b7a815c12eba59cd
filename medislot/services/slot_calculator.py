"""Free slot computation from a doctor's weekly availability template.

Pure functions only: no I/O, no caching. Collisions are detected by exact
start time; an appointment's own duration is not taken into account.
"""

import re
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

# Fixed grid, independent of appointment durations
SLOT_INTERVAL_MINUTES = 30

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time(value: str) -> int:
    """
    Convert an ``H:MM`` or ``HH:MM`` string to minutes since midnight.

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time format (HH:MM): {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as zero-padded ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str) -> str:
    """Canonical ``HH:MM`` form of a time string (``9:00`` -> ``09:00``)."""
    return format_minutes(parse_time(value))


def weekday_name(target_date: date) -> str:
    """Lowercase English weekday name for a date."""
    return WEEKDAYS[target_date.weekday()]


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def find_day_availability(availability: Iterable[Any], target_date: date) -> Any | None:
    """First enabled availability entry for the date's weekday, if any."""
    day = weekday_name(target_date)
    for entry in availability or ():
        if _field(entry, "day_of_week") == day and _field(entry, "is_available") is not False:
            return entry
    return None


def compute_available_slots(
    availability: Iterable[Any],
    target_date: date,
    booked_times: Iterable[str],
) -> list[str]:
    """
    Ordered free slot start times for a doctor on a date.

    Args:
        availability: Availability entries (mappings or objects with
            ``day_of_week``, ``start_time``, ``end_time``, ``is_available``)
        target_date: Day to compute slots for
        booked_times: ``HH:MM`` start times of the day's active appointments

    Returns:
        Zero-padded ``HH:MM`` strings on a 30 minute grid, from the window
        start up to but excluding its end, minus the booked times. Empty when
        the doctor does not work that weekday.
    """
    entry = find_day_availability(availability, target_date)
    if entry is None:
        return []

    start = parse_time(_field(entry, "start_time"))
    end = parse_time(_field(entry, "end_time"))
    taken = set(booked_times)

    slots = []
    for minutes in range(start, end, SLOT_INTERVAL_MINUTES):
        slot = format_minutes(minutes)
        if slot not in taken:
            slots.append(slot)
    return slots

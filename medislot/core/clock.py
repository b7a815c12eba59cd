"""Clinic-local time helpers.

All schedule arithmetic happens on naive datetimes expressed in the clinic's
timezone (``CLINIC_TIMEZONE``). There is no per-user timezone handling.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from medislot.config import settings


def clinic_now() -> datetime:
    """Current wall-clock time at the clinic, without tzinfo."""
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)


def scheduled_at(appointment_date: date, appointment_time: str) -> datetime:
    """Combine a calendar date and an ``HH:MM`` string into a naive datetime."""
    hours, minutes = appointment_time.split(":")
    return datetime.combine(appointment_date, time(int(hours), int(minutes)))


def hours_until(appointment_date: date, appointment_time: str, now: datetime) -> float:
    """Hours from ``now`` until the scheduled start (negative when past)."""
    delta = scheduled_at(appointment_date, appointment_time) - now
    return delta.total_seconds() / 3600

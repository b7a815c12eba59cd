"""Database models."""

from medislot.models.appointments import appointments
from medislot.models.doctors import doctors
from medislot.models.metadata import metadata
from medislot.models.users import users

__all__ = [
    "appointments",
    "doctors",
    "metadata",
    "users",
]

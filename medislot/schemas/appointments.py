"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import (
    BaseModel,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from medislot.services.slot_calculator import normalize_time

CANCELLATION_CUTOFF_HOURS = 24


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    RESCHEDULED = "rescheduled"


# Statuses that hold a slot
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.RESCHEDULED,
    }
)


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class AppointmentSlot(BaseModel):
    """Date and clinic-local start time of an appointment."""

    model_config = {"str_strip_whitespace": True}

    appointment_date: date
    appointment_time: str = Field(..., examples=["09:30"])

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM and normalize to zero-padded form."""
        return normalize_time(v)


class AppointmentCreate(AppointmentSlot):
    """Schema for booking a new appointment."""

    doctor_id: UUID
    reason: str = Field(..., min_length=10, max_length=200)
    symptoms: str | None = Field(None, max_length=500)


class AppointmentReschedule(AppointmentSlot):
    """Schema for moving an appointment to a new slot."""


class AppointmentUpdate(BaseModel):
    """
    Generic appointment patch.

    Scheduling fields, the fee snapshot and the parties are not patchable;
    use reschedule for a new slot.
    """

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    reason: str | None = Field(None, min_length=10, max_length=200)
    symptoms: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    diagnosis: str | None = Field(None, max_length=500)
    prescription: str | None = Field(None, max_length=1000)
    follow_up_required: bool | None = None
    follow_up_date: date | None = None
    duration_minutes: int | None = Field(None, ge=15, le=120)
    payment_status: PaymentStatus | None = None
    status: AppointmentStatus | None = None


class AppointmentComplete(BaseModel):
    """Clinical record captured when an appointment is completed."""

    model_config = {"str_strip_whitespace": True}

    notes: str | None = Field(None, max_length=1000)
    diagnosis: str | None = Field(None, max_length=500)
    prescription: str | None = Field(None, max_length=1000)
    follow_up_required: bool = False
    follow_up_date: date | None = None


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    model_config = {"str_strip_whitespace": True}

    cancellation_reason: str | None = Field(None, max_length=200)


class AppointmentRate(BaseModel):
    """Schema for rating a completed appointment."""

    model_config = {"str_strip_whitespace": True}

    score: int = Field(..., ge=1, le=5)
    review: str | None = Field(None, max_length=500)


class AppointmentRating(BaseModel):
    """Rating attached to a completed appointment."""

    score: int
    review: str | None = None
    rated_at: datetime | None = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID | None
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    status: AppointmentStatus
    reason: str
    symptoms: str | None = None
    notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_required: bool = False
    follow_up_date: date | None = None
    consultation_fee: Decimal
    payment_status: PaymentStatus
    cancellation_reason: str | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    rescheduled_from: UUID | None = None
    rating: AppointmentRating | None = None
    created_at: datetime
    updated_at: datetime
    # Derived from the clinic clock when the response is built
    is_past: bool = False
    can_be_cancelled: bool = False

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def nest_rating(cls, data: Any) -> Any:
        """Fold the flat rating columns into a rating sub-record."""
        if isinstance(data, dict) and "rating_score" in data:
            data = dict(data)
            score = data.pop("rating_score")
            review = data.pop("rating_review", None)
            rated_at = data.pop("rated_at", None)
            data["rating"] = (
                {"score": score, "review": review, "rated_at": rated_at}
                if score is not None
                else None
            )
        return data

    @field_serializer("consultation_fee", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    pages: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)

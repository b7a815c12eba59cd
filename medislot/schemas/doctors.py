"""Doctor schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from medislot.services.slot_calculator import normalize_time, parse_time

# ============================================================================
# Availability Schemas
# ============================================================================


class DayOfWeek(str, Enum):
    """Day of week enumeration."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class AvailabilityEntry(BaseModel):
    """One weekday of a doctor's availability template."""

    day_of_week: DayOfWeek
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["17:00"])
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM and normalize to zero-padded form."""
        return normalize_time(v)

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityEntry":
        """An enabled window must end after it starts."""
        if self.is_available and parse_time(self.start_time) >= parse_time(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


# ============================================================================
# Doctor Base Schemas
# ============================================================================


class DoctorBase(BaseModel):
    """Base schema for doctor."""

    model_config = {"str_strip_whitespace": True}

    license_number: str = Field(..., min_length=1, max_length=100)
    specialization: str = Field(..., min_length=1, max_length=200)
    qualification: str | None = None
    experience_years: int = Field(0, ge=0)
    bio: str | None = Field(None, max_length=500)
    consultation_fee: Decimal = Field(..., ge=0, decimal_places=2)
    clinic_name: str | None = Field(None, max_length=200)
    clinic_city: str | None = Field(None, max_length=100)
    clinic_phone: str | None = Field(None, pattern=r"^[0-9]{10}$")
    availability: list[AvailabilityEntry] = Field(default_factory=list)


class DoctorCreate(DoctorBase):
    """Schema for creating a doctor profile for the current account."""

    availability: list[AvailabilityEntry] = Field(..., min_length=1)


class DoctorUpdate(BaseModel):
    """Schema for updating a doctor."""

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    specialization: str | None = Field(None, min_length=1, max_length=200)
    qualification: str | None = None
    experience_years: int | None = Field(None, ge=0)
    bio: str | None = Field(None, max_length=500)
    consultation_fee: Decimal | None = Field(None, ge=0, decimal_places=2)
    clinic_name: str | None = Field(None, max_length=200)
    clinic_city: str | None = Field(None, max_length=100)
    clinic_phone: str | None = Field(None, pattern=r"^[0-9]{10}$")
    availability: list[AvailabilityEntry] | None = None


class DoctorAdminUpdate(DoctorUpdate):
    """Fields only an admin may change."""

    is_verified: bool | None = None
    is_active: bool | None = None


class DoctorRating(BaseModel):
    """Running rating aggregate."""

    average: float = Field(..., ge=0, le=5)
    count: int = Field(..., ge=0)


class DoctorResponse(DoctorBase):
    """Doctor response schema."""

    id: UUID
    user_id: UUID
    full_name: str | None = None
    rating_average: float = 0.0
    rating_count: int = 0
    is_verified: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("consultation_fee", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class DoctorListResponse(BaseModel):
    """Paginated doctor list."""

    total: int
    page: int
    page_size: int
    pages: int
    items: list[DoctorResponse]


# ============================================================================
# Availability Query Schemas
# ============================================================================


class AvailableSlotsResponse(BaseModel):
    """Free slots for one doctor on one day."""

    doctor_id: UUID
    date: date
    day_of_week: DayOfWeek
    available_slots: list[str]
    availability: AvailabilityEntry | None = None

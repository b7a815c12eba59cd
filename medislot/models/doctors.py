"""Doctor model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from medislot.models.metadata import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # Professional credentials
    Column("license_number", String(100), nullable=False, unique=True),
    Column("specialization", String(200), nullable=False, index=True),
    Column("qualification", Text),
    Column("experience_years", Integer, nullable=False, default=0, server_default=text("0")),
    Column("bio", Text),
    # Practice information
    Column("consultation_fee", Numeric(10, 2), nullable=False),
    Column("clinic_name", Text),
    Column("clinic_city", String(100), index=True),
    Column("clinic_phone", String(20)),
    # Weekly template: [{"day_of_week", "start_time", "end_time", "is_available"}]
    Column("availability", JSON, nullable=False, default=list),
    # Rating aggregate, only ever advanced incrementally
    Column("rating_average", Float, nullable=False, default=0.0, server_default=text("0")),
    Column("rating_count", Integer, nullable=False, default=0, server_default=text("0")),
    # Account state
    Column("is_verified", Boolean, nullable=False, default=False, server_default=text("false")),
    Column("is_active", Boolean, nullable=False, default=True, server_default=text("true")),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("consultation_fee >= 0", name="doctors_fee_check"),
    CheckConstraint("rating_average >= 0 AND rating_average <= 5", name="doctors_rating_check"),
)

Index("idx_doctors_active_verified", doctors.c.is_active, doctors.c.is_verified)

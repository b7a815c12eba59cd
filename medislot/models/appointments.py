"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
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

ACTIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # References
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True),
    # Schedule (clinic-local)
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", String(5), nullable=False),
    Column("duration_minutes", Integer, nullable=False, default=30, server_default=text("30")),
    # Status management
    Column("status", Text, nullable=False, default="pending", server_default=text("'pending'")),
    # Request details
    Column("reason", Text, nullable=False),
    Column("symptoms", Text),
    # Clinical record, filled in on completion
    Column("notes", Text),
    Column("diagnosis", Text),
    Column("prescription", Text),
    Column(
        "follow_up_required",
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    ),
    Column("follow_up_date", Date),
    # Billing snapshot
    Column("consultation_fee", Numeric(10, 2), nullable=False),
    Column(
        "payment_status",
        Text,
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
    ),
    # Cancellation
    Column("cancellation_reason", Text),
    Column("cancelled_by", Uuid),
    Column("cancelled_at", DateTime(timezone=True)),
    # Reschedule chain
    Column("rescheduled_from", Uuid, ForeignKey("appointments.id"), nullable=True),
    # One-shot rating
    Column("rating_score", Integer),
    Column("rating_review", Text),
    Column("rated_at", DateTime(timezone=True)),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'cancelled', 'completed', 'rescheduled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'refunded')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint(
        "duration_minutes BETWEEN 15 AND 120",
        name="appointments_duration_check",
    ),
    CheckConstraint(
        "rating_score IS NULL OR rating_score BETWEEN 1 AND 5",
        name="appointments_rating_score_check",
    ),
)

Index("idx_appointments_patient_date", appointments.c.patient_id, appointments.c.appointment_date)
Index("idx_appointments_doctor_date", appointments.c.doctor_id, appointments.c.appointment_date)
Index("idx_appointments_status", appointments.c.status)

# No double booking: one active appointment per doctor slot
Index(
    "uq_appointments_active_slot",
    appointments.c.doctor_id,
    appointments.c.appointment_date,
    appointments.c.appointment_time,
    unique=True,
    postgresql_where=text(ACTIVE_STATUS_CLAUSE),
    sqlite_where=text(ACTIVE_STATUS_CLAUSE),
)

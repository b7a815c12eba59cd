"""User model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from medislot.models.metadata import metadata

# Mirror of the identity provider's account records
users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("full_name", Text),
    Column("phone", String(20)),
    Column("role", Text, nullable=False, default="patient", server_default=text("'patient'")),
    Column("is_active", Boolean, nullable=False, default=True, server_default=text("true")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
)

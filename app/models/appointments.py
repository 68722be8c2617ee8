"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from app.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    # Ownership / references
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column(
        "practitioner_id",
        UUID(as_uuid=True),
        ForeignKey("practitioners.id", ondelete="SET NULL"),
        nullable=True,
    ),
    # Appointment details
    Column("title", Text, nullable=False, server_default=text("'Appointment'")),
    Column("starts_at", TIMESTAMP(timezone=True), nullable=False),
    Column("ends_at", TIMESTAMP(timezone=True), nullable=False),
    Column("notes", Text, nullable=True),
    # Status management
    Column("status", Text, nullable=False, server_default=text("'booked'")),
    Column("reminder_status", Text, nullable=False, server_default=text("'scheduled'")),
    Column("confirmation_status", Text, nullable=False, server_default=text("'unconfirmed'")),
    Column("source", Text, nullable=False, server_default=text("'dashboard'")),
    Column("created_by", UUID(as_uuid=True), nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    # Soft delete (healthcare records are kept)
    Column("deleted_at", TIMESTAMP(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('booked', 'confirmed', 'checked_in', 'completed', 'no_show', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "reminder_status IN ('not_scheduled', 'scheduled', 'sent', 'failed')",
        name="appointments_reminder_status_check",
    ),
    CheckConstraint(
        "confirmation_status IN ('unconfirmed', 'confirmed', 'cancelled')",
        name="appointments_confirmation_status_check",
    ),
    CheckConstraint(
        "source IN ('dashboard', 'public', 'reception', 'api')",
        name="appointments_source_check",
    ),
    CheckConstraint("ends_at > starts_at", name="appointments_time_order_check"),
    Index("idx_appointments_clinic_starts", "clinic_id", "starts_at"),
    Index("idx_appointments_patient", "patient_id"),
    Index(
        "idx_appointments_reminders",
        "starts_at",
        postgresql_where=text("reminder_status = 'scheduled' AND deleted_at IS NULL"),
    ),
)

"""Create patients and appointments.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "patients",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("patient_code", sa.String(length=64), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("whatsapp_opt_in", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("whatsapp_number", sa.String(length=30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("clinic_id", "patient_code", name="unique_clinic_patient_code"),
    )
    op.create_index("ix_patients_clinic_id", "patients", ["clinic_id"])
    op.create_index(
        "idx_patients_clinic_email",
        "patients",
        ["clinic_id", sa.text("lower(email)")],
    )

    op.create_table(
        "appointments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "practitioner_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("practitioners.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.Text(), server_default=sa.text("'Appointment'"), nullable=False),
        sa.Column("starts_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default=sa.text("'booked'"), nullable=False),
        sa.Column("reminder_status", sa.Text(), server_default=sa.text("'scheduled'"), nullable=False),
        sa.Column(
            "confirmation_status", sa.Text(), server_default=sa.text("'unconfirmed'"), nullable=False
        ),
        sa.Column("source", sa.Text(), server_default=sa.text("'dashboard'"), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("deleted_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('booked', 'confirmed', 'checked_in', 'completed', 'no_show', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "reminder_status IN ('not_scheduled', 'scheduled', 'sent', 'failed')",
            name="appointments_reminder_status_check",
        ),
        sa.CheckConstraint(
            "confirmation_status IN ('unconfirmed', 'confirmed', 'cancelled')",
            name="appointments_confirmation_status_check",
        ),
        sa.CheckConstraint(
            "source IN ('dashboard', 'public', 'reception', 'api')",
            name="appointments_source_check",
        ),
        sa.CheckConstraint("ends_at > starts_at", name="appointments_time_order_check"),
    )
    op.create_index("idx_appointments_clinic_starts", "appointments", ["clinic_id", "starts_at"])
    op.create_index("idx_appointments_patient", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_reminders",
        "appointments",
        ["starts_at"],
        postgresql_where=sa.text("reminder_status = 'scheduled' AND deleted_at IS NULL"),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("appointments")
    op.drop_table("patients")

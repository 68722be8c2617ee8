"""Create WhatsApp queue, recalls and leads.

Revision ID: 003
Revises: 002
Create Date: 2026-10-18 00:20:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _now(name: str) -> sa.Column:
    return sa.Column(
        name, postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "whatsapp_messages",
        _uuid_pk(),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "appointment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("appointments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("direction", sa.String(length=10), server_default=sa.text("'outbound'"), nullable=False),
        sa.Column("channel", sa.String(length=20), server_default=sa.text("'whatsapp'"), nullable=False),
        sa.Column("provider", sa.String(length=30), server_default=sa.text("'stub'"), nullable=False),
        sa.Column("to_number", sa.String(length=30), nullable=True),
        sa.Column("from_number", sa.String(length=30), nullable=True),
        sa.Column("template_name", sa.String(length=100), nullable=True),
        sa.Column("message_body", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'queued'"), nullable=False),
        sa.Column("provider_message_id", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        _now("created_at"),
        _now("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "direction IN ('outbound', 'inbound')", name="whatsapp_messages_direction_check"
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'sent', 'failed', 'received')",
            name="whatsapp_messages_status_check",
        ),
    )
    op.create_index(
        "idx_whatsapp_messages_status_created", "whatsapp_messages", ["status", "created_at"]
    )
    op.create_index("idx_whatsapp_messages_appointment", "whatsapp_messages", ["appointment_id"])

    op.create_table(
        "recalls",
        _uuid_pk(),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rule_code", sa.String(length=100), nullable=False),
        sa.Column("due_on", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("last_notified_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _now("created_at"),
        _now("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'snoozed', 'notified', 'completed', 'cancelled')",
            name="recalls_status_check",
        ),
    )
    op.create_index("idx_recalls_clinic_due", "recalls", ["clinic_id", "due_on"])
    op.create_index("idx_recalls_status_due", "recalls", ["status", "due_on"])

    op.create_table(
        "recall_notifications",
        _uuid_pk(),
        sa.Column(
            "recall_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("recalls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("channel", sa.String(length=10), server_default=sa.text("'email'"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'queued'"), nullable=False),
        sa.Column(
            "payload",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("sent_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        _now("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("channel IN ('email', 'sms')", name="recall_notifications_channel_check"),
        sa.CheckConstraint(
            "status IN ('queued', 'sent', 'failed')", name="recall_notifications_status_check"
        ),
    )
    op.create_index(
        "idx_recall_notifications_status", "recall_notifications", ["channel", "status"]
    )

    op.create_table(
        "leads",
        _uuid_pk(),
        sa.Column("clinic_name", sa.Text(), nullable=True),
        sa.Column("contact_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("clinic_type", sa.String(length=100), nullable=True),
        sa.Column("practitioners", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=50), server_default=sa.text("'website'"), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("leads")
    op.drop_table("recall_notifications")
    op.drop_table("recalls")
    op.drop_table("whatsapp_messages")

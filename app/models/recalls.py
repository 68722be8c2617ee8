"""Recall (follow-up reminder) tables using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from app.models.base import metadata

recalls = Table(
    "recalls",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # e.g. "6-week checkup", "annual cleaning"
    Column("rule_code", String(100), nullable=False),
    Column("due_on", Date, nullable=False),
    Column("status", String(20), nullable=False, server_default=text("'pending'")),
    Column("last_notified_at", TIMESTAMP(timezone=True)),
    Column("notes", Text),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "status IN ('pending', 'snoozed', 'notified', 'completed', 'cancelled')",
        name="recalls_status_check",
    ),
    Index("idx_recalls_clinic_due", "clinic_id", "due_on"),
    Index("idx_recalls_status_due", "status", "due_on"),
)

recall_notifications = Table(
    "recall_notifications",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "recall_id",
        UUID(as_uuid=True),
        ForeignKey("recalls.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("channel", String(10), nullable=False, server_default=text("'email'")),
    Column("status", String(20), nullable=False, server_default=text("'queued'")),
    # {"to": ..., "subject": ..., "body": ...} for email, {"to": ..., "text": ...} for sms
    Column("payload", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    Column("error", Text),
    Column("sent_at", TIMESTAMP(timezone=True)),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint("channel IN ('email', 'sms')", name="recall_notifications_channel_check"),
    CheckConstraint(
        "status IN ('queued', 'sent', 'failed')",
        name="recall_notifications_status_check",
    ),
    Index("idx_recall_notifications_status", "channel", "status"),
)

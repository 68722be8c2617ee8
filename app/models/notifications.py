"""WhatsApp message queue table.

Outbound reminders are inserted as ``queued`` rows and picked up by the
sender; inbound patient replies are stored as ``received`` rows.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from app.models.base import metadata

whatsapp_messages = Table(
    "whatsapp_messages",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=True,
    ),
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column(
        "appointment_id",
        UUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("direction", String(10), nullable=False, server_default=text("'outbound'")),
    Column("channel", String(20), nullable=False, server_default=text("'whatsapp'")),
    Column("provider", String(30), nullable=False, server_default=text("'stub'")),
    Column("to_number", String(30)),
    Column("from_number", String(30)),
    Column("template_name", String(100)),
    Column("message_body", Text),
    Column("status", String(20), nullable=False, server_default=text("'queued'")),
    Column("provider_message_id", Text),
    Column("error", Text),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "direction IN ('outbound', 'inbound')",
        name="whatsapp_messages_direction_check",
    ),
    CheckConstraint(
        "status IN ('queued', 'sent', 'failed', 'received')",
        name="whatsapp_messages_status_check",
    ),
    Index("idx_whatsapp_messages_status_created", "status", "created_at"),
    Index("idx_whatsapp_messages_appointment", "appointment_id"),
)

"""Patient table using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("patient_code", String(64)),
    Column("full_name", Text, nullable=False),
    Column("email", Text),
    Column("phone", String(30)),
    Column("date_of_birth", Date),
    # WhatsApp reminders are only sent to patients who opted in
    Column("whatsapp_opt_in", Boolean, nullable=False, server_default=text("false")),
    Column("whatsapp_number", String(30)),
    Column("notes", Text),
    Column("created_by", UUID(as_uuid=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    UniqueConstraint("clinic_id", "patient_code", name="unique_clinic_patient_code"),
)

Index("idx_patients_clinic_email", patients.c.clinic_id, func.lower(patients.c.email))

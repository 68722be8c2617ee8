"""Clinic, opening hours, blackout date and practitioner tables using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import metadata

clinics = Table(
    "clinics",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("name", String(255), nullable=False),
    # Public booking widget address, e.g. /book/smile-dental
    Column("slug", String(255), nullable=False, unique=True, index=True),
    Column("timezone", String(64), nullable=False, server_default=text("'Africa/Johannesburg'")),
    Column("slot_minutes", Integer, nullable=False, server_default=text("30")),
    Column("address", Text),
    Column("phone", String(30)),
    Column("email", Text),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint("slot_minutes BETWEEN 5 AND 240", name="clinics_slot_minutes_check"),
)

# Weekly opening hours; several spans per weekday allow a lunch break
availability = Table(
    "availability",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # 0=Monday ... 6=Sunday
    Column("weekday", Integer, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    CheckConstraint("weekday BETWEEN 0 AND 6", name="availability_weekday_check"),
    CheckConstraint("start_time < end_time", name="availability_span_check"),
    Index("idx_availability_clinic_weekday", "clinic_id", "weekday"),
)

blackout_dates = Table(
    "blackout_dates",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("date", Date, nullable=False),
    Column("reason", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    UniqueConstraint("clinic_id", "date", name="unique_clinic_blackout_date"),
)

practitioners = Table(
    "practitioners",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("full_name", Text, nullable=False),
    Column("title", String(100)),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)

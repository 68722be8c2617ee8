"""Sales lead table using SQLAlchemy Core."""

from sqlalchemy import Column, DateTime, Integer, String, Table, Text, text
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import metadata

leads = Table(
    "leads",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("clinic_name", Text),
    Column("contact_name", Text),
    Column("email", Text, nullable=False),
    Column("phone", String(30)),
    Column("clinic_type", String(100)),
    Column("practitioners", Integer),
    Column("message", Text),
    Column("source", String(50), nullable=False, server_default=text("'website'")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)

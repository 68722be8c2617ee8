"""Marketing lead capture."""

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.leads import leads
from app.schemas.leads import LeadCreate, LeadResponse
from app.services.email_service import EmailService, lead_notification_email

logger = structlog.get_logger(__name__)


class LeadService:
    """Service for website enquiries."""

    def __init__(self, db: AsyncSession, email_service: EmailService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.email = email_service or EmailService()

    async def create_lead(self, data: LeadCreate) -> LeadResponse:
        """
        Store a lead and let the sales inbox know.

        The notification email is best effort; the lead is saved either way.
        """
        result = await self.db.execute(
            insert(leads).values(**data.model_dump(), source="website").returning(leads)
        )
        row = dict(result.mappings().first())
        await self.db.commit()

        logger.info("lead_created", lead_id=str(row["id"]), clinic_name=row["clinic_name"])
        await self.email.send_quietly(settings.leads_inbox, lead_notification_email(row))
        return LeadResponse.model_validate(row)

    async def list_leads(self, limit: int = 100, offset: int = 0) -> list[LeadResponse]:
        """Most recent leads first."""
        result = await self.db.execute(
            select(leads).order_by(leads.c.created_at.desc()).limit(limit).offset(offset)
        )
        return [LeadResponse.model_validate(dict(row)) for row in result.mappings()]

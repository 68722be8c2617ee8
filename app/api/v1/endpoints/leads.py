"""Marketing lead endpoints."""

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import DatabaseSession, public_rate_limit, require_platform_secret
from app.schemas.leads import LeadCreate, LeadResponse
from app.services.lead_service import LeadService

router = APIRouter(prefix="/leads", tags=["Leads"])


@router.post(
    "",
    response_model=LeadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(public_rate_limit)],
    summary="Submit a lead",
)
async def create_lead(data: LeadCreate, db: DatabaseSession) -> LeadResponse:
    """Store an enquiry from the marketing site and notify the sales inbox."""
    return await LeadService(db).create_lead(data)


@router.get(
    "",
    response_model=list[LeadResponse],
    dependencies=[Depends(require_platform_secret)],
    summary="List leads (platform operators)",
)
async def list_leads(
    db: DatabaseSession,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[LeadResponse]:
    """Most recent leads first. Leads belong to no clinic, so clinic admins cannot read them."""
    return await LeadService(db).list_leads(limit, offset)

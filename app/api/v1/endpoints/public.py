"""Unauthenticated endpoints behind the public booking widget."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import CacheManagerDep, DatabaseSession, public_rate_limit
from app.schemas.booking import PublicBookingRequest, PublicBookingResponse, SlotListResponse
from app.schemas.clinics import PublicClinicResponse
from app.services.booking_service import BookingService
from app.services.clinic_service import ClinicService

router = APIRouter(
    prefix="/public/clinics",
    tags=["Public booking"],
    dependencies=[Depends(public_rate_limit)],
)


@router.get("/{slug}", response_model=PublicClinicResponse, summary="Public clinic profile")
async def get_public_clinic(slug: str, db: DatabaseSession) -> PublicClinicResponse:
    """Name, timezone and contact details shown on the booking page."""
    clinic = await ClinicService().get_clinic_by_slug(db, slug)
    return PublicClinicResponse.model_validate(clinic)


@router.get("/{slug}/slots", response_model=SlotListResponse, summary="Free slots for a day")
async def list_slots(
    slug: str,
    db: DatabaseSession,
    cache: CacheManagerDep,
    date: str = Query(..., description="YYYY-MM-DD in the clinic timezone"),
    practitioner_id: UUID | None = Query(None),
) -> SlotListResponse:
    """
    List bookable slots.

    Args:
        slug: Public clinic slug
        db: Database session
        cache: Cache manager for the clinic's booking configuration
        date: Local day
        practitioner_id: Only this practitioner's diary

    Returns:
        Free slots with ISO timestamps and ``HH:MM`` labels
    """
    service = BookingService(db, ClinicService(cache))
    return await service.list_slots(slug, date, practitioner_id)


@router.post(
    "/{slug}/book",
    response_model=PublicBookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book(
    slug: str,
    request: PublicBookingRequest,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> PublicBookingResponse:
    """
    Book a slot as a patient.

    The patient is matched by email or created. A taken slot returns 409;
    a failed confirmation email does not fail the booking.
    """
    service = BookingService(db, ClinicService(cache))
    return await service.book(slug, request)

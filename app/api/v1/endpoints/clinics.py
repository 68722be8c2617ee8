"""Clinic settings endpoints: profile, opening hours, blackout dates and practitioners."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import AdminUser, CacheManagerDep, CurrentUser, DatabaseSession
from app.schemas.clinics import (
    AvailabilityReplace,
    AvailabilitySpanResponse,
    BlackoutDateCreate,
    BlackoutDateResponse,
    ClinicResponse,
    ClinicUpdate,
    PractitionerCreate,
    PractitionerResponse,
)
from app.services.clinic_service import ClinicService

router = APIRouter(prefix="/clinic", tags=["Clinic"])


@router.get("", response_model=ClinicResponse, summary="Get my clinic")
async def get_clinic(current_user: CurrentUser, db: DatabaseSession) -> ClinicResponse:
    """Return the clinic of the signed-in staff member."""
    clinic = await ClinicService().get_clinic(db, current_user["clinic_id"])
    return ClinicResponse.model_validate(clinic)


@router.patch("", response_model=ClinicResponse, summary="Update clinic settings (admin only)")
async def update_clinic(
    data: ClinicUpdate,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> ClinicResponse:
    """
    Update name, slug, timezone, slot length or contact details.

    Args:
        data: Fields to change
        admin_user: Authenticated admin
        db: Database session
        cache: Cache manager; the booking configuration is invalidated

    Returns:
        Updated clinic
    """
    clinic = await ClinicService(cache).update_clinic(db, admin_user["clinic_id"], data)
    return ClinicResponse.model_validate(clinic)


@router.get(
    "/availability",
    response_model=list[AvailabilitySpanResponse],
    summary="Weekly opening hours",
)
async def list_availability(
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[AvailabilitySpanResponse]:
    """List opening spans ordered by weekday (0=Monday) and start time."""
    rows = await ClinicService().list_availability(db, current_user["clinic_id"])
    return [AvailabilitySpanResponse.model_validate(row) for row in rows]


@router.put(
    "/availability",
    response_model=list[AvailabilitySpanResponse],
    summary="Replace weekly opening hours (admin only)",
)
async def replace_availability(
    data: AvailabilityReplace,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> list[AvailabilitySpanResponse]:
    """
    Replace the whole weekly schedule.

    Overlapping spans on the same weekday are rejected with 400.
    """
    rows = await ClinicService(cache).replace_availability(db, admin_user["clinic_id"], data.spans)
    return [AvailabilitySpanResponse.model_validate(row) for row in rows]


@router.get("/blackouts", response_model=list[BlackoutDateResponse], summary="Blackout dates")
async def list_blackouts(
    current_user: CurrentUser,
    db: DatabaseSession,
    from_date: date | None = Query(None, description="Only dates on or after"),
) -> list[BlackoutDateResponse]:
    """List days the clinic is closed."""
    rows = await ClinicService().list_blackouts(db, current_user["clinic_id"], from_date)
    return [BlackoutDateResponse.model_validate(row) for row in rows]


@router.post(
    "/blackouts",
    response_model=BlackoutDateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a blackout date (admin only)",
)
async def add_blackout(
    data: BlackoutDateCreate,
    admin_user: AdminUser,
    db: DatabaseSession,
) -> BlackoutDateResponse:
    """Close the clinic for a day; 409 when the day is already closed."""
    row = await ClinicService().add_blackout(db, admin_user["clinic_id"], data)
    return BlackoutDateResponse.model_validate(row)


@router.delete(
    "/blackouts/{blackout_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a blackout date (admin only)",
)
async def remove_blackout(blackout_id: UUID, admin_user: AdminUser, db: DatabaseSession) -> None:
    """Reopen a blacked-out day."""
    await ClinicService().remove_blackout(db, admin_user["clinic_id"], blackout_id)


@router.get(
    "/practitioners",
    response_model=list[PractitionerResponse],
    summary="List practitioners",
)
async def list_practitioners(
    current_user: CurrentUser,
    db: DatabaseSession,
    include_inactive: bool = Query(False),
) -> list[PractitionerResponse]:
    """List the clinic's practitioners."""
    rows = await ClinicService().list_practitioners(
        db, current_user["clinic_id"], include_inactive=include_inactive
    )
    return [PractitionerResponse.model_validate(row) for row in rows]


@router.post(
    "/practitioners",
    response_model=PractitionerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a practitioner (admin only)",
)
async def create_practitioner(
    data: PractitionerCreate,
    admin_user: AdminUser,
    db: DatabaseSession,
) -> PractitionerResponse:
    """Add a practitioner to the clinic."""
    row = await ClinicService().create_practitioner(db, admin_user["clinic_id"], data)
    return PractitionerResponse.model_validate(row)


@router.delete(
    "/practitioners/{practitioner_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate a practitioner (admin only)",
)
async def deactivate_practitioner(
    practitioner_id: UUID,
    admin_user: AdminUser,
    db: DatabaseSession,
) -> None:
    """Hide a practitioner from booking; existing appointments are kept."""
    await ClinicService().deactivate_practitioner(db, admin_user["clinic_id"], practitioner_id)

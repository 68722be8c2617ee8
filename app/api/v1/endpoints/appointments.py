"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import BadRequestException
from app.core.slots import parse_day
from app.dependencies import CacheManagerDep, CurrentUser, DatabaseSession
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ReminderResult,
)
from app.services.appointment_service import AppointmentService
from app.services.clinic_service import ClinicService
from app.services.email_service import EmailService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> AppointmentResponse:
    """
    Book an appointment in the caller's clinic.

    Args:
        data: Appointment creation data; the end defaults to one slot length
        current_user: Authenticated staff user
        db: Database session
        cache: Cache manager

    Returns:
        Created appointment

    Raises:
        ConflictException: If the time is already booked (409)
    """
    service = AppointmentService(db, ClinicService(cache))
    return await service.create_appointment(current_user["clinic_id"], data, current_user["id"])


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: str | None = Query(None, alias="status"),
    patient_id: UUID | None = Query(None),
    practitioner_id: UUID | None = Query(None),
    from_date: datetime | None = Query(None, description="Starts at or after (ISO 8601)"),
    to_date: datetime | None = Query(None, description="Starts before (ISO 8601)"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
) -> AppointmentListResponse:
    """
    List the clinic's appointments with filtering, earliest first.

    Args:
        current_user: Authenticated staff user
        db: Database session
        status_filter: Filter by status (dashboard or stored spelling)
        patient_id: Filter by patient
        practitioner_id: Filter by practitioner
        from_date: Filter by start date
        to_date: Filter by end date
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        patient_id=patient_id,
        practitioner_id=practitioner_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(current_user["clinic_id"], filters)


@router.get(
    "/day",
    response_model=list[AppointmentResponse],
    tags=["Appointments"],
    summary="Day view",
)
async def day_view(
    current_user: CurrentUser,
    db: DatabaseSession,
    date: str = Query(..., description="YYYY-MM-DD in the clinic timezone"),
) -> list[AppointmentResponse]:
    """All live appointments of one local day."""
    try:
        day = parse_day(date)
    except ValueError as e:
        raise BadRequestException(str(e)) from e
    return await AppointmentService(db).day_view(current_user["clinic_id"], day)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If the appointment is not in the caller's clinic
    """
    return await AppointmentService(db).get_appointment(current_user["clinic_id"], appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update or reschedule appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> AppointmentResponse:
    """
    Update appointment details or move it to a new time.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        current_user: Authenticated staff user
        db: Database session
        cache: Cache manager

    Returns:
        Updated appointment
    """
    service = AppointmentService(db, ClinicService(cache))
    return await service.update_appointment(current_user["clinic_id"], appointment_id, data)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Change status and/or confirmation status.

    A cancelled confirmation cancels the appointment.
    """
    service = AppointmentService(db)
    return await service.update_appointment_status(current_user["clinic_id"], appointment_id, data)


@router.post(
    "/{appointment_id}/remind",
    response_model=ReminderResult,
    tags=["Appointments"],
    summary="Email a reminder now",
)
async def send_reminder(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> ReminderResult:
    """Email the patient a reminder; ``email_ok`` reports whether it went out."""
    service = AppointmentService(db)
    return await service.send_email_reminder(current_user["clinic_id"], appointment_id, EmailService())


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    hard_delete: bool = Query(False, description="Remove the row instead of soft deleting"),
) -> None:
    """Delete an appointment (soft delete by default)."""
    await AppointmentService(db).delete_appointment(
        current_user["clinic_id"], appointment_id, hard_delete=hard_delete
    )

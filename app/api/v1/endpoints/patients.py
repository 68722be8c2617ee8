"""Patient endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.appointments import AppointmentResponse
from app.schemas.patients import (
    PatientCreate,
    PatientImportRequest,
    PatientImportResponse,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.appointment_service import AppointmentService
from app.services.patient_service import PatientService

router = APIRouter()


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Patients"],
    summary="Create patient",
)
async def create_patient(
    data: PatientCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PatientResponse:
    """
    Create a patient in the caller's clinic.

    Args:
        data: Patient details; ``patient_code`` is generated when omitted
        current_user: Authenticated staff user
        db: Database session

    Returns:
        Created patient
    """
    service = PatientService(db)
    return await service.create_patient(current_user["clinic_id"], data, current_user["id"])


@router.get(
    "/",
    response_model=PatientListResponse,
    tags=["Patients"],
    summary="List patients",
)
async def list_patients(
    current_user: CurrentUser,
    db: DatabaseSession,
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
) -> PatientListResponse:
    """List patients with appointment count and last visit."""
    service = PatientService(db)
    return await service.list_patients(current_user["clinic_id"], search, page, page_size)


@router.post(
    "/import",
    response_model=PatientImportResponse,
    tags=["Patients"],
    summary="Bulk import patients",
)
async def import_patients(
    data: PatientImportRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PatientImportResponse:
    """
    Import rows parsed from a spreadsheet.

    Recognised columns: ``full_name``/``name``, ``email``, ``phone``,
    ``date_of_birth``/``dob`` and ``patient_code``/``code``.
    """
    imported, skipped = await PatientService(db).import_rows(
        current_user["clinic_id"], data.rows, current_user["id"]
    )
    return PatientImportResponse(imported=imported, skipped=skipped)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    tags=["Patients"],
    summary="Get patient",
)
async def get_patient(
    patient_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PatientResponse:
    """Get a patient of the caller's clinic."""
    return await PatientService(db).get_patient(current_user["clinic_id"], patient_id)


@router.get(
    "/{patient_id}/appointments",
    response_model=list[AppointmentResponse],
    tags=["Patients"],
    summary="Patient history",
)
async def patient_history(
    patient_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[AppointmentResponse]:
    """The patient's appointments, newest first."""
    return await AppointmentService(db).patient_history(current_user["clinic_id"], patient_id)


@router.patch(
    "/{patient_id}",
    response_model=PatientResponse,
    tags=["Patients"],
    summary="Update patient",
)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PatientResponse:
    """Update a patient's details."""
    return await PatientService(db).update_patient(current_user["clinic_id"], patient_id, data)


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Patients"],
    summary="Delete patient",
)
async def delete_patient(
    patient_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> None:
    """
    Delete a patient.

    Raises:
        ConflictException: While the patient has any appointment (409)
    """
    await PatientService(db).delete_patient(current_user["clinic_id"], patient_id)

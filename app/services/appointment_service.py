"""Appointment service for business logic."""

from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, NotFoundException
from app.core.slots import day_bounds
from app.models.appointments import appointments
from app.models.patients import patients
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ConfirmationStatus,
    ReminderResult,
)
from app.services.availability_service import AvailabilityService
from app.services.clinic_service import ClinicService
from app.services.email_service import EmailService, appointment_reminder_email
from app.services.patient_service import PatientService

logger = structlog.get_logger(__name__)


def _with_patient_name():
    """Appointment columns plus the patient's name."""
    return select(appointments, patients.c.full_name.label("patient_name")).select_from(
        appointments.join(patients, patients.c.id == appointments.c.patient_id)
    )


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession, clinic_service: ClinicService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.clinics = clinic_service or ClinicService()
        self.availability = AvailabilityService(db, self.clinics)

    async def _fetch(self, clinic_id: UUID, appointment_id: UUID) -> dict:
        result = await self.db.execute(
            _with_patient_name().where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.clinic_id == clinic_id,
                    appointments.c.deleted_at.is_(None),
                )
            )
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _check_practitioner(self, clinic_id: UUID, practitioner_id: UUID | None) -> None:
        if practitioner_id is not None:
            await self.clinics.get_practitioner(self.db, clinic_id, practitioner_id)

    async def create_appointment(
        self,
        clinic_id: UUID,
        data: AppointmentCreate,
        created_by: UUID | None = None,
    ) -> AppointmentResponse:
        """
        Book an appointment from the dashboard.

        Args:
            clinic_id: Clinic of the signed-in staff member
            data: Appointment creation data; the end defaults to one slot length
            created_by: Staff user booking it

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the patient or practitioner is not in the clinic
            ConflictException: If the time overlaps another live appointment
        """
        clinic = await self.clinics.get_clinic(self.db, clinic_id)
        await PatientService(self.db).get_patient_row(clinic_id, data.patient_id)
        await self._check_practitioner(clinic_id, data.practitioner_id)

        ends_at = data.ends_at or data.starts_at + timedelta(minutes=clinic["slot_minutes"])
        if data.status != "cancelled":
            await self.availability.assert_no_conflict(
                clinic_id,
                data.starts_at,
                ends_at,
                clinic["slot_minutes"],
                practitioner_id=data.practitioner_id,
            )

        values = {
            "clinic_id": clinic_id,
            "patient_id": data.patient_id,
            "practitioner_id": data.practitioner_id,
            "title": data.title,
            "starts_at": data.starts_at,
            "ends_at": ends_at,
            "notes": data.notes,
            "status": data.status,
            "source": data.source.value,
            "created_by": created_by,
        }
        if data.status == "cancelled":
            values["cancelled_at"] = datetime.now(UTC)

        result = await self.db.execute(
            insert(appointments).values(**values).returning(appointments.c.id)
        )
        appointment_id = result.scalar_one()
        await self.db.commit()

        logger.info(
            "appointment_created",
            appointment_id=str(appointment_id),
            clinic_id=str(clinic_id),
            starts_at=data.starts_at.isoformat(),
        )
        return await self.get_appointment(clinic_id, appointment_id)

    async def get_appointment(self, clinic_id: UUID, appointment_id: UUID) -> AppointmentResponse:
        """Get appointment by ID within the clinic."""
        return AppointmentResponse.model_validate(await self._fetch(clinic_id, appointment_id))

    async def list_appointments(
        self,
        clinic_id: UUID,
        filters: AppointmentFilters,
        newest_first: bool = False,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            clinic_id: Clinic to list
            filters: Filter and pagination parameters
            newest_first: Order by start descending instead of ascending

        Returns:
            Paginated list of appointments
        """
        conditions = [
            appointments.c.clinic_id == clinic_id,
            appointments.c.deleted_at.is_(None),
        ]
        if filters.status:
            conditions.append(appointments.c.status == filters.status)
        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)
        if filters.practitioner_id:
            conditions.append(appointments.c.practitioner_id == filters.practitioner_id)
        if filters.from_date:
            conditions.append(appointments.c.starts_at >= filters.from_date)
        if filters.to_date:
            conditions.append(appointments.c.starts_at < filters.to_date)

        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        order = appointments.c.starts_at.desc() if newest_first else appointments.c.starts_at.asc()
        stmt = (
            _with_patient_name()
            .where(and_(*conditions))
            .order_by(order)
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )
        result = await self.db.execute(stmt)

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(dict(row)) for row in result.mappings()],
        )

    async def day_view(self, clinic_id: UUID, day: date) -> list[AppointmentResponse]:
        """All live appointments of one local day, for the dashboard calendar."""
        clinic = await self.clinics.get_clinic(self.db, clinic_id)
        start, end = day_bounds(day, ZoneInfo(clinic["timezone"]))
        listing = await self.list_appointments(
            clinic_id,
            AppointmentFilters(from_date=start, to_date=end, page_size=500),
        )
        return listing.items

    async def patient_history(self, clinic_id: UUID, patient_id: UUID) -> list[AppointmentResponse]:
        """A patient's appointments, newest first."""
        await PatientService(self.db).get_patient_row(clinic_id, patient_id)
        listing = await self.list_appointments(
            clinic_id,
            AppointmentFilters(patient_id=patient_id, page_size=500),
            newest_first=True,
        )
        return listing.items

    async def update_appointment(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Update or reschedule an appointment.

        Moving the start without an end keeps the original duration. Any change
        of time or practitioner is checked for conflicts, ignoring the
        appointment itself.
        """
        current = await self._fetch(clinic_id, appointment_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return AppointmentResponse.model_validate(current)

        if "practitioner_id" in changes:
            await self._check_practitioner(clinic_id, changes["practitioner_id"])

        starts_at = changes.get("starts_at") or current["starts_at"]
        if "starts_at" in changes and "ends_at" not in changes:
            changes["ends_at"] = starts_at + (current["ends_at"] - current["starts_at"])
        ends_at = changes.get("ends_at") or current["ends_at"]
        if ends_at <= starts_at:
            raise BadRequestException("End time must be after start time")

        moved = {"starts_at", "ends_at", "practitioner_id"} & changes.keys()
        if moved and current["status"] != "cancelled":
            clinic = await self.clinics.get_clinic(self.db, clinic_id)
            await self.availability.assert_no_conflict(
                clinic_id,
                starts_at,
                ends_at,
                clinic["slot_minutes"],
                practitioner_id=changes.get("practitioner_id", current["practitioner_id"]),
                exclude_id=appointment_id,
            )

        if "starts_at" in changes and starts_at != current["starts_at"]:
            # A new time needs a fresh reminder and confirmation
            changes["reminder_status"] = "scheduled"
            changes["confirmation_status"] = ConfirmationStatus.UNCONFIRMED.value

        changes["updated_at"] = datetime.now(UTC)
        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(**changes)
        )
        await self.db.commit()

        logger.info("appointment_updated", appointment_id=str(appointment_id), fields=sorted(changes))
        return await self.get_appointment(clinic_id, appointment_id)

    async def update_appointment_status(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Update status and/or confirmation status.

        A cancelled confirmation cancels the appointment. Re-activating a
        cancelled appointment re-checks its time for conflicts.

        Raises:
            BadRequestException: If neither status nor confirmation_status is given
        """
        if data.status is None and data.confirmation_status is None:
            raise BadRequestException("No updates provided")

        current = await self._fetch(clinic_id, appointment_id)
        values: dict[str, Any] = {"updated_at": datetime.now(UTC)}

        new_status = data.status
        if data.confirmation_status is not None:
            values["confirmation_status"] = data.confirmation_status.value
            if data.confirmation_status == ConfirmationStatus.CANCELLED:
                new_status = "cancelled"
            elif data.confirmation_status == ConfirmationStatus.CONFIRMED and new_status is None:
                if current["status"] == "booked":
                    new_status = "confirmed"

        if new_status is not None:
            values["status"] = new_status
            if new_status == "cancelled" and current["status"] != "cancelled":
                values["cancelled_at"] = datetime.now(UTC)
            elif new_status != "cancelled" and current["status"] == "cancelled":
                clinic = await self.clinics.get_clinic(self.db, clinic_id)
                await self.availability.assert_no_conflict(
                    clinic_id,
                    current["starts_at"],
                    current["ends_at"],
                    clinic["slot_minutes"],
                    practitioner_id=current["practitioner_id"],
                    exclude_id=appointment_id,
                )
                values["cancelled_at"] = None

        if data.notes:
            values["notes"] = data.notes

        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(**values)
        )
        await self.db.commit()

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            old_status=current["status"],
            new_status=values.get("status", current["status"]),
            confirmation_status=values.get("confirmation_status"),
        )
        return await self.get_appointment(clinic_id, appointment_id)

    async def delete_appointment(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        hard_delete: bool = False,
    ) -> None:
        """
        Delete an appointment (soft delete by default).

        Raises:
            NotFoundException: If appointment not found in the clinic
        """
        await self._fetch(clinic_id, appointment_id)

        if hard_delete:
            stmt = delete(appointments).where(appointments.c.id == appointment_id)
        else:
            now = datetime.now(UTC)
            stmt = (
                update(appointments)  # type: ignore[assignment]
                .where(appointments.c.id == appointment_id)
                .values(deleted_at=now, updated_at=now)
            )

        await self.db.execute(stmt)
        await self.db.commit()
        logger.info("appointment_deleted", appointment_id=str(appointment_id), hard=hard_delete)

    async def send_email_reminder(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        email_service: EmailService,
    ) -> ReminderResult:
        """Email the patient a reminder now; a failed send is reported, not raised."""
        appointment = await self._fetch(clinic_id, appointment_id)
        patient = await PatientService(self.db).get_patient_row(clinic_id, appointment["patient_id"])
        clinic = await self.clinics.get_clinic(self.db, clinic_id)

        local_start = appointment["starts_at"].astimezone(ZoneInfo(clinic["timezone"]))
        message = appointment_reminder_email(
            patient_name=patient["full_name"],
            title=appointment["title"],
            when_label=local_start.strftime("%Y/%m/%d %H:%M"),
            clinic_name=clinic["name"],
        )
        email_ok = await email_service.send_quietly(patient.get("email"), message)
        return ReminderResult(email_ok=email_ok)

"""Public booking widget: free slots and self-service booking."""

from datetime import UTC, date, datetime, timedelta
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException
from app.core.slots import generate_slots, local_datetime, parse_clock, parse_day
from app.models.appointments import appointments
from app.schemas.booking import (
    PublicBookingRequest,
    PublicBookingResponse,
    SlotListResponse,
    SlotResponse,
    ValidatedBooking,
)
from app.services.availability_service import AvailabilityService
from app.services.clinic_service import ClinicService
from app.services.email_service import EmailService, booking_confirmation_email
from app.services.patient_service import PatientService

logger = structlog.get_logger(__name__)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


class BookingService:
    """Service behind the unauthenticated booking widget."""

    def __init__(
        self,
        db: AsyncSession,
        clinic_service: ClinicService | None = None,
        email_service: EmailService | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.clinics = clinic_service or ClinicService()
        self.availability = AvailabilityService(db, self.clinics)
        self.email = email_service or EmailService()

    async def _practitioner(self, clinic_id: UUID, practitioner_id: UUID | None) -> None:
        if practitioner_id is not None:
            await self.clinics.get_practitioner(self.db, clinic_id, practitioner_id)

    async def list_slots(
        self,
        slug: str,
        day: str,
        practitioner_id: UUID | None = None,
        now: datetime | None = None,
    ) -> SlotListResponse:
        """
        Free slots of a clinic for one local day.

        Args:
            slug: Public clinic slug
            day: Day as ``YYYY-MM-DD``
            practitioner_id: Only consider this practitioner's diary
            now: Current instant (defaults to the wall clock)

        Returns:
            Slots with ISO start/end and a local ``HH:MM`` label

        Raises:
            BadRequestException: If the date is malformed
            NotFoundException: If the clinic or practitioner does not exist
        """
        try:
            parsed_day = parse_day(day)
        except ValueError as e:
            raise BadRequestException(str(e)) from e

        clinic = await self.clinics.get_clinic_by_slug(self.db, slug)
        await self._practitioner(clinic["id"], practitioner_id)

        config, starts = await self.availability.get_free_slots(
            clinic, parsed_day, practitioner_id=practitioner_id, now=now
        )
        length = timedelta(minutes=config.slot_minutes)
        return SlotListResponse(
            date=parsed_day.isoformat(),
            timezone=config.timezone,
            slot_minutes=config.slot_minutes,
            slots=[
                SlotResponse(starts_at=start, ends_at=start + length, time=start.strftime("%H:%M"))
                for start in starts
            ],
        )

    async def book(
        self,
        slug: str,
        request: PublicBookingRequest,
        now: datetime | None = None,
    ) -> PublicBookingResponse:
        """
        Book an appointment from the public widget.

        A filled-in honeypot is answered with success and nothing is written.
        The confirmation email is best effort and never fails the booking.

        Raises:
            BadRequestException: On missing fields, malformed input, closed
                days, times outside opening hours or in the past
            ConflictException: If the slot was taken in the meantime
        """
        if request.is_bot:
            logger.info("public_booking_honeypot", slug=slug)
            return PublicBookingResponse()

        missing = request.missing_fields()
        if missing:
            raise BadRequestException(f"Missing required fields: {', '.join(missing)}")

        try:
            booking = ValidatedBooking.model_validate(request.model_dump(exclude={"website"}))
        except ValidationError as e:
            raise BadRequestException(_first_error(e)) from e

        clinic = await self.clinics.get_clinic_by_slug(self.db, slug)
        config = await self.clinics.get_booking_config(self.db, clinic)
        await self._practitioner(config.clinic_id, booking.practitioner_id)

        day = parse_day(booking.date)
        starts_at = local_datetime(day, parse_clock(booking.time), config.tz)
        ends_at = starts_at + timedelta(minutes=config.slot_minutes)

        if await self.clinics.is_blackout(self.db, config.clinic_id, day):
            raise BadRequestException("The clinic is closed on this date")
        if starts_at not in generate_slots(day, config.spans, config.slot_minutes, config.tz):
            raise BadRequestException("Selected time is outside clinic hours")
        if starts_at <= (now or datetime.now(UTC)):
            raise BadRequestException("Selected time is in the past")

        await self.availability.assert_no_conflict(
            config.clinic_id,
            starts_at,
            ends_at,
            config.slot_minutes,
            practitioner_id=booking.practitioner_id,
        )

        patient = await PatientService(self.db).find_or_create_by_email(
            config.clinic_id, booking.name, booking.email, booking.phone
        )
        result = await self.db.execute(
            insert(appointments)
            .values(
                clinic_id=config.clinic_id,
                patient_id=patient["id"],
                practitioner_id=booking.practitioner_id,
                title="Appointment",
                starts_at=starts_at,
                ends_at=ends_at,
                notes=booking.notes,
                status="booked",
                source="public",
            )
            .returning(appointments.c.id)
        )
        appointment_id = result.scalar_one()
        await self.db.commit()

        logger.info(
            "public_booking_created",
            appointment_id=str(appointment_id),
            clinic_id=str(config.clinic_id),
            starts_at=starts_at.isoformat(),
        )

        await self._send_confirmation(config.name, config.slug, config.address, booking, day)
        return PublicBookingResponse(id=appointment_id, starts_at=starts_at, ends_at=ends_at)

    async def _send_confirmation(
        self,
        clinic_name: str,
        slug: str,
        address: str | None,
        booking: ValidatedBooking,
        day: date,
    ) -> None:
        message = booking_confirmation_email(
            patient_name=booking.name,
            date_label=day.isoformat(),
            time_label=booking.time,
            clinic_name=clinic_name,
            clinic_address=address,
            manage_url=f"{settings.public_site_url.rstrip('/')}/book/{slug}",
        )
        sent = await self.email.send_quietly(
            str(booking.email), message, from_address=settings.booking_from_email
        )
        if not sent:
            logger.warning("booking_confirmation_not_sent", slug=slug)

"""Free-slot lookup and double-booking checks backed by the database."""

from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException
from app.core.slots import Busy, busy_from_rows, day_bounds, find_conflicts, free_slots
from app.models.appointments import appointments
from app.models.clinics import clinics
from app.services.clinic_service import BookingConfig, ClinicService

logger = structlog.get_logger(__name__)

SLOT_TAKEN_MESSAGE = "Time slot already booked. Pick another."


class AvailabilityService:
    """Service computing bookable time for a clinic."""

    def __init__(self, db: AsyncSession, clinic_service: ClinicService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.clinics = clinic_service or ClinicService()

    async def load_bookings(
        self,
        clinic_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Busy]:
        """
        Live bookings of a clinic that overlap a window.

        Soft-deleted and cancelled appointments are excluded at the query level.
        """
        stmt = select(
            appointments.c.id,
            appointments.c.starts_at,
            appointments.c.ends_at,
            appointments.c.status,
            appointments.c.practitioner_id,
        ).where(
            and_(
                appointments.c.clinic_id == clinic_id,
                appointments.c.deleted_at.is_(None),
                appointments.c.status != "cancelled",
                appointments.c.starts_at < window_end,
                appointments.c.ends_at > window_start,
            )
        )
        result = await self.db.execute(stmt)
        return busy_from_rows(result.mappings().all())

    async def get_free_slots(
        self,
        clinic: dict,
        day: date,
        practitioner_id: UUID | None = None,
        now: datetime | None = None,
    ) -> tuple[BookingConfig, list[datetime]]:
        """
        Free slot starts for one local day.

        Args:
            clinic: Clinic row
            day: Local day in the clinic timezone
            practitioner_id: Only this practitioner's bookings block when given
            now: Current instant (defaults to the wall clock)

        Returns:
            The clinic's booking configuration and the sorted free slot starts
        """
        config = await self.clinics.get_booking_config(self.db, clinic)
        tz = config.tz

        if await self.clinics.is_blackout(self.db, config.clinic_id, day):
            return config, []

        start, end = day_bounds(day, tz)
        bookings = await self.load_bookings(config.clinic_id, start, end)
        slots = free_slots(
            day,
            config.spans,
            bookings,
            config.slot_minutes,
            tz,
            now or datetime.now(UTC),
            practitioner_id=practitioner_id,
        )
        return config, slots

    async def lock_clinic(self, clinic_id: UUID) -> None:
        """Serialise bookings for a clinic until the surrounding transaction ends."""
        await self.db.execute(select(clinics.c.id).where(clinics.c.id == clinic_id).with_for_update())

    async def assert_no_conflict(
        self,
        clinic_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        slot_minutes: int,
        practitioner_id: Any = None,
        exclude_id: Any = None,
    ) -> None:
        """
        Raise ``ConflictException`` if ``[starts_at, ends_at)`` is already taken.

        The clinic row stays locked until the caller commits, so the check and
        the following insert or update are atomic with respect to other bookings.
        """
        await self.lock_clinic(clinic_id)
        bookings = await self.load_bookings(
            clinic_id,
            starts_at - timedelta(minutes=slot_minutes),
            ends_at + timedelta(minutes=slot_minutes),
        )
        conflicts = find_conflicts(
            starts_at,
            ends_at,
            bookings,
            slot_minutes,
            practitioner_id=practitioner_id,
            exclude_id=exclude_id,
        )
        if conflicts:
            logger.info(
                "booking_conflict",
                clinic_id=str(clinic_id),
                starts_at=starts_at.isoformat(),
                conflicting=[str(c.id) for c in conflicts],
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE)

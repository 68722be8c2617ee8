"""Clinic service: settings, opening hours, blackout dates and practitioners."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.core.redis_client import CacheManager
from app.core.slots import Span, overlaps
from app.models.clinics import availability, blackout_dates, clinics, practitioners
from app.schemas.clinics import (
    AvailabilitySpanIn,
    BlackoutDateCreate,
    ClinicUpdate,
    PractitionerCreate,
)

logger = structlog.get_logger(__name__)


@dataclass
class BookingConfig:
    """Everything slot computation needs to know about a clinic."""

    clinic_id: UUID
    name: str
    slug: str
    timezone: str
    slot_minutes: int
    address: str | None = None
    spans: list[Span] = field(default_factory=list)

    @property
    def tz(self) -> ZoneInfo:
        """Clinic timezone."""
        return ZoneInfo(self.timezone)

    def to_cache(self) -> dict[str, Any]:
        """JSON-friendly form."""
        return {
            "clinic_id": str(self.clinic_id),
            "name": self.name,
            "slug": self.slug,
            "timezone": self.timezone,
            "slot_minutes": self.slot_minutes,
            "address": self.address,
            "spans": [
                {
                    "weekday": s.weekday,
                    "start_time": s.start_time.isoformat(),
                    "end_time": s.end_time.isoformat(),
                }
                for s in self.spans
            ],
        }

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "BookingConfig":
        """Rebuild from the cached JSON form."""
        return cls(
            clinic_id=UUID(data["clinic_id"]),
            name=data["name"],
            slug=data["slug"],
            timezone=data["timezone"],
            slot_minutes=int(data["slot_minutes"]),
            address=data.get("address"),
            spans=[
                Span(
                    weekday=int(s["weekday"]),
                    start_time=time.fromisoformat(s["start_time"]),
                    end_time=time.fromisoformat(s["end_time"]),
                )
                for s in data.get("spans", [])
            ],
        )


class ClinicService:
    """Service for clinic operations."""

    # Cache TTL in seconds
    BOOKING_CONFIG_CACHE_TTL = 900  # 15 minutes

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _booking_config_cache_key(clinic_id: UUID | str) -> str:
        """Generate cache key for a clinic's booking configuration."""
        return f"clinic:{clinic_id}:booking_config"

    def invalidate(self, clinic_id: UUID | str) -> None:
        """Drop cached data for a clinic."""
        if self.cache:
            self.cache.delete(self._booking_config_cache_key(clinic_id))

    # ------------------------------------------------------------------
    # Clinic
    # ------------------------------------------------------------------

    async def get_clinic(self, db: AsyncSession, clinic_id: UUID) -> dict:
        """Get clinic by ID."""
        result = await db.execute(select(clinics).where(clinics.c.id == clinic_id))
        clinic = result.mappings().first()
        if not clinic:
            raise NotFoundException("Clinic not found")
        return dict(clinic)

    async def get_clinic_by_slug(self, db: AsyncSession, slug: str) -> dict:
        """Get an active clinic by its public slug."""
        result = await db.execute(
            select(clinics).where(clinics.c.slug == slug, clinics.c.is_active.is_(True))
        )
        clinic = result.mappings().first()
        if not clinic:
            raise NotFoundException("Clinic not found")
        return dict(clinic)

    async def update_clinic(self, db: AsyncSession, clinic_id: UUID, data: ClinicUpdate) -> dict:
        """Update clinic settings and invalidate its cached booking configuration."""
        values = data.model_dump(exclude_unset=True)
        if not values:
            return await self.get_clinic(db, clinic_id)

        values["updated_at"] = datetime.now(UTC)
        try:
            result = await db.execute(
                update(clinics).where(clinics.c.id == clinic_id).values(**values).returning(clinics)
            )
            row = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException(f"Clinic slug '{data.slug}' is already taken") from e

        if not row:
            raise NotFoundException("Clinic not found")

        self.invalidate(clinic_id)
        logger.info("clinic_updated", clinic_id=str(clinic_id), fields=sorted(values))
        return dict(row)

    # ------------------------------------------------------------------
    # Opening hours
    # ------------------------------------------------------------------

    async def list_availability(self, db: AsyncSession, clinic_id: UUID) -> list[dict]:
        """Weekly opening spans ordered by weekday and start."""
        result = await db.execute(
            select(availability)
            .where(availability.c.clinic_id == clinic_id)
            .order_by(availability.c.weekday, availability.c.start_time)
        )
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    def check_spans(spans: list[AvailabilitySpanIn]) -> None:
        """Reject overlapping spans on the same weekday."""
        anchor = date(2000, 1, 3)
        by_day: dict[int, list[AvailabilitySpanIn]] = {}
        for span in spans:
            by_day.setdefault(span.weekday, []).append(span)

        for weekday, day_spans in by_day.items():
            ordered = sorted(day_spans, key=lambda s: s.start_time)
            for prev, cur in zip(ordered, ordered[1:]):
                if overlaps(
                    datetime.combine(anchor, prev.start_time),
                    datetime.combine(anchor, prev.end_time),
                    datetime.combine(anchor, cur.start_time),
                    datetime.combine(anchor, cur.end_time),
                ):
                    raise BadRequestException(
                        f"Opening spans overlap on weekday {weekday}: "
                        f"{prev.start_time:%H:%M}-{prev.end_time:%H:%M} and "
                        f"{cur.start_time:%H:%M}-{cur.end_time:%H:%M}"
                    )

    async def replace_availability(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        spans: list[AvailabilitySpanIn],
    ) -> list[dict]:
        """Replace the clinic's weekly schedule in one transaction."""
        self.check_spans(spans)

        await db.execute(delete(availability).where(availability.c.clinic_id == clinic_id))
        if spans:
            await db.execute(
                insert(availability),
                [{"clinic_id": clinic_id, **span.model_dump()} for span in spans],
            )
        await db.commit()

        self.invalidate(clinic_id)
        logger.info("availability_replaced", clinic_id=str(clinic_id), spans=len(spans))
        return await self.list_availability(db, clinic_id)

    # ------------------------------------------------------------------
    # Blackout dates
    # ------------------------------------------------------------------

    async def list_blackouts(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        from_date: date | None = None,
    ) -> list[dict]:
        """Blackout dates, optionally only those on or after ``from_date``."""
        conditions = [blackout_dates.c.clinic_id == clinic_id]
        if from_date:
            conditions.append(blackout_dates.c.date >= from_date)
        result = await db.execute(
            select(blackout_dates).where(and_(*conditions)).order_by(blackout_dates.c.date)
        )
        return [dict(row) for row in result.mappings().all()]

    async def add_blackout(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        data: BlackoutDateCreate,
    ) -> dict:
        """Close the clinic for a day."""
        try:
            result = await db.execute(
                insert(blackout_dates)
                .values(clinic_id=clinic_id, date=data.date, reason=data.reason)
                .returning(blackout_dates)
            )
            row = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException(f"{data.date.isoformat()} is already a blackout date") from e
        return dict(row)

    async def remove_blackout(self, db: AsyncSession, clinic_id: UUID, blackout_id: UUID) -> None:
        """Reopen a blacked-out day."""
        result = await db.execute(
            delete(blackout_dates)
            .where(blackout_dates.c.id == blackout_id, blackout_dates.c.clinic_id == clinic_id)
            .returning(blackout_dates.c.id)
        )
        deleted = result.first()
        await db.commit()
        if not deleted:
            raise NotFoundException("Blackout date not found")

    async def is_blackout(self, db: AsyncSession, clinic_id: UUID, day: date) -> bool:
        """Whether the clinic is closed on ``day``."""
        result = await db.execute(
            select(blackout_dates.c.id).where(
                blackout_dates.c.clinic_id == clinic_id,
                blackout_dates.c.date == day,
            )
        )
        return result.first() is not None

    # ------------------------------------------------------------------
    # Practitioners
    # ------------------------------------------------------------------

    async def list_practitioners(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        include_inactive: bool = False,
    ) -> list[dict]:
        """Practitioners of the clinic ordered by name."""
        conditions = [practitioners.c.clinic_id == clinic_id]
        if not include_inactive:
            conditions.append(practitioners.c.is_active.is_(True))
        result = await db.execute(
            select(practitioners).where(and_(*conditions)).order_by(practitioners.c.full_name)
        )
        return [dict(row) for row in result.mappings().all()]

    async def create_practitioner(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        data: PractitionerCreate,
    ) -> dict:
        """Add a practitioner to the clinic."""
        result = await db.execute(
            insert(practitioners)
            .values(clinic_id=clinic_id, **data.model_dump())
            .returning(practitioners)
        )
        row = result.mappings().first()
        await db.commit()
        return dict(row)

    async def get_practitioner(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        practitioner_id: UUID,
    ) -> dict:
        """Get an active practitioner belonging to the clinic."""
        result = await db.execute(
            select(practitioners).where(
                practitioners.c.id == practitioner_id,
                practitioners.c.clinic_id == clinic_id,
                practitioners.c.is_active.is_(True),
            )
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Practitioner not found")
        return dict(row)

    async def deactivate_practitioner(
        self,
        db: AsyncSession,
        clinic_id: UUID,
        practitioner_id: UUID,
    ) -> None:
        """Hide a practitioner from booking; past appointments keep the link."""
        result = await db.execute(
            update(practitioners)
            .where(practitioners.c.id == practitioner_id, practitioners.c.clinic_id == clinic_id)
            .values(is_active=False)
            .returning(practitioners.c.id)
        )
        updated = result.first()
        await db.commit()
        if not updated:
            raise NotFoundException("Practitioner not found")

    # ------------------------------------------------------------------
    # Booking configuration
    # ------------------------------------------------------------------

    async def get_booking_config(self, db: AsyncSession, clinic: dict) -> BookingConfig:
        """
        Clinic settings plus weekly spans, cached in Redis.

        Args:
            db: Database session
            clinic: Clinic row as returned by ``get_clinic``/``get_clinic_by_slug``

        Returns:
            Booking configuration
        """
        cache_key = self._booking_config_cache_key(clinic["id"])
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached:
                return BookingConfig.from_cache(cached)

        rows = await self.list_availability(db, clinic["id"])
        config = BookingConfig(
            clinic_id=clinic["id"],
            name=clinic["name"],
            slug=clinic["slug"],
            timezone=clinic["timezone"],
            slot_minutes=clinic["slot_minutes"],
            address=clinic.get("address"),
            spans=[
                Span(weekday=r["weekday"], start_time=r["start_time"], end_time=r["end_time"])
                for r in rows
            ],
        )

        if self.cache:
            self.cache.set_json(cache_key, config.to_cache(), ttl=self.BOOKING_CONFIG_CACHE_TTL)
        return config

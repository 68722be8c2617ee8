"""Slot generation and interval-overlap checks for appointment booking.

Everything here is pure: callers load clinic hours, blackout dates and
existing appointments from the database and pass them in. Times handed in
and returned are timezone-aware datetimes; spans are local wall-clock times
interpreted in the clinic's timezone.
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

# Appointments in these states no longer occupy their time
NON_BLOCKING_STATUSES = frozenset({"cancelled"})

DAY_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
CLOCK_PATTERN = re.compile(r"\d{2}:\d{2}(:\d{2})?", re.ASCII)


@dataclass(frozen=True)
class Span:
    """Opening hours for one weekday (0=Monday ... 6=Sunday)."""

    weekday: int
    start_time: time
    end_time: time


@dataclass(frozen=True)
class Busy:
    """An existing booking that may block slots."""

    starts_at: datetime
    ends_at: datetime | None
    status: str = "booked"
    practitioner_id: Any = None
    id: Any = None


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap; intervals that only touch do not overlap."""
    return a_start < b_end and a_end > b_start


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, raising ValueError on anything else."""
    if not isinstance(value, str) or not DAY_PATTERN.fullmatch(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError("Date must be in YYYY-MM-DD format") from None


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock time; trailing ``:SS`` is accepted and dropped."""
    if not isinstance(value, str) or not CLOCK_PATTERN.fullmatch(value):
        raise ValueError("Time must be in HH:MM format")
    try:
        parsed = time.fromisoformat(value)
    except ValueError:
        raise ValueError("Time must be in HH:MM format") from None
    return parsed.replace(second=0, microsecond=0)


def local_datetime(day: date, clock: time, tz: ZoneInfo) -> datetime:
    """Combine a local day and wall-clock time into an aware datetime."""
    return datetime.combine(day, clock, tzinfo=tz)


def spans_for_day(day: date, spans: Iterable[Span]) -> list[Span]:
    """Return the opening spans that apply to ``day``'s weekday."""
    weekday = day.weekday()
    return [span for span in spans if span.weekday == weekday]


def exists_locally(moment: datetime) -> bool:
    """False for wall-clock times skipped by a DST jump."""
    round_trip = moment.astimezone(UTC).astimezone(moment.tzinfo)
    return round_trip.replace(tzinfo=None) == moment.replace(tzinfo=None)


def generate_slots(
    day: date,
    spans: Iterable[Span],
    slot_minutes: int,
    tz: ZoneInfo,
) -> list[datetime]:
    """
    Walk each opening span of the day in ``slot_minutes`` steps.

    A slot is emitted only when it ends at or before the span end, so a
    trailing remainder shorter than one slot is dropped. Wall-clock times
    that do not exist on a DST change day are skipped, and slots are
    de-duplicated on their UTC instant.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    step = timedelta(minutes=slot_minutes)
    slots: dict[datetime, datetime] = {}
    for span in spans_for_day(day, spans):
        cursor = local_datetime(day, span.start_time, tz)
        end = local_datetime(day, span.end_time, tz)
        while cursor + step <= end:
            if exists_locally(cursor):
                slots.setdefault(cursor.astimezone(UTC), cursor)
            cursor += step
    return [slots[instant] for instant in sorted(slots)]


def busy_end(busy: Busy, slot_minutes: int) -> datetime:
    """End of a booking; open-ended bookings occupy one slot length."""
    return busy.ends_at or busy.starts_at + timedelta(minutes=slot_minutes)


def is_blocking(busy: Busy, practitioner_id: Any = None) -> bool:
    """
    Decide whether a booking blocks time for a new one.

    Cancelled bookings never block. When a practitioner is requested only that
    practitioner's bookings block.
    """
    if busy.status in NON_BLOCKING_STATUSES:
        return False
    if practitioner_id is not None and str(busy.practitioner_id) != str(practitioner_id):
        return False
    return True


def find_conflicts(
    start: datetime,
    end: datetime,
    bookings: Iterable[Busy],
    slot_minutes: int,
    practitioner_id: Any = None,
    exclude_id: Any = None,
) -> list[Busy]:
    """Return the blocking bookings that overlap ``[start, end)``."""
    conflicts = []
    for busy in bookings:
        if exclude_id is not None and str(busy.id) == str(exclude_id):
            continue
        if not is_blocking(busy, practitioner_id):
            continue
        if overlaps(start, end, busy.starts_at, busy_end(busy, slot_minutes)):
            conflicts.append(busy)
    return conflicts


def free_slots(
    day: date,
    spans: Iterable[Span],
    bookings: Sequence[Busy],
    slot_minutes: int,
    tz: ZoneInfo,
    now: datetime,
    blackout: bool = False,
    practitioner_id: Any = None,
) -> list[datetime]:
    """
    Compute the bookable slot starts for one local day.

    Args:
        day: Local day to compute
        spans: Weekly opening spans of the clinic
        bookings: Existing bookings touching the day
        slot_minutes: Slot length
        tz: Clinic timezone
        now: Current instant; slots starting at or before it are dropped
        blackout: Whether the clinic is closed that day
        practitioner_id: Restrict blocking to one practitioner's bookings

    Returns:
        Sorted aware datetimes in the clinic timezone
    """
    if blackout:
        return []

    length = timedelta(minutes=slot_minutes)
    candidates = [
        slot for slot in generate_slots(day, spans, slot_minutes, tz) if slot > now.astimezone(tz)
    ]
    return [
        slot
        for slot in candidates
        if not find_conflicts(slot, slot + length, bookings, slot_minutes, practitioner_id)
    ]


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Start of ``day`` and start of the following day in the clinic timezone."""
    start = local_datetime(day, time.min, tz)
    return start, local_datetime(day + timedelta(days=1), time.min, tz)


def busy_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Busy]:
    """Adapt appointment rows (mappings) into ``Busy`` records."""
    return [
        Busy(
            starts_at=row["starts_at"],
            ends_at=row.get("ends_at"),
            status=row.get("status") or "booked",
            practitioner_id=row.get("practitioner_id"),
            id=row.get("id"),
        )
        for row in rows
    ]

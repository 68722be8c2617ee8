"""Tests for slot generation and conflict detection."""

from datetime import UTC, date, datetime, time, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from app.core.slots import (
    Busy,
    Span,
    busy_from_rows,
    day_bounds,
    find_conflicts,
    free_slots,
    generate_slots,
    overlaps,
    parse_clock,
    parse_day,
)

TZ = ZoneInfo("Africa/Johannesburg")
# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
LONG_AGO = datetime(2000, 1, 1, tzinfo=UTC)


def local(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


def test_overlaps_is_half_open():
    assert overlaps(local(9), local(10), local(9, 30), local(10, 30))
    assert overlaps(local(9), local(12), local(10), local(11))
    # Touching intervals do not overlap
    assert not overlaps(local(9), local(10), local(10), local(11))
    assert not overlaps(local(10), local(11), local(9), local(10))


def test_generate_slots_steps_through_each_span():
    spans = [Span(0, time(8, 0), time(10, 0)), Span(0, time(13, 0), time(14, 0))]
    slots = generate_slots(MONDAY, spans, 30, TZ)
    assert [s.strftime("%H:%M") for s in slots] == [
        "08:00",
        "08:30",
        "09:00",
        "09:30",
        "13:00",
        "13:30",
    ]
    assert all(s.tzinfo == TZ for s in slots)


def test_generate_slots_drops_trailing_remainder():
    spans = [Span(0, time(8, 0), time(9, 45))]
    slots = generate_slots(MONDAY, spans, 30, TZ)
    assert [s.strftime("%H:%M") for s in slots] == ["08:00", "08:30", "09:00"]


def test_generate_slots_ignores_other_weekdays():
    spans = [Span(1, time(8, 0), time(17, 0))]
    assert generate_slots(MONDAY, spans, 30, TZ) == []


def test_generate_slots_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_slots(MONDAY, [Span(0, time(8, 0), time(9, 0))], 0, TZ)


def test_find_conflicts_skips_cancelled_and_excluded():
    booked_id = uuid4()
    bookings = [
        Busy(starts_at=local(9), ends_at=local(9, 30), status="cancelled"),
        Busy(starts_at=local(9), ends_at=local(9, 30), status="booked", id=booked_id),
    ]
    assert len(find_conflicts(local(9), local(9, 30), bookings, 30)) == 1
    assert find_conflicts(local(9), local(9, 30), bookings, 30, exclude_id=booked_id) == []


def test_find_conflicts_open_ended_booking_occupies_one_slot():
    bookings = [Busy(starts_at=local(9), ends_at=None)]
    assert find_conflicts(local(9, 15), local(9, 45), bookings, 30)
    assert not find_conflicts(local(9, 30), local(10), bookings, 30)


def test_find_conflicts_per_practitioner():
    dr_a, dr_b = uuid4(), uuid4()
    bookings = [Busy(starts_at=local(9), ends_at=local(10), practitioner_id=dr_a)]

    assert find_conflicts(local(9), local(9, 30), bookings, 30, practitioner_id=dr_a)
    assert not find_conflicts(local(9), local(9, 30), bookings, 30, practitioner_id=dr_b)
    # Without a practitioner every booking blocks
    assert find_conflicts(local(9), local(9, 30), bookings, 30)


def test_free_slots_removes_booked_and_past_slots():
    spans = [Span(0, time(8, 0), time(10, 0))]
    bookings = [Busy(starts_at=local(9), ends_at=local(9, 30))]
    now = local(8, 0)

    slots = free_slots(MONDAY, spans, bookings, 30, TZ, now)

    # 08:00 is not after "now", 09:00 is booked
    assert [s.strftime("%H:%M") for s in slots] == ["08:30", "09:30"]


def test_free_slots_empty_on_blackout():
    spans = [Span(0, time(8, 0), time(10, 0))]
    assert free_slots(MONDAY, spans, [], 30, TZ, LONG_AGO, blackout=True) == []


def test_free_slots_long_booking_blocks_several_slots():
    spans = [Span(0, time(8, 0), time(11, 0))]
    bookings = [Busy(starts_at=local(8, 15), ends_at=local(9, 45))]

    slots = free_slots(MONDAY, spans, bookings, 30, TZ, LONG_AGO)

    assert [s.strftime("%H:%M") for s in slots] == ["10:00", "10:30"]


def test_day_bounds_cover_one_local_day():
    start, end = day_bounds(MONDAY, TZ)
    assert start == local(0)
    assert end - start == timedelta(days=1)
    assert start.astimezone(UTC).hour == 22


def test_parse_helpers():
    assert parse_day("2030-01-07") == MONDAY
    assert parse_clock("09:30") == time(9, 30)
    assert parse_clock("09:30:45") == time(9, 30)
    with pytest.raises(ValueError, match="YYYY-MM-DD"):
        parse_day("07/01/2030")
    with pytest.raises(ValueError, match="HH:MM"):
        parse_clock("half past nine")


@pytest.mark.parametrize("value", ["20300107", "2030-W02-1", "2030W021", "2030-01-07T09:00", " 2030-01-07"])
def test_parse_day_accepts_only_dashed_dates(value):
    with pytest.raises(ValueError, match="YYYY-MM-DD"):
        parse_day(value)


@pytest.mark.parametrize("value", ["0930", "09", "9:30", "T09:30", "09:30+05:00", "09:30Z", "09:30:00.5"])
def test_parse_clock_rejects_other_iso_forms(value):
    with pytest.raises(ValueError, match="HH:MM"):
        parse_clock(value)


def test_generate_slots_skips_spring_forward_gap():
    new_york = ZoneInfo("America/New_York")
    # Clocks jump from 02:00 to 03:00 on 2026-03-08 (a Sunday)
    day = date(2026, 3, 8)
    spans = [Span(6, time(1, 0), time(4, 0))]

    slots = generate_slots(day, spans, 30, new_york)

    assert [slot.strftime("%H:%M") for slot in slots] == ["01:00", "01:30", "03:00", "03:30"]
    instants = [slot.astimezone(UTC) for slot in slots]
    assert instants == sorted(set(instants))


def test_busy_from_rows_defaults_status():
    rows = [{"starts_at": local(9), "ends_at": local(10), "status": None, "id": 1}]
    (busy,) = busy_from_rows(rows)
    assert busy.status == "booked"
    assert busy.practitioner_id is None
    assert busy.id == 1

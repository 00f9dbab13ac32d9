"""
Appointment availability calculator.

Pure functions that turn business hours, existing appointments and blocked
slots into bookable days and time slots. No I/O: everything the calculation
needs is passed in, including ``now``, so results are reproducible.

Usage:
    slots = free_slots(settings, appointments, blocked, date(2024, 6, 3), now)
    days = available_days(settings, blocked, now, appointments=appointments, limit=5)
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional

from booking_widget.schemas.scheduling_schema import (
    Appointment,
    AppointmentSettings,
    BlockedSlot,
)
from booking_widget.schemas.ui_schema import AvailableDay, TimeSlot
from booking_widget.utils import (
    format_day_display,
    format_hhmm,
    format_time_display,
    from_minutes,
    to_minutes,
    weekday_index,
)

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = 60


def intervals_conflict(
    start: int, end: int, other_start: int, other_end: int, buffer: int = 0
) -> bool:
    """Check whether ``[start, end)`` overlaps ``[other_start, other_end)`` padded by ``buffer``.

    Only the existing interval is padded, so two bookings must be at least
    ``buffer`` minutes apart. Touching intervals do not conflict when
    ``buffer`` is zero.
    """
    return start < (other_end + buffer) and (other_start - buffer) < end


def generate_slot_starts(settings: AppointmentSettings) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` minute offsets across business hours.

    A trailing slot that would run past ``end_hour`` is dropped rather than
    shortened.
    """
    close = settings.end_hour * MINUTES_PER_HOUR
    start = settings.start_hour * MINUTES_PER_HOUR
    while start + settings.default_duration <= close:
        yield start, start + settings.default_duration
        start += settings.default_duration


def blocks_for_date(day: date, blocked_slots: Iterable[BlockedSlot]) -> list[BlockedSlot]:
    """Blocked slots (one-off and recurring) that apply to ``day``."""
    return [b for b in blocked_slots if b.applies_to(day)]


def is_day_blocked(day: date, blocked_slots: Iterable[BlockedSlot]) -> bool:
    """Whether a whole-day block removes ``day`` entirely."""
    return any(b.is_full_day for b in blocks_for_date(day, blocked_slots))


def is_open_on(settings: AppointmentSettings, day: date) -> bool:
    return weekday_index(day) in settings.available_days


def booking_window(settings: AppointmentSettings, now: datetime) -> tuple[date, date]:
    """First and last bookable dates in the business timezone."""
    today = local_now(settings, now).date()
    return today, today + timedelta(days=settings.max_advance_days)


def local_now(settings: AppointmentSettings, now: datetime) -> datetime:
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(settings.tzinfo)


def find_conflict(
    start: int,
    end: int,
    appointments: Iterable[Appointment],
    blocks: Iterable[BlockedSlot],
    buffer: int,
) -> Optional[str]:
    """ID of the first confirmed appointment or blocked slot occupying an interval.

    Appointments are padded by ``buffer`` minutes on each side;
    blocked windows are compared as-is.
    """
    for appt in appointments:
        if not appt.is_active:
            continue
        if intervals_conflict(
            start, end, to_minutes(appt.start_time), to_minutes(appt.end_time), buffer
        ):
            return appt.id
    for block in blocks:
        if block.is_full_day:
            return block.id
        if intervals_conflict(start, end, to_minutes(block.start_time), to_minutes(block.end_time)):
            return block.id
    return None


def free_slots(
    settings: AppointmentSettings,
    appointments: Iterable[Appointment],
    blocked_slots: Iterable[BlockedSlot],
    day: date,
    now: datetime,
) -> list[TimeSlot]:
    """Bookable time slots on ``day``, in chronological order."""
    first, last = booking_window(settings, now)
    if not first <= day <= last or not is_open_on(settings, day):
        return []

    blocks = blocks_for_date(day, blocked_slots)
    if any(b.is_full_day for b in blocks):
        return []

    tz = settings.tzinfo
    earliest = local_now(settings, now) + timedelta(hours=settings.min_advance_hours)
    booked = [a for a in appointments if a.date == day and a.is_active]

    slots: list[TimeSlot] = []
    for start, end in generate_slot_starts(settings):
        start_time = from_minutes(start)
        if datetime.combine(day, start_time, tzinfo=tz) < earliest:
            continue
        if find_conflict(start, end, booked, blocks, settings.buffer_time) is not None:
            continue
        slots.append(TimeSlot(time=format_hhmm(start_time), display=format_time_display(start_time)))

    logger.debug("%d free slots on %s for %s", len(slots), day, settings.business_id)
    return slots


def available_days(
    settings: AppointmentSettings,
    blocked_slots: Iterable[BlockedSlot],
    now: datetime,
    appointments: Iterable[Appointment] = (),
    horizon_days: Optional[int] = None,
    limit: Optional[int] = None,
    from_date: Optional[date] = None,
) -> list[AvailableDay]:
    """Days with at least one free slot, in chronological order.

    The scan starts at ``from_date`` (never before today) and stops at the
    earlier of ``horizon_days`` past the start and ``max_advance_days`` past
    today. ``limit`` caps the number of days returned.
    """
    blocked = list(blocked_slots)
    by_date: dict[date, list[Appointment]] = defaultdict(list)
    for appt in appointments:
        by_date[appt.date].append(appt)

    today, last = booking_window(settings, now)
    day = max(from_date or today, today)
    if horizon_days is not None:
        last = min(last, day + timedelta(days=horizon_days))

    days: list[AvailableDay] = []
    while day <= last:
        if limit is not None and len(days) >= limit:
            break
        if is_open_on(settings, day) and not is_day_blocked(day, blocked):
            if free_slots(settings, by_date.get(day, []), blocked, day, now):
                days.append(
                    AvailableDay(
                        date=day.isoformat(),
                        display=format_day_display(day),
                        day_name=day.strftime("%a"),
                    )
                )
        day += timedelta(days=1)
    return days

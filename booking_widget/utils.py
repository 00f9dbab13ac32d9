"""Shared utilities used across the booking widget."""

import re
from datetime import date, time


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(555) 123-4567")
        '5551234567'
        >>> normalize_phone("+1 (555) 123-4567")
        '+15551234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


MINUTES_PER_DAY = 24 * 60

# An end time of 24:00 has no ``datetime.time``; ``time.max`` stands in for it.
END_OF_DAY = time.max


def to_minutes(value: time) -> int:
    """Minutes since midnight for a time-of-day; ``END_OF_DAY`` is 1440."""
    if value == END_OF_DAY:
        return MINUTES_PER_DAY
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Time-of-day for a minute offset within a single day.

    1440 maps to ``END_OF_DAY`` so a slot may end at midnight.
    """
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range for a time of day: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return END_OF_DAY
    return time(minutes // 60, minutes % 60)


def format_hhmm(value: time) -> str:
    """24h wire format, e.g. ``"09:30"``."""
    if value == END_OF_DAY:
        return "24:00"
    return value.strftime("%H:%M")


def format_time_display(value: time) -> str:
    """12h display format used on time pills.

    Examples:
        >>> format_time_display(time(9, 0))
        '9:00 AM'
        >>> format_time_display(time(12, 30))
        '12:30 PM'
        >>> format_time_display(time(0, 15))
        '12:15 AM'
    """
    period = "PM" if value.hour >= 12 else "AM"
    hour12 = value.hour % 12 or 12
    return f"{hour12}:{value.minute:02d} {period}"


def format_day_display(value: date) -> str:
    """Short day label used on day pills, e.g. ``"Mon, Jun 3"``."""
    return f"{value.strftime('%a, %b')} {value.day}"


def format_long_date(value: date) -> str:
    """Long date used in chat copy, e.g. ``"Monday, June 3"``."""
    return f"{value.strftime('%A, %B')} {value.day}"


def weekday_index(value: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return value.isoweekday() % 7

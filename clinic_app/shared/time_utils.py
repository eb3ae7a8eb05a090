"""Clock-time and weekday helpers.

Times are ``HH:MM`` strings on a 24h clock, converted to minutes since
midnight for arithmetic. Weekdays are ordinals with Sunday = 0.
"""

import re
from datetime import date, datetime

from ..exceptions import InvalidFormat

WEEKDAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def time_to_minutes(value: str) -> int:
    """
    Convert ``HH:MM`` to minutes since midnight.

    >>> time_to_minutes("14:30")
    870
    """
    if not isinstance(value, str):
        raise InvalidFormat(f"Invalid time value: {value!r}")

    match = _CLOCK_PATTERN.match(value.strip())
    if not match:
        raise InvalidFormat(f"Invalid time format '{value}', expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidFormat(f"Time out of range: '{value}'")

    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """
    Convert minutes since midnight back to zero-padded ``HH:MM``.

    >>> minutes_to_time(870)
    '14:30'
    """
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidFormat(f"Minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_name(ordinal: int) -> str:
    """Weekday ordinal (Sunday = 0) to lowercase English name"""
    if not isinstance(ordinal, int) or not 0 <= ordinal <= 6:
        raise InvalidFormat(f"Weekday ordinal must be between 0 and 6, got {ordinal!r}")
    return WEEKDAY_NAMES[ordinal]


def weekday_ordinal(name: str) -> int:
    """Weekday name (case-insensitive) to ordinal, Sunday = 0"""
    try:
        return WEEKDAY_NAMES.index(name.strip().lower())
    except (ValueError, AttributeError):
        raise InvalidFormat(f"Unknown weekday: {name!r}") from None


def weekday_of(day: date) -> int:
    """Sunday-based weekday ordinal of a calendar date"""
    # date.weekday() is Monday-based
    return (day.weekday() + 1) % 7


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open intervals [a_start, a_end) and [b_start, b_end) overlap; touching does not count"""
    return a_start < b_end and b_start < a_end

"""Shared validation utilities"""

from typing import Optional, Union

from ..exceptions import InvalidFormat
from .time_utils import minutes_to_time, time_to_minutes, weekday_ordinal


def validate_clock_time(value: Optional[str]) -> Optional[str]:
    """
    Validate a ``HH:MM`` clock time for use in pydantic validators.

    Returns:
        The normalized time string

    Raises:
        ValueError: If the time is malformed
    """
    if value is None:
        return value

    try:
        return minutes_to_time(time_to_minutes(value))
    except InvalidFormat as e:
        raise ValueError(e.message) from None


def validate_weekday(value: Union[int, str, None]) -> Optional[int]:
    """
    Accept a weekday as ordinal (0-6, Sunday = 0), numeric string or English name.

    Raises:
        ValueError: If the weekday is not recognised
    """
    if value is None:
        return value

    if isinstance(value, bool):
        raise ValueError("Weekday must be an ordinal or a day name")

    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())

    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise ValueError("Weekday ordinal must be between 0 (Sunday) and 6 (Saturday)")
        return value

    try:
        return weekday_ordinal(value)
    except InvalidFormat as e:
        raise ValueError(e.message) from None

"""Shared validation utilities"""

import re
from collections.abc import Iterable
from datetime import datetime, time

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_time_of_day(value: str) -> str:
    """
    Validate a wall-clock time string.

    Args:
        value: Time in 24h HH:MM format (e.g. "09:30")

    Returns:
        The same string, unchanged

    Raises:
        ValueError: If the value is not a valid HH:MM time
    """
    if not isinstance(value, str) or not TIME_OF_DAY_PATTERN.match(value):
        raise ValueError("Must be in HH:mm format")
    return value


def parse_time_of_day(value: str) -> time:
    """Parse an HH:MM string into a datetime.time"""
    validate_time_of_day(value)
    return datetime.strptime(value, "%H:%M").time()


def validate_weekday(value: int) -> int:
    """
    Validate a weekday index.

    Weekdays are numbered 0=Sunday through 6=Saturday throughout the API.

    Raises:
        ValueError: If the value is not an integer in 0-6
    """
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise ValueError("Day of week must be an integer from 0 (Sunday) to 6 (Saturday)")
    return value


def validate_weekdays(values: Iterable[int]) -> frozenset[int]:
    """Validate a collection of weekday indexes and return them as a set"""
    return frozenset(validate_weekday(v) for v in values)

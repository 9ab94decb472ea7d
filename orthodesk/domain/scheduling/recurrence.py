"""
Recurrence Expander

Expands a recurring series definition into concrete calendar occurrences.

Each recurrence pattern has its own definition type carrying only the fields
that pattern needs, and every type validates itself on construction, so any
definition that exists can be expanded. build_definition() maps the flat
fields used by the API and the database onto the right type.

Expansion walks the calendar one day at a time from start_date and stops at
whichever bound is hit first:
    - the effective end date (end_date, or start_date + 90 days)
    - the effective max count (max_occurrences, or 52)

Weekdays are numbered 0=Sunday .. 6=Saturday. Dates are clinic-local calendar
dates; times are HH:MM strings carried through unchanged.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import ClassVar, Optional

from ...config import RECURRENCE_DEFAULT_HORIZON_DAYS, RECURRENCE_DEFAULT_MAX_OCCURRENCES
from ...shared.validators import validate_time_of_day, validate_weekday, validate_weekdays

LAST_WEEK_OF_MONTH = -1


class RecurrencePattern(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class OccurrenceStatus(str, Enum):
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    MODIFIED = "MODIFIED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


class RecurrenceValidationError(ValueError):
    """Raised when a recurrence definition is incomplete or out of range"""


def weekday_index(day: date) -> int:
    """Weekday of a date as 0=Sunday .. 6=Saturday"""
    return day.isoweekday() % 7


def matches_week_cycle(
    day: date, anchor: date, weekdays: Iterable[int], every_n_weeks: int
) -> bool:
    """
    True when day falls on one of weekdays, in a week that is a multiple of
    every_n_weeks after anchor.

    Weeks are counted as whole 7-day blocks from anchor, not calendar weeks:
    with anchor on a Tuesday, the following Monday is still week 0.
    """
    if weekday_index(day) not in weekdays:
        return False
    weeks_since_anchor = (day - anchor).days // 7
    return weeks_since_anchor % every_n_weeks == 0


def nth_weekday_of_month(year: int, month: int, weekday: int, week_of_month: int) -> date:
    """
    Date of the 1st..4th (or last, -1) given weekday in a month.

    Example: nth_weekday_of_month(2025, 1, 5, -1) -> 2025-01-31 (last Friday)
    """
    first_of_month = date(year, month, 1)
    target = first_of_month + timedelta(days=(weekday - weekday_index(first_of_month)) % 7)

    if week_of_month == LAST_WEEK_OF_MONTH:
        while (target + timedelta(days=7)).month == month:
            target += timedelta(days=7)
        return target

    return target + timedelta(weeks=week_of_month - 1)


@dataclass(frozen=True)
class Occurrence:
    """One concrete date generated from a series"""

    occurrence_number: int
    scheduled_date: date
    scheduled_time: str
    status: OccurrenceStatus = OccurrenceStatus.PENDING


@dataclass(frozen=True, kw_only=True)
class RecurrenceDefinition:
    """Bounds shared by every pattern; subclasses decide which days are included"""

    pattern: ClassVar[RecurrencePattern]

    start_date: date
    preferred_time: str
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None

    def __post_init__(self):
        try:
            validate_time_of_day(self.preferred_time)
        except ValueError as e:
            raise RecurrenceValidationError(f"Preferred time: {e}") from None

        if self.end_date is not None and self.end_date < self.start_date:
            raise RecurrenceValidationError("End date must be on or after start date")

        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise RecurrenceValidationError("Max occurrences must be positive")

    @property
    def effective_end_date(self) -> date:
        if self.end_date is not None:
            return self.end_date
        return self.start_date + timedelta(days=RECURRENCE_DEFAULT_HORIZON_DAYS)

    @property
    def effective_max_occurrences(self) -> int:
        if self.max_occurrences is not None:
            return self.max_occurrences
        return RECURRENCE_DEFAULT_MAX_OCCURRENCES

    def includes(self, day: date) -> bool:
        raise NotImplementedError


def _checked_weekday(value, label: str) -> int:
    try:
        return validate_weekday(value)
    except ValueError as e:
        raise RecurrenceValidationError(f"{label}: {e}") from None


def _checked_weekdays(values, message: str) -> frozenset[int]:
    try:
        days = validate_weekdays(values or ())
    except ValueError as e:
        raise RecurrenceValidationError(f"Days of week: {e}") from None
    if not days:
        raise RecurrenceValidationError(message)
    return days


@dataclass(frozen=True, kw_only=True)
class DailyRecurrence(RecurrenceDefinition):
    pattern = RecurrencePattern.DAILY

    def includes(self, day: date) -> bool:
        return True


@dataclass(frozen=True, kw_only=True)
class WeeklyRecurrence(RecurrenceDefinition):
    pattern = RecurrencePattern.WEEKLY

    days_of_week: frozenset[int]

    def __post_init__(self):
        super().__post_init__()
        days = _checked_weekdays(
            self.days_of_week, "Weekly pattern requires at least one day selected"
        )
        object.__setattr__(self, "days_of_week", days)

    def includes(self, day: date) -> bool:
        return matches_week_cycle(day, self.start_date, self.days_of_week, 1)


@dataclass(frozen=True, kw_only=True)
class BiweeklyRecurrence(RecurrenceDefinition):
    pattern = RecurrencePattern.BIWEEKLY

    day_of_week: int

    def __post_init__(self):
        super().__post_init__()
        _checked_weekday(self.day_of_week, "Biweekly pattern preferred day")

    def includes(self, day: date) -> bool:
        return matches_week_cycle(day, self.start_date, (self.day_of_week,), 2)


@dataclass(frozen=True, kw_only=True)
class MonthlyDayRecurrence(RecurrenceDefinition):
    """Same calendar day every month; months without that day are skipped"""

    pattern = RecurrencePattern.MONTHLY

    day_of_month: int

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int):
            raise RecurrenceValidationError("Day of month must be an integer")
        if not 1 <= self.day_of_month <= 31:
            raise RecurrenceValidationError("Day of month must be between 1 and 31")

    def includes(self, day: date) -> bool:
        return day.day == self.day_of_month


@dataclass(frozen=True, kw_only=True)
class MonthlyWeekdayRecurrence(RecurrenceDefinition):
    """Nth (or last) given weekday of every month, e.g. second Tuesday"""

    pattern = RecurrencePattern.MONTHLY

    week_of_month: int
    day_of_week: int

    def __post_init__(self):
        super().__post_init__()
        if self.week_of_month not in (1, 2, 3, 4, LAST_WEEK_OF_MONTH):
            raise RecurrenceValidationError("Week of month must be 1-4, or -1 for last")
        _checked_weekday(self.day_of_week, "Monthly pattern preferred day")

    def includes(self, day: date) -> bool:
        target = nth_weekday_of_month(day.year, day.month, self.day_of_week, self.week_of_month)
        return day == target


@dataclass(frozen=True, kw_only=True)
class CustomRecurrence(RecurrenceDefinition):
    """Selected weekdays, every `interval` weeks counted from start_date"""

    pattern = RecurrencePattern.CUSTOM

    interval: int
    days_of_week: frozenset[int]

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise RecurrenceValidationError("Interval must be an integer")
        if self.interval < 1:
            raise RecurrenceValidationError("Interval must be positive")
        days = _checked_weekdays(
            self.days_of_week, "Custom pattern requires at least one day selected"
        )
        object.__setattr__(self, "days_of_week", days)

    def includes(self, day: date) -> bool:
        return matches_week_cycle(day, self.start_date, self.days_of_week, self.interval)


def build_definition(
    pattern,
    *,
    start_date: date,
    preferred_time: str,
    end_date: Optional[date] = None,
    max_occurrences: Optional[int] = None,
    interval: Optional[int] = None,
    days_of_week: Optional[Iterable[int]] = None,
    day_of_month: Optional[int] = None,
    week_of_month: Optional[int] = None,
    preferred_day_of_week: Optional[int] = None,
) -> RecurrenceDefinition:
    """
    Build the definition type for a pattern from flat fields.

    Fields the pattern does not use are ignored. Missing required fields raise
    RecurrenceValidationError instead of producing an empty series.

    Raises:
        RecurrenceValidationError: unknown pattern, missing or invalid fields
    """
    try:
        pattern = RecurrencePattern(pattern)
    except ValueError:
        raise RecurrenceValidationError(f"Unknown recurrence pattern: {pattern}") from None

    bounds = {
        "start_date": start_date,
        "preferred_time": preferred_time,
        "end_date": end_date,
        "max_occurrences": max_occurrences,
    }

    if pattern == RecurrencePattern.DAILY:
        return DailyRecurrence(**bounds)

    if pattern == RecurrencePattern.WEEKLY:
        return WeeklyRecurrence(days_of_week=days_of_week or (), **bounds)

    if pattern == RecurrencePattern.BIWEEKLY:
        if preferred_day_of_week is None:
            raise RecurrenceValidationError("Biweekly pattern requires a preferred day of week")
        return BiweeklyRecurrence(day_of_week=preferred_day_of_week, **bounds)

    if pattern == RecurrencePattern.MONTHLY:
        if day_of_month is not None and week_of_month is not None:
            raise RecurrenceValidationError(
                "Monthly pattern takes either a day of month or a week of month, not both"
            )
        if day_of_month is not None:
            return MonthlyDayRecurrence(day_of_month=day_of_month, **bounds)
        if week_of_month is not None:
            if preferred_day_of_week is None:
                raise RecurrenceValidationError(
                    "Monthly week-of-month pattern requires a preferred day of week"
                )
            return MonthlyWeekdayRecurrence(
                week_of_month=week_of_month, day_of_week=preferred_day_of_week, **bounds
            )
        raise RecurrenceValidationError("Monthly pattern requires day of month or week of month")

    if interval is None:
        raise RecurrenceValidationError("Custom pattern requires an interval")
    return CustomRecurrence(interval=interval, days_of_week=days_of_week or (), **bounds)


def expand(definition: RecurrenceDefinition) -> Iterator[Occurrence]:
    """
    Yield the occurrences of a series in date order.

    Numbers start at 1 and increase by one per included date. The walk
    advances one calendar day per step, so cost is linear in the number of
    days between start_date and the effective end date.
    """
    end_date = definition.effective_end_date
    max_count = definition.effective_max_occurrences

    current = definition.start_date
    count = 0

    while current <= end_date and count < max_count:
        if definition.includes(current):
            count += 1
            yield Occurrence(
                occurrence_number=count,
                scheduled_date=current,
                scheduled_time=definition.preferred_time,
            )
        current += timedelta(days=1)

from datetime import date

import pytest

from orthodesk.domain.scheduling.recurrence import (
    BiweeklyRecurrence,
    CustomRecurrence,
    DailyRecurrence,
    MonthlyWeekdayRecurrence,
    OccurrenceStatus,
    RecurrenceValidationError,
    WeeklyRecurrence,
    build_definition,
    expand,
    nth_weekday_of_month,
    weekday_index,
)


def dates_of(definition):
    return [occ.scheduled_date for occ in expand(definition)]


# ============================================================================
# CALENDAR HELPERS
# ============================================================================


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2025, 1, 5)) == 0  # Sunday
    assert weekday_index(date(2025, 1, 6)) == 1  # Monday
    assert weekday_index(date(2025, 1, 11)) == 6  # Saturday


def test_nth_weekday_of_month():
    assert nth_weekday_of_month(2025, 1, 2, 2) == date(2025, 1, 14)  # second Tuesday
    assert nth_weekday_of_month(2025, 1, 3, 1) == date(2025, 1, 1)  # first Wednesday is the 1st
    assert nth_weekday_of_month(2025, 1, 5, -1) == date(2025, 1, 31)  # last Friday
    assert nth_weekday_of_month(2025, 2, 5, -1) == date(2025, 2, 28)


# ============================================================================
# EXPANSION BY PATTERN
# ============================================================================


def test_daily_includes_both_ends():
    definition = build_definition(
        "DAILY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 5),
        preferred_time="09:00",
    )

    occurrences = list(expand(definition))

    assert [o.occurrence_number for o in occurrences] == [1, 2, 3, 4, 5]
    assert occurrences[0].scheduled_date == date(2025, 1, 1)
    assert occurrences[-1].scheduled_date == date(2025, 1, 5)
    assert all(o.scheduled_time == "09:00" for o in occurrences)
    assert all(o.status == OccurrenceStatus.PENDING for o in occurrences)


def test_weekly_selected_days():
    definition = build_definition(
        "WEEKLY",
        start_date=date(2025, 1, 6),
        end_date=date(2025, 1, 19),
        preferred_time="15:30",
        days_of_week=[1, 3],
    )

    assert dates_of(definition) == [
        date(2025, 1, 6),
        date(2025, 1, 8),
        date(2025, 1, 13),
        date(2025, 1, 15),
    ]


def test_biweekly_every_other_week():
    definition = build_definition(
        "BIWEEKLY",
        start_date=date(2025, 1, 7),
        end_date=date(2025, 2, 4),
        preferred_time="10:00",
        preferred_day_of_week=2,
    )

    assert dates_of(definition) == [date(2025, 1, 7), date(2025, 1, 21), date(2025, 2, 4)]


def test_biweekly_weeks_are_counted_from_start_date():
    # Start on a Wednesday: the following Tuesday is still in week 0
    definition = BiweeklyRecurrence(
        start_date=date(2025, 1, 8),
        end_date=date(2025, 2, 1),
        preferred_time="10:00",
        day_of_week=2,
    )

    assert dates_of(definition) == [date(2025, 1, 14), date(2025, 1, 28)]


def test_monthly_last_friday():
    definition = build_definition(
        "MONTHLY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 31),
        preferred_time="08:00",
        week_of_month=-1,
        preferred_day_of_week=5,
    )

    assert dates_of(definition) == [date(2025, 1, 31)]


def test_monthly_second_tuesday_across_months():
    definition = MonthlyWeekdayRecurrence(
        start_date=date(2025, 1, 1),
        end_date=date(2025, 3, 31),
        preferred_time="08:00",
        week_of_month=2,
        day_of_week=2,
    )

    assert dates_of(definition) == [date(2025, 1, 14), date(2025, 2, 11), date(2025, 3, 11)]


def test_monthly_day_skips_short_months():
    definition = build_definition(
        "MONTHLY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 5, 31),
        preferred_time="11:00",
        day_of_month=31,
    )

    assert dates_of(definition) == [date(2025, 1, 31), date(2025, 3, 31), date(2025, 5, 31)]


def test_custom_every_three_weeks():
    definition = CustomRecurrence(
        start_date=date(2025, 1, 6),
        end_date=date(2025, 3, 3),
        preferred_time="14:00",
        interval=3,
        days_of_week=[1],
    )

    assert dates_of(definition) == [date(2025, 1, 6), date(2025, 1, 27), date(2025, 2, 17)]


def test_custom_interval_one_matches_weekly():
    kwargs = dict(start_date=date(2025, 1, 1), end_date=date(2025, 2, 28), preferred_time="09:00")

    weekly = WeeklyRecurrence(days_of_week=[2, 4], **kwargs)
    custom = CustomRecurrence(interval=1, days_of_week=[2, 4], **kwargs)

    assert dates_of(weekly) == dates_of(custom)


# ============================================================================
# BOUNDS
# ============================================================================


def test_max_occurrences_stops_early():
    definition = DailyRecurrence(
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        preferred_time="09:00",
        max_occurrences=3,
    )

    assert dates_of(definition) == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]


def test_default_max_occurrences_caps_daily_series():
    definition = DailyRecurrence(start_date=date(2025, 1, 1), preferred_time="09:00")

    assert len(dates_of(definition)) == 52


def test_default_horizon_is_ninety_days_from_start():
    definition = WeeklyRecurrence(
        start_date=date(2025, 1, 6), preferred_time="09:00", days_of_week=[1]
    )

    result = dates_of(definition)

    assert definition.effective_end_date == date(2025, 4, 6)
    assert len(result) == 13
    assert result[-1] == date(2025, 3, 31)


def test_single_day_series():
    definition = DailyRecurrence(
        start_date=date(2025, 1, 1), end_date=date(2025, 1, 1), preferred_time="09:00"
    )

    assert dates_of(definition) == [date(2025, 1, 1)]


@pytest.mark.parametrize(
    "pattern, fields",
    [
        ("DAILY", {}),
        ("WEEKLY", {"days_of_week": [0, 3, 6]}),
        ("BIWEEKLY", {"preferred_day_of_week": 4}),
        ("MONTHLY", {"day_of_month": 31}),
        ("MONTHLY", {"week_of_month": -1, "preferred_day_of_week": 5}),
        ("MONTHLY", {"week_of_month": 1, "preferred_day_of_week": 1}),
        ("CUSTOM", {"interval": 3, "days_of_week": [2, 5]}),
    ],
)
@pytest.mark.parametrize(
    "end_date, max_occurrences",
    [
        (date(2025, 6, 30), None),
        (None, None),
        (None, 5),
        (date(2025, 1, 20), 2),
    ],
)
def test_every_pattern_stays_in_bounds_with_gapless_numbers(
    pattern, fields, end_date, max_occurrences
):
    definition = build_definition(
        pattern,
        start_date=date(2025, 1, 15),
        preferred_time="14:45",
        end_date=end_date,
        max_occurrences=max_occurrences,
        **fields,
    )

    occurrences = list(expand(definition))

    assert len(occurrences) <= definition.effective_max_occurrences
    assert [o.occurrence_number for o in occurrences] == list(range(1, len(occurrences) + 1))
    scheduled = [o.scheduled_date for o in occurrences]
    assert scheduled == sorted(set(scheduled))
    for occurrence in occurrences:
        assert definition.start_date <= occurrence.scheduled_date <= definition.effective_end_date
        assert definition.includes(occurrence.scheduled_date)
        assert occurrence.scheduled_time == "14:45"
        assert occurrence.status == OccurrenceStatus.PENDING


def test_expand_is_restartable():
    definition = DailyRecurrence(
        start_date=date(2025, 1, 1), end_date=date(2025, 1, 3), preferred_time="09:00"
    )

    assert list(expand(definition)) == list(expand(definition))


# ============================================================================
# VALIDATION
# ============================================================================


@pytest.mark.parametrize(
    "pattern, fields",
    [
        ("WEEKLY", {"days_of_week": []}),
        ("WEEKLY", {"days_of_week": [7]}),
        ("BIWEEKLY", {}),
        ("MONTHLY", {}),
        ("MONTHLY", {"day_of_month": 15, "week_of_month": 2, "preferred_day_of_week": 1}),
        ("MONTHLY", {"week_of_month": 2}),
        ("MONTHLY", {"week_of_month": 5, "preferred_day_of_week": 1}),
        ("MONTHLY", {"day_of_month": 32}),
        ("CUSTOM", {"interval": 0, "days_of_week": [1]}),
        ("CUSTOM", {"interval": 2, "days_of_week": []}),
        ("YEARLY", {}),
    ],
)
def test_incomplete_or_invalid_pattern_fields_are_rejected(pattern, fields):
    with pytest.raises(RecurrenceValidationError):
        build_definition(pattern, start_date=date(2025, 1, 1), preferred_time="09:00", **fields)


def test_end_before_start_is_rejected():
    with pytest.raises(RecurrenceValidationError):
        DailyRecurrence(
            start_date=date(2025, 1, 10), end_date=date(2025, 1, 9), preferred_time="09:00"
        )


def test_non_positive_max_occurrences_is_rejected():
    with pytest.raises(RecurrenceValidationError):
        DailyRecurrence(start_date=date(2025, 1, 1), preferred_time="09:00", max_occurrences=0)


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon"])
def test_bad_preferred_time_is_rejected(value):
    with pytest.raises(RecurrenceValidationError):
        DailyRecurrence(start_date=date(2025, 1, 1), preferred_time=value)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        build_definition("WEEKLY", start_date=date(2025, 1, 1), preferred_time="09:00")


def test_unused_fields_are_ignored():
    definition = build_definition(
        "DAILY",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 2),
        preferred_time="09:00",
        days_of_week=[1],
        interval=4,
        day_of_month=9,
    )

    assert isinstance(definition, DailyRecurrence)
    assert len(dates_of(definition)) == 2

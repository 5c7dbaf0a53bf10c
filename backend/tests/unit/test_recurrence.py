# backend/tests/unit/test_recurrence.py
"""
Unit tests for the recurrence date generator.

Pure functions only; no database.
"""

from datetime import date, datetime, time

import pytest

from app.core.enums import ScheduleFrequency
from app.domain.recurrence import (
    generate_recurrence_dates,
    nth_weekday_of_month,
    sunday_weekday,
)
from app.domain.schedule_types import ScheduleRuleSpec


def _rule(**overrides) -> ScheduleRuleSpec:
    fields = {
        "id": "rule-1",
        "doctor_id": "doc-1",
        "frequency": ScheduleFrequency.WEEKLY,
        "start_time": time(9, 0),
        "end_time": time(11, 0),
        "slot_duration": 60,
        "start_date": date(2024, 1, 1),
    }
    fields.update(overrides)
    return ScheduleRuleSpec(**fields)


class TestWeekdayHelpers:
    def test_sunday_is_zero(self):
        assert sunday_weekday(date(2024, 1, 7)) == 0  # Sunday
        assert sunday_weekday(date(2024, 1, 1)) == 1  # Monday
        assert sunday_weekday(date(2024, 1, 6)) == 6  # Saturday

    def test_first_monday(self):
        assert nth_weekday_of_month(2024, 1, 1, 1) == date(2024, 1, 1)

    def test_last_friday(self):
        assert nth_weekday_of_month(2024, 1, 5, -1) == date(2024, 1, 26)

    def test_second_to_last_sunday(self):
        # Sundays in March 2024: 3, 10, 17, 24, 31
        assert nth_weekday_of_month(2024, 3, 0, -2) == date(2024, 3, 24)

    def test_out_of_range_position_yields_nothing(self):
        # February 2024 has only four Mondays
        assert nth_weekday_of_month(2024, 2, 1, 5) is None
        assert nth_weekday_of_month(2024, 2, 1, -5) is None


class TestWeekly:
    """Weekly cadence is anchored to the rule start, never to the window."""

    def test_concrete_mon_wed_window(self):
        rule = _rule(by_week_day=(1, 3))
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 1, 14))
        assert dates == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10)]

    def test_interval_two_from_rule_start(self):
        rule = _rule(interval=2, by_week_day=(1,))
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 2, 29))
        assert dates == [
            date(2024, 1, 1),
            date(2024, 1, 15),
            date(2024, 1, 29),
            date(2024, 2, 12),
            date(2024, 2, 26),
        ]

    def test_shifted_window_keeps_cadence(self):
        rule = _rule(interval=2, by_week_day=(1,))
        dates = generate_recurrence_dates(rule, date(2024, 1, 4), date(2024, 2, 29))
        assert dates == [date(2024, 1, 15), date(2024, 1, 29), date(2024, 2, 12), date(2024, 2, 26)]

        later = generate_recurrence_dates(rule, date(2024, 1, 10), date(2024, 1, 31))
        assert later == [date(2024, 1, 15), date(2024, 1, 29)]

    def test_empty_weekdays_means_every_day(self):
        rule = _rule(by_week_day=())
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 1, 7))
        assert len(dates) == 7

    def test_datetime_bounds_are_normalized(self):
        rule = _rule(by_week_day=(1,))
        dates = generate_recurrence_dates(
            rule, datetime(2024, 1, 1, 15, 30), datetime(2024, 1, 8, 0, 1)
        )
        assert dates == [date(2024, 1, 1), date(2024, 1, 8)]

    def test_rule_end_date_is_inclusive(self):
        rule = _rule(by_week_day=(1, 3), end_date=date(2024, 1, 8))
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 3, 1))
        assert dates == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8)]

    def test_window_before_rule_start_is_clamped(self):
        rule = _rule(start_date=date(2024, 1, 8), by_week_day=(1,))
        dates = generate_recurrence_dates(rule, date(2023, 12, 1), date(2024, 1, 15))
        assert dates == [date(2024, 1, 8), date(2024, 1, 15)]

    def test_empty_effective_window(self):
        rule = _rule(end_date=date(2024, 1, 5))
        assert generate_recurrence_dates(rule, date(2024, 2, 1), date(2024, 3, 1)) == []

    def test_inverted_window(self):
        rule = _rule()
        assert generate_recurrence_dates(rule, date(2024, 3, 1), date(2024, 2, 1)) == []


class TestBiweeklyAndCustom:
    def test_biweekly_forces_interval_two(self):
        biweekly = _rule(frequency=ScheduleFrequency.BIWEEKLY, interval=3, by_week_day=(1,))
        weekly_two = _rule(interval=2, by_week_day=(1,))
        window = (date(2024, 1, 1), date(2024, 3, 31))
        assert generate_recurrence_dates(biweekly, *window) == generate_recurrence_dates(
            weekly_two, *window
        )

    def test_custom_falls_back_to_weekly(self):
        custom = _rule(frequency=ScheduleFrequency.CUSTOM, interval=3, by_week_day=(2, 4))
        weekly = _rule(interval=3, by_week_day=(2, 4))
        window = (date(2024, 1, 1), date(2024, 4, 30))
        assert generate_recurrence_dates(custom, *window) == generate_recurrence_dates(
            weekly, *window
        )


class TestMonthly:
    def test_clamps_original_day_leap_year(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, start_date=date(2024, 1, 31))
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 5, 31))
        assert dates == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
            date(2024, 5, 31),
        ]

    def test_clamps_original_day_common_year(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, start_date=date(2023, 1, 31))
        dates = generate_recurrence_dates(rule, date(2023, 2, 1), date(2023, 2, 28))
        assert dates == [date(2023, 2, 28)]

    def test_by_month_day_skips_invalid_days(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, by_month_day=(15, 31))
        dates = generate_recurrence_dates(rule, date(2024, 2, 1), date(2024, 3, 31))
        assert dates == [date(2024, 2, 15), date(2024, 3, 15), date(2024, 3, 31)]

    def test_nth_weekday_selector(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, by_week_day=(1,), by_set_pos=1)
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 3, 31))
        assert dates == [date(2024, 1, 1), date(2024, 2, 5), date(2024, 3, 4)]

    def test_last_weekday_selector(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, by_week_day=(5,), by_set_pos=-1)
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 2, 29))
        assert dates == [date(2024, 1, 26), date(2024, 2, 23)]

    def test_weekdays_without_set_pos_fall_back_to_start_day(self):
        rule = _rule(
            frequency=ScheduleFrequency.MONTHLY, start_date=date(2024, 1, 10), by_week_day=(1,)
        )
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 2, 29))
        assert dates == [date(2024, 1, 10), date(2024, 2, 10)]

    def test_interval_anchored_to_start_month(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, interval=2, start_date=date(2024, 1, 15))
        dates = generate_recurrence_dates(rule, date(2024, 2, 1), date(2024, 6, 30))
        assert dates == [date(2024, 3, 15), date(2024, 5, 15)]

    def test_window_bounds_filter_month_days(self):
        rule = _rule(frequency=ScheduleFrequency.MONTHLY, by_month_day=(1, 20))
        dates = generate_recurrence_dates(rule, date(2024, 1, 10), date(2024, 2, 10))
        assert dates == [date(2024, 1, 20), date(2024, 2, 1)]

    def test_respects_rule_end_date(self):
        rule = _rule(
            frequency=ScheduleFrequency.MONTHLY,
            by_month_day=(5, 25),
            end_date=date(2024, 2, 10),
        )
        dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 6, 30))
        assert dates == [date(2024, 1, 5), date(2024, 1, 25), date(2024, 2, 5)]


@pytest.mark.parametrize(
    "frequency",
    [ScheduleFrequency.WEEKLY, ScheduleFrequency.BIWEEKLY, ScheduleFrequency.MONTHLY],
)
def test_output_is_sorted_and_unique(frequency):
    rule = _rule(frequency=frequency, by_week_day=(0, 1, 2, 3, 4, 5, 6))
    dates = generate_recurrence_dates(rule, date(2024, 1, 1), date(2024, 4, 30))
    assert dates == sorted(set(dates))

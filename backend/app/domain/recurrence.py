# backend/app/domain/recurrence.py
"""
Recurrence date generator.

Turns a ScheduleRuleSpec plus an inclusive window into the ascending,
de-duplicated list of calendar dates on which the rule fires. Cadence is
always anchored to the rule's own start date, never to the window, so a
shifted window cannot move which weeks or months are on-cadence.

Weekday ordinals follow the Sunday=0 convention stored on rules.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from ..core.enums import ScheduleFrequency
from .schedule_types import ScheduleRuleSpec

DateLike = Union[date, datetime]

BIWEEKLY_INTERVAL = 2


def _as_date(value: DateLike) -> date:
    """Normalize to midnight (a plain date)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def sunday_weekday(day: date) -> int:
    """Weekday with Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7


def month_index(day: date) -> int:
    return day.year * 12 + (day.month - 1)


def _from_month_index(index: int) -> tuple[int, int]:
    year, month0 = divmod(index, 12)
    return year, month0 + 1


def nth_weekday_of_month(year: int, month: int, weekday: int, set_pos: int) -> Optional[date]:
    """
    Return the Nth occurrence of ``weekday`` (Sunday=0) in the month.

    Positive ``set_pos`` counts from the start (1 = first), negative from the
    end (-1 = last). Out-of-range positions return None.
    """
    days_in_month = calendar.monthrange(year, month)[1]
    matches = [
        date(year, month, day)
        for day in range(1, days_in_month + 1)
        if sunday_weekday(date(year, month, day)) == weekday
    ]
    if set_pos > 0 and set_pos <= len(matches):
        return matches[set_pos - 1]
    if set_pos < 0 and -set_pos <= len(matches):
        return matches[len(matches) + set_pos]
    return None


def effective_bounds(
    rule: ScheduleRuleSpec, window_start: DateLike, window_end: DateLike
) -> tuple[date, date]:
    """Intersect the window with the rule's own start/end dates."""
    start = _as_date(window_start)
    end = _as_date(window_end)
    if rule.start_date and rule.start_date > start:
        start = rule.start_date
    if rule.end_date and rule.end_date < end:
        end = rule.end_date
    return start, end


def _anchor(rule: ScheduleRuleSpec, window_start: date) -> date:
    return rule.start_date or window_start


def _weekly_dates(
    rule: ScheduleRuleSpec, start: date, end: date, anchor: date, interval: int
) -> List[date]:
    weekdays: Set[int] = set(rule.by_week_day)
    dates: List[date] = []
    current = start
    while current <= end:
        days_since_start = (current - anchor).days
        week_number = days_since_start // 7
        if week_number % interval == 0 and (not weekdays or sunday_weekday(current) in weekdays):
            dates.append(current)
        current += timedelta(days=1)
    return dates


def _monthly_dates(rule: ScheduleRuleSpec, start: date, end: date, anchor: date) -> List[date]:
    interval = rule.interval
    anchor_index = month_index(anchor)
    start_index = month_index(start)
    end_index = month_index(end)

    months_since_anchor = max(0, start_index - anchor_index)
    remainder = months_since_anchor % interval
    if remainder:
        months_since_anchor += interval - remainder

    dates: List[date] = []
    current_index = anchor_index + months_since_anchor
    while current_index <= end_index:
        year, month = _from_month_index(current_index)
        days_in_month = calendar.monthrange(year, month)[1]

        if rule.by_month_day:
            candidates = [date(year, month, day) for day in rule.by_month_day if day <= days_in_month]
        elif rule.by_week_day and rule.by_set_pos:
            candidates = []
            for weekday in rule.by_week_day:
                found = nth_weekday_of_month(year, month, weekday, rule.by_set_pos)
                if found is not None:
                    candidates.append(found)
        else:
            candidates = [date(year, month, min(anchor.day, days_in_month))]

        dates.extend(day for day in candidates if start <= day <= end)
        current_index += interval
    return dates


def _generate_weekly(rule: ScheduleRuleSpec, start: date, end: date, anchor: date) -> List[date]:
    return _weekly_dates(rule, start, end, anchor, rule.interval)


def _generate_biweekly(rule: ScheduleRuleSpec, start: date, end: date, anchor: date) -> List[date]:
    # Fixed cadence; the stored interval is ignored.
    return _weekly_dates(rule, start, end, anchor, BIWEEKLY_INTERVAL)


def _generate_custom(rule: ScheduleRuleSpec, start: date, end: date, anchor: date) -> List[date]:
    # Custom recurrences are not defined yet; evaluate as weekly.
    return _weekly_dates(rule, start, end, anchor, rule.interval)


_GENERATORS: Dict[ScheduleFrequency, Callable[[ScheduleRuleSpec, date, date, date], List[date]]] = {
    ScheduleFrequency.WEEKLY: _generate_weekly,
    ScheduleFrequency.BIWEEKLY: _generate_biweekly,
    ScheduleFrequency.MONTHLY: _monthly_dates,
    ScheduleFrequency.CUSTOM: _generate_custom,
}


def generate_recurrence_dates(
    rule: ScheduleRuleSpec, window_start: DateLike, window_end: DateLike
) -> List[date]:
    """
    Dates in ``[window_start, window_end]`` on which ``rule`` fires.

    Args:
        rule: Validated rule snapshot
        window_start: Inclusive window start (datetimes are truncated to the day)
        window_end: Inclusive window end

    Returns:
        Ascending, de-duplicated list of dates. Empty when the effective
        window is empty.
    """
    start, end = effective_bounds(rule, window_start, window_end)
    if start > end:
        return []

    anchor = _anchor(rule, _as_date(window_start))
    generator = _GENERATORS[rule.frequency]
    dates = generator(rule, start, end, anchor)
    return _sorted_unique(dates)


def _sorted_unique(dates: Iterable[date]) -> List[date]:
    return sorted(set(dates))

# backend/app/domain/slot_materializer.py
"""
Slice a daily time window into fixed-length slot candidates.

Slots that would run past the window end are dropped, never clipped.
Times are naive wall-clock values in the clinic timezone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from ..core.enums import AppointmentType, SlotOriginType
from .recurrence import generate_recurrence_dates
from .schedule_exceptions import ExceptionIndex
from .schedule_types import (
    EXCEPTION_PRIORITY,
    RULE_PRIORITY,
    OneTimeSlotException,
    ScheduleRuleSpec,
    SlotCandidate,
)

DEFAULT_ONE_TIME_APPOINTMENT_TYPE = AppointmentType.VIDEO.value


def slice_window(day: date, start: time, end: time, duration_minutes: int) -> List[tuple[datetime, datetime]]:
    """Return ``[cursor, cursor + duration)`` intervals that fit inside the window."""
    if duration_minutes <= 0:
        raise ValueError("slot duration must be positive")

    step = timedelta(minutes=duration_minutes)
    cursor = datetime.combine(day, start)
    window_end = datetime.combine(day, end)
    intervals = []
    while cursor + step <= window_end:
        intervals.append((cursor, cursor + step))
        cursor += step
    return intervals


def materialize_rule_day(
    rule: ScheduleRuleSpec,
    day: date,
    *,
    origin_type: SlotOriginType = SlotOriginType.RULE,
    origin_id: Optional[str] = None,
    origin_version: Optional[int] = None,
) -> List[SlotCandidate]:
    """
    Candidates for one date of a (possibly merged) rule.

    Provenance defaults to the rule itself at ``rule.next_version``; callers
    materializing a modify-merged rule pass the exception's provenance.
    """
    is_exception = origin_type == SlotOriginType.EXCEPTION
    return [
        SlotCandidate(
            doctor_id=rule.doctor_id,
            start_time=slot_start,
            end_time=slot_end,
            appointment_type=rule.appointment_type,
            studio_address=rule.studio_address,
            origin_type=origin_type,
            origin_id=origin_id or rule.id,
            origin_version=origin_version if origin_version is not None else rule.next_version,
            priority=EXCEPTION_PRIORITY if is_exception else RULE_PRIORITY,
        )
        for slot_start, slot_end in slice_window(day, rule.start_time, rule.end_time, rule.slot_duration)
    ]


def materialize_one_time_slot(item: OneTimeSlotException) -> List[SlotCandidate]:
    """Candidates for a one-time slot exception; incomplete windows yield nothing."""
    if not item.has_complete_window:
        return []
    return [
        SlotCandidate(
            doctor_id=item.doctor_id,
            start_time=slot_start,
            end_time=slot_end,
            appointment_type=item.appointment_type or DEFAULT_ONE_TIME_APPOINTMENT_TYPE,
            studio_address=item.studio_address,
            origin_type=SlotOriginType.EXCEPTION,
            origin_id=item.id,
            origin_version=item.version,
            priority=EXCEPTION_PRIORITY,
        )
        for slot_start, slot_end in slice_window(
            item.exception_date, item.start_time, item.end_time, item.slot_duration
        )
    ]


def materialize_dates(
    rule: ScheduleRuleSpec, dates: Iterable[date], exceptions: ExceptionIndex
) -> List[SlotCandidate]:
    """Apply the exception overlay to each date and slice the survivors."""
    candidates: List[SlotCandidate] = []
    for day in dates:
        resolution = exceptions.resolve_day(rule, day)
        if resolution.blocked:
            continue
        if resolution.modify is not None:
            candidates.extend(
                materialize_rule_day(
                    resolution.effective_rule,
                    day,
                    origin_type=SlotOriginType.EXCEPTION,
                    origin_id=resolution.modify.id,
                    origin_version=resolution.modify.version,
                )
            )
        else:
            candidates.extend(materialize_rule_day(rule, day))
    return candidates


def materialize_rule(
    rule: ScheduleRuleSpec, window_start: date, window_end: date, exceptions: ExceptionIndex
) -> List[SlotCandidate]:
    """Full rule pipeline over a window: dates, overlay, slices."""
    dates = generate_recurrence_dates(rule, window_start, window_end)
    return materialize_dates(rule, dates, exceptions)

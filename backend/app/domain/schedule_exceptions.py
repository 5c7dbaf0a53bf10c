# backend/app/domain/schedule_exceptions.py
"""
Exception overlay resolution.

An ExceptionIndex is built once per doctor per expansion pass and answers,
for any date, whether rule output is suppressed, replaced by a merged
effective rule, or left alone. One-time slots are tracked separately since
they never depend on a rule.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from .schedule_types import (
    BlockException,
    ModifyException,
    OneTimeSlotException,
    ScheduleExceptionSpec,
    ScheduleRuleSpec,
)


def _coalesce(override, fallback):
    # Only None inherits; "" and 0 are real overrides.
    return fallback if override is None else override


def merge_rule_with_exception(rule: ScheduleRuleSpec, modify: ModifyException) -> ScheduleRuleSpec:
    """Return a new rule whose daily window fields are overridden by ``modify``."""
    return rule.with_window(
        start_time=_coalesce(modify.start_time, rule.start_time),
        end_time=_coalesce(modify.end_time, rule.end_time),
        slot_duration=_coalesce(modify.slot_duration, rule.slot_duration),
        appointment_type=_coalesce(modify.appointment_type, rule.appointment_type),
        studio_address=_coalesce(modify.studio_address, rule.studio_address),
    )


@dataclass(frozen=True)
class DayResolution:
    """Outcome of overlaying a date's exceptions on a rule."""

    blocked: bool
    effective_rule: Optional[ScheduleRuleSpec]
    modify: Optional[ModifyException] = None

    @property
    def is_modified(self) -> bool:
        return self.modify is not None


@dataclass
class _DayEntry:
    blocks: List[BlockException] = field(default_factory=list)
    modifies: List[ModifyException] = field(default_factory=list)
    one_time_slots: List[OneTimeSlotException] = field(default_factory=list)


class ExceptionIndex:
    """Date -> exceptions lookup for a single doctor."""

    def __init__(self, exceptions: Iterable[ScheduleExceptionSpec] = ()):
        self._by_date: Dict[date, _DayEntry] = defaultdict(_DayEntry)
        for item in exceptions:
            self.add(item)

    def add(self, item: ScheduleExceptionSpec) -> None:
        entry = self._by_date[item.exception_date]
        if isinstance(item, BlockException):
            entry.blocks.append(item)
        elif isinstance(item, ModifyException):
            entry.modifies.append(item)
        else:
            entry.one_time_slots.append(item)

    def __len__(self) -> int:
        return len(self._by_date)

    def _entry(self, day: date) -> Optional[_DayEntry]:
        return self._by_date.get(day)

    def is_blocked(self, day: date) -> bool:
        entry = self._entry(day)
        return bool(entry and entry.blocks)

    def modify_for(self, day: date) -> Optional[ModifyException]:
        """Latest modify exception on ``day`` (highest version wins)."""
        entry = self._entry(day)
        if not entry or not entry.modifies:
            return None
        return max(entry.modifies, key=lambda item: (item.version, item.id))

    def one_time_slots_between(self, start: date, end: date) -> List[OneTimeSlotException]:
        """All one-time slot exceptions in ``[start, end]``, ordered by date."""
        result: List[OneTimeSlotException] = []
        for day in sorted(self._by_date):
            if start <= day <= end:
                result.extend(self._by_date[day].one_time_slots)
        return result

    def modify_dates_between(self, start: date, end: date) -> List[date]:
        return sorted(day for day, entry in self._by_date.items() if entry.modifies and start <= day <= end)

    def resolve_day(self, rule: ScheduleRuleSpec, day: date) -> DayResolution:
        """
        Resolve rule output for ``day``.

        A block wins over any modify on the same date. One-time slots are
        not considered here.
        """
        if self.is_blocked(day):
            return DayResolution(blocked=True, effective_rule=None)

        modify = self.modify_for(day)
        if modify is None:
            return DayResolution(blocked=False, effective_rule=rule)
        return DayResolution(
            blocked=False,
            effective_rule=merge_rule_with_exception(rule, modify),
            modify=modify,
        )

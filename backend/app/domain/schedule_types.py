# backend/app/domain/schedule_types.py
"""
Immutable value types for schedule expansion.

ORM rows are converted once, at the edge of the expansion pass, into frozen
dataclasses so the date generator, overlay resolver and materializer work on
validated plain values and never mutate a session-bound object.

Exceptions are a tagged union discriminated by ``exception_type``:
BlockException | ModifyException | OneTimeSlotException.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Iterable, Optional, Tuple, Union

from ..core.enums import ScheduleExceptionType, ScheduleFrequency, SlotOriginType
from ..core.exceptions import ScheduleRuleException, ValidationException
from ..utils.time_helpers import string_to_time

if TYPE_CHECKING:
    from ..models.schedule_exception import DoctorScheduleException
    from ..models.schedule_rule import DoctorScheduleRule

RULE_PRIORITY = 1
EXCEPTION_PRIORITY = 10

# Exception versions live above any plausible rule counter.
EXCEPTION_VERSION_BASE = 1000


def _parse_time(value: Optional[str], *, field: str, rule_id: Optional[str]) -> time:
    if value is None:
        raise ScheduleRuleException(f"{field} is required", rule_id=rule_id, field=field)
    try:
        return string_to_time(value)
    except (TypeError, ValueError):
        raise ScheduleRuleException(
            f"{field} must be HH:MM, got {value!r}", rule_id=rule_id, field=field
        )


def _int_tuple(
    values: Optional[Iterable[int]], *, low: int, high: int, field: str, rule_id: Optional[str]
) -> Tuple[int, ...]:
    if not values:
        return ()
    result = []
    for raw in values:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ScheduleRuleException(
                f"{field} entries must be integers, got {raw!r}", rule_id=rule_id, field=field
            )
        if not low <= raw <= high:
            raise ScheduleRuleException(
                f"{field} entries must be within {low}..{high}, got {raw}",
                rule_id=rule_id,
                field=field,
            )
        result.append(raw)
    return tuple(sorted(set(result)))


@dataclass(frozen=True)
class ScheduleRuleSpec:
    """Validated snapshot of a DoctorScheduleRule."""

    id: str
    doctor_id: str
    frequency: ScheduleFrequency
    start_time: time
    end_time: time
    slot_duration: int
    interval: int = 1
    by_week_day: Tuple[int, ...] = ()  # 0=Sunday .. 6=Saturday
    by_month_day: Tuple[int, ...] = ()
    by_set_pos: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    appointment_type: Optional[str] = None
    studio_address: Optional[str] = None
    last_expanded_at: Optional[date] = None
    last_expanded_version: int = 0

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise ScheduleRuleException(
                "interval must be >= 1", rule_id=self.id, field="interval"
            )
        if self.slot_duration <= 0:
            raise ScheduleRuleException(
                "slot_duration must be positive", rule_id=self.id, field="slot_duration"
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ScheduleRuleException(
                "start_date must not be after end_date", rule_id=self.id, field="start_date"
            )

    @property
    def next_version(self) -> int:
        """Version stamped on slots produced by the pass now running."""
        return self.last_expanded_version + 1

    @classmethod
    def from_model(cls, rule: "DoctorScheduleRule") -> "ScheduleRuleSpec":
        try:
            frequency = ScheduleFrequency(rule.frequency)
        except ValueError:
            raise ScheduleRuleException(
                f"Unknown frequency {rule.frequency!r}", rule_id=rule.id, field="frequency"
            )
        by_set_pos = rule.by_set_pos or None
        return cls(
            id=rule.id,
            doctor_id=rule.doctor_id,
            frequency=frequency,
            interval=rule.interval if rule.interval is not None else 1,
            by_week_day=_int_tuple(
                rule.by_week_day, low=0, high=6, field="by_week_day", rule_id=rule.id
            ),
            by_month_day=_int_tuple(
                rule.by_month_day, low=1, high=31, field="by_month_day", rule_id=rule.id
            ),
            by_set_pos=by_set_pos,
            start_date=rule.start_date,
            end_date=rule.end_date,
            start_time=_parse_time(rule.start_time, field="start_time", rule_id=rule.id),
            end_time=_parse_time(rule.end_time, field="end_time", rule_id=rule.id),
            slot_duration=rule.slot_duration,
            appointment_type=rule.appointment_type,
            studio_address=rule.studio_address,
            last_expanded_at=rule.last_expanded_at,
            last_expanded_version=rule.last_expanded_version or 0,
        )

    def with_window(self, **overrides: object) -> "ScheduleRuleSpec":
        return replace(self, **overrides)


def exception_version(updated_at: Optional[datetime], created_at: Optional[datetime] = None) -> int:
    """
    Version for exception-sourced slots, derived from the row's last edit.

    Naive timestamps (SQLite drops tzinfo) are read as UTC so the value does
    not depend on the host timezone.
    """
    stamp = updated_at or created_at
    if stamp is None:
        return EXCEPTION_VERSION_BASE
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return EXCEPTION_VERSION_BASE + int(stamp.timestamp())


@dataclass(frozen=True)
class _ExceptionBase:
    id: str
    doctor_id: str
    exception_date: date
    version: int


@dataclass(frozen=True)
class BlockException(_ExceptionBase):
    exception_type: ScheduleExceptionType = ScheduleExceptionType.BLOCK


@dataclass(frozen=True)
class _WindowedException(_ExceptionBase):
    # None means "not set"; for modify that means inherit the rule's value.
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    slot_duration: Optional[int] = None
    appointment_type: Optional[str] = None
    studio_address: Optional[str] = None


@dataclass(frozen=True)
class ModifyException(_WindowedException):
    exception_type: ScheduleExceptionType = ScheduleExceptionType.MODIFY


@dataclass(frozen=True)
class OneTimeSlotException(_WindowedException):
    exception_type: ScheduleExceptionType = ScheduleExceptionType.ONE_TIME_SLOT

    @property
    def has_complete_window(self) -> bool:
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.slot_duration is not None
            and self.slot_duration > 0
        )


ScheduleExceptionSpec = Union[BlockException, ModifyException, OneTimeSlotException]


def _optional_time(value: Optional[str], *, field: str, exception_id: str) -> Optional[time]:
    if value is None:
        return None
    try:
        return string_to_time(value)
    except (TypeError, ValueError):
        raise ValidationException(
            f"{field} must be HH:MM, got {value!r}",
            code="INVALID_SCHEDULE_EXCEPTION",
            details={"exception_id": exception_id, "field": field},
        )


def _optional_duration(value: Optional[int], *, exception_id: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationException(
            f"slot_duration must be a positive number of minutes, got {value!r}",
            code="INVALID_SCHEDULE_EXCEPTION",
            details={"exception_id": exception_id, "field": "slot_duration"},
        )
    return value


def exception_from_model(row: "DoctorScheduleException") -> ScheduleExceptionSpec:
    """
    Convert an exception row into its tagged variant.

    Raises:
        ValidationException: If the type is unknown or a window field is malformed
    """
    try:
        kind = ScheduleExceptionType(row.exception_type)
    except ValueError:
        raise ValidationException(
            f"Unknown exception type {row.exception_type!r}",
            code="INVALID_SCHEDULE_EXCEPTION",
            details={"exception_id": row.id},
        )

    version = exception_version(row.updated_at, row.created_at)
    if kind is ScheduleExceptionType.BLOCK:
        return BlockException(
            id=row.id,
            doctor_id=row.doctor_id,
            exception_date=row.exception_date,
            version=version,
        )

    variant = ModifyException if kind is ScheduleExceptionType.MODIFY else OneTimeSlotException
    return variant(
        id=row.id,
        doctor_id=row.doctor_id,
        exception_date=row.exception_date,
        version=version,
        start_time=_optional_time(row.start_time, field="start_time", exception_id=row.id),
        end_time=_optional_time(row.end_time, field="end_time", exception_id=row.id),
        slot_duration=_optional_duration(row.slot_duration, exception_id=row.id),
        appointment_type=row.appointment_type,
        studio_address=row.studio_address,
    )


@dataclass(frozen=True)
class SlotCandidate:
    """A materialized slot waiting to be reconciled against the inventory."""

    doctor_id: str
    start_time: datetime
    end_time: datetime
    appointment_type: Optional[str]
    studio_address: Optional[str]
    origin_type: SlotOriginType
    origin_id: str
    origin_version: int
    priority: int

    @property
    def key(self) -> Tuple[str, datetime]:
        return (self.doctor_id, self.start_time)

"""
Pydantic schemas for doctor schedule rules, exceptions and expansion runs.

Request models validate shape and cross-field constraints; the expansion
engine re-validates rule rows before evaluating them.
"""

from datetime import date, datetime
import re
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import AppointmentType, ScheduleExceptionType, ScheduleFrequency
from .base import StandardizedModel, StrictModel

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_hhmm(value: Optional[str]) -> Optional[str]:
    if value is not None and not _HHMM.match(value):
        raise ValueError("time must be formatted as HH:MM")
    return value


class ScheduleRuleCreate(StrictModel):
    """Request to create a recurring availability rule."""

    doctor_id: str = Field(..., min_length=1, max_length=26)
    frequency: ScheduleFrequency = Field(ScheduleFrequency.WEEKLY)
    interval: int = Field(1, ge=1, description="Cadence multiplier (ignored for biweekly)")
    by_week_day: List[int] = Field(default_factory=list, description="0=Sunday .. 6=Saturday")
    by_month_day: List[int] = Field(default_factory=list, description="Days of month 1..31")
    by_set_pos: Optional[int] = Field(
        None, description="Nth (negative: Nth-from-last) weekday occurrence for monthly rules"
    )
    start_date: Optional[date] = Field(None, description="Defaults to today in the clinic timezone")
    end_date: Optional[date] = None
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["13:00"])
    slot_duration: int = Field(30, gt=0, description="Minutes per slot")
    appointment_type: AppointmentType = Field(AppointmentType.VIDEO)
    studio_address: Optional[str] = Field(None, max_length=255)

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _check_hhmm(value)

    @field_validator("by_week_day")
    @classmethod
    def _validate_week_days(cls, value: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("by_week_day entries must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))

    @field_validator("by_month_day")
    @classmethod
    def _validate_month_days(cls, value: List[int]) -> List[int]:
        if any(day < 1 or day > 31 for day in value):
            raise ValueError("by_month_day entries must be between 1 and 31")
        return sorted(set(value))

    @model_validator(mode="after")
    def _validate_rule(self) -> "ScheduleRuleCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if AppointmentType(self.appointment_type).requires_studio and not self.studio_address:
            raise ValueError("studio_address is required for in-person appointments")
        return self


class ScheduleRuleUpdate(StrictModel):
    """Partial update; only activation is editable once a rule exists."""

    is_active: bool


class ScheduleRuleResponse(StandardizedModel):
    id: str
    doctor_id: str
    frequency: str
    interval: int
    by_week_day: List[int] = Field(default_factory=list)
    by_month_day: List[int] = Field(default_factory=list)
    by_set_pos: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: str
    end_time: str
    slot_duration: int
    appointment_type: str
    studio_address: Optional[str] = None
    is_active: bool
    last_expanded_at: Optional[date] = None
    last_expanded_version: int = 0


class ScheduleExceptionCreate(StrictModel):
    """Request to create a single-date block, modification or one-off slot window."""

    doctor_id: str = Field(..., min_length=1, max_length=26)
    exception_date: date
    exception_type: ScheduleExceptionType
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    slot_duration: Optional[int] = Field(None, gt=0)
    appointment_type: Optional[AppointmentType] = None
    studio_address: Optional[str] = Field(None, max_length=255)
    reason: Optional[str] = Field(None, max_length=255)

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _check_hhmm(value)

    @model_validator(mode="after")
    def _validate_exception(self) -> "ScheduleExceptionCreate":
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.exception_type == ScheduleExceptionType.ONE_TIME_SLOT.value:
            if not (self.start_time and self.end_time and self.slot_duration):
                raise ValueError("one_time_slot requires start_time, end_time and slot_duration")
        if (
            self.appointment_type is not None
            and AppointmentType(self.appointment_type).requires_studio
            and not self.studio_address
            and self.exception_type == ScheduleExceptionType.ONE_TIME_SLOT.value
        ):
            raise ValueError("studio_address is required for in-person appointments")
        return self


class ScheduleExceptionResponse(StandardizedModel):
    id: str
    doctor_id: str
    exception_date: date
    exception_type: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    slot_duration: Optional[int] = None
    appointment_type: Optional[str] = None
    studio_address: Optional[str] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class DoctorExpansionResponse(StandardizedModel):
    """Outcome of expanding one doctor's rules."""

    doctor_id: str
    slots_created: int
    slots_updated: int
    slots_failed: int = 0
    rules_processed: int = 0
    rules_failed: int = 0
    rule_errors: List[str] = Field(default_factory=list)


class ExpansionSummaryResponse(StandardizedModel):
    """Outcome of the global expansion pass."""

    doctors_processed: int
    slots_created: int
    slots_updated: int
    errors: List[str] = Field(default_factory=list)

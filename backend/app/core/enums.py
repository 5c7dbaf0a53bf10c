# backend/app/core/enums.py
"""
Core enums for the scheduling platform.

String-valued so they round-trip through JSON payloads and plain
VARCHAR columns without conversion.
"""

from enum import Enum


class ScheduleFrequency(str, Enum):
    """Recurrence cadence of a doctor schedule rule."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    # Evaluated exactly like WEEKLY until product defines custom recurrences.
    CUSTOM = "custom"


class ScheduleExceptionType(str, Enum):
    """Kinds of single-date overrides layered on top of rules."""

    BLOCK = "block"
    MODIFY = "modify"
    ONE_TIME_SLOT = "one_time_slot"


class SlotOriginType(str, Enum):
    """Provenance of a materialized appointment slot."""

    RULE = "rule"
    EXCEPTION = "exception"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses (only AVAILABLE is set by expansion)."""

    AVAILABLE = "available"
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentType(str, Enum):
    """How the visit takes place."""

    VIDEO = "video"
    IN_PERSON = "in_person"
    BOTH = "both"

    @property
    def requires_studio(self) -> bool:
        return self in (AppointmentType.IN_PERSON, AppointmentType.BOTH)

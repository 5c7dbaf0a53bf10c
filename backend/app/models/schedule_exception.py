# backend/app/models/schedule_exception.py
"""
Doctor schedule exception model.

A single-date override for one doctor:
    block          suppress every rule-generated slot on the date
    modify         override part of the rule's window/metadata on the date
    one_time_slot  add slots on the date independently of any rule

Override columns are nullable on purpose: NULL means "inherit the rule's
value", while an empty string is a real override.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Index, Integer, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import ScheduleExceptionType
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class DoctorScheduleException(Base):
    """Date-specific override or addition layered on rule output."""

    __tablename__ = "doctor_schedule_exceptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    doctor_id = Column(String(26), nullable=False, index=True)
    exception_date = Column(Date, nullable=False)
    exception_type = Column(
        String(20), nullable=False, default=ScheduleExceptionType.BLOCK.value
    )

    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    slot_duration = Column(Integer, nullable=True)
    appointment_type = Column(String(20), nullable=True)
    studio_address = Column(String(255), nullable=True)
    reason = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=_now_utc)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_schedule_exceptions_doctor_date", "doctor_id", "exception_date"),
    )

    def __repr__(self) -> str:
        return f"<DoctorScheduleException {self.exception_type} {self.exception_date}>"

# backend/app/models/schedule_rule.py
"""
Doctor schedule rule model.

A rule is a declarative recurring-availability definition owned by a doctor:
a recurrence descriptor (frequency, interval, weekday/month-day selectors),
a daily time window sliced into fixed-duration slots, and the metadata
copied onto every slot it materializes.

Expansion bookkeeping lives on the rule itself:
    last_expanded_at: date through which slots have been materialized
    last_expanded_version: bumped only on a fully successful pass
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.sql import func
import ulid

from ..core.enums import AppointmentType, ScheduleFrequency
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class DoctorScheduleRule(Base):
    """Recurring availability declaration for one doctor."""

    __tablename__ = "doctor_schedule_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    doctor_id = Column(String(26), nullable=False, index=True)

    # Temporal scope (inclusive); open-ended when NULL
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # Recurrence descriptor
    frequency = Column(String(20), nullable=False, default=ScheduleFrequency.WEEKLY.value)
    interval = Column("repeat_interval", Integer, nullable=False, default=1)
    by_week_day = Column(JSON, nullable=False, default=list)  # 0=Sunday .. 6=Saturday
    by_month_day = Column(JSON, nullable=False, default=list)  # 1..31
    by_set_pos = Column(Integer, nullable=True)

    # Daily window (HH:MM, clinic wall clock)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    slot_duration = Column(Integer, nullable=False, default=30)  # minutes

    # Slot metadata template
    appointment_type = Column(String(20), nullable=False, default=AppointmentType.VIDEO.value)
    studio_address = Column(String(255), nullable=True)

    # Expansion bookkeeping
    is_active = Column(Boolean, nullable=False, default=True)
    last_expanded_at = Column(Date, nullable=True)
    last_expanded_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=_now_utc)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("repeat_interval >= 1", name="ck_schedule_rules_interval_positive"),
        CheckConstraint("slot_duration > 0", name="ck_schedule_rules_slot_duration_positive"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_schedule_rules_date_order",
        ),
        Index("idx_schedule_rules_doctor_active", "doctor_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<DoctorScheduleRule {self.id} doctor={self.doctor_id} "
            f"{self.frequency}/{self.interval} {self.start_time}-{self.end_time}>"
        )

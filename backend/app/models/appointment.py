# backend/app/models/appointment.py
"""
Appointment slot model.

Concrete bookable time intervals materialized from schedule rules and
exceptions. Exactly one row may exist per (doctor_id, start_time); the
provenance triple (origin_type, origin_id, origin_version) decides whether
a later expansion pass may overwrite the row.

Times are naive wall-clock datetimes in the clinic timezone
(settings.schedule_timezone), matching the HH:MM strings on rules.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Index, String, UniqueConstraint
from sqlalchemy.sql import func
import ulid

from ..core.enums import AppointmentStatus
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """Materialized appointment slot."""

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    doctor_id = Column(String(26), nullable=False)
    start_time = Column(DateTime(timezone=False), nullable=False)
    end_time = Column(DateTime(timezone=False), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.AVAILABLE.value)
    appointment_type = Column(String(20), nullable=True)
    studio_address = Column(String(255), nullable=True)

    # Provenance
    origin_type = Column(String(20), nullable=True)
    origin_id = Column(String(26), nullable=True)
    origin_version = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=_now_utc)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("doctor_id", "start_time", name="uq_appointments_doctor_start"),
        Index("idx_appointments_origin", "origin_type", "origin_id"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.doctor_id} {self.start_time} {self.status}>"

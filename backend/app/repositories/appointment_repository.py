# backend/app/repositories/appointment_repository.py
"""
Appointment Repository

Keyed access to the appointment slot inventory. The (doctor_id, start_time)
pair is the reconciliation identity used by the upsert engine.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.appointment import Appointment
from .base_repository import BaseRepository


class AppointmentRepository(BaseRepository[Appointment]):
    """Repository for Appointment slot rows."""

    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def get_by_doctor_and_start(self, doctor_id: str, start_time: datetime) -> Optional[Appointment]:
        try:
            return (
                self._build_query()
                .filter(Appointment.doctor_id == doctor_id, Appointment.start_time == start_time)
                .one_or_none()
            )
        except SQLAlchemyError as e:
            self.logger.error(
                "Error loading slot %s@%s: %s", doctor_id, start_time.isoformat(), str(e)
            )
            raise RepositoryException(f"Failed to load appointment slot: {str(e)}") from e

    def create_slot(self, **fields: Any) -> Appointment:
        return self.create(**fields)

    def update_slot(self, slot_id: str, **fields: Any) -> Optional[Appointment]:
        return self.update(slot_id, **fields)

    def list_for_doctor(
        self,
        doctor_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Appointment]:
        """Slots for a doctor ordered by start time; ``end`` is exclusive."""
        query = self._build_query().filter(Appointment.doctor_id == doctor_id)
        if start is not None:
            query = query.filter(Appointment.start_time >= start)
        if end is not None:
            query = query.filter(Appointment.start_time < end)
        return self._execute_query(query.order_by(Appointment.start_time))

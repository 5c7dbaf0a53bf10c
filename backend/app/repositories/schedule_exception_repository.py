# backend/app/repositories/schedule_exception_repository.py
"""
Schedule Exception Repository

Data access for date-specific blocks, modifications and one-off slots.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.schedule_exception import DoctorScheduleException
from .base_repository import BaseRepository


class ScheduleExceptionRepository(BaseRepository[DoctorScheduleException]):
    """Repository for DoctorScheduleException rows."""

    def __init__(self, db: Session):
        super().__init__(db, DoctorScheduleException)

    def get_for_doctor(
        self,
        doctor_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[DoctorScheduleException]:
        """All exceptions for a doctor, optionally bounded by an inclusive date range."""
        query = self._build_query().filter(DoctorScheduleException.doctor_id == doctor_id)
        if start_date is not None:
            query = query.filter(DoctorScheduleException.exception_date >= start_date)
        if end_date is not None:
            query = query.filter(DoctorScheduleException.exception_date <= end_date)
        return self._execute_query(
            query.order_by(DoctorScheduleException.exception_date, DoctorScheduleException.id)
        )

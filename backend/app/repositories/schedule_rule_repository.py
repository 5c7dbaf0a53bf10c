# backend/app/repositories/schedule_rule_repository.py
"""
Schedule Rule Repository

Data access for doctor schedule rules, including the watermark write that
closes a successful expansion pass.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.schedule_rule import DoctorScheduleRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ScheduleRuleRepository(BaseRepository[DoctorScheduleRule]):
    """Repository for DoctorScheduleRule rows."""

    def __init__(self, db: Session):
        super().__init__(db, DoctorScheduleRule)

    def get_active_rules(self, doctor_id: Optional[str] = None) -> List[DoctorScheduleRule]:
        """Active rules, optionally for one doctor, in creation order."""
        query = self._build_query().filter(DoctorScheduleRule.is_active.is_(True))
        if doctor_id is not None:
            query = query.filter(DoctorScheduleRule.doctor_id == doctor_id)
        return self._execute_query(
            query.order_by(DoctorScheduleRule.created_at, DoctorScheduleRule.id)
        )

    def get_doctor_ids_with_active_rules(self) -> List[str]:
        """Distinct doctor ids owning at least one active rule."""
        try:
            rows = (
                self.db.query(DoctorScheduleRule.doctor_id)
                .filter(DoctorScheduleRule.is_active.is_(True))
                .distinct()
                .order_by(DoctorScheduleRule.doctor_id)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing doctors with active rules: {str(e)}")
            raise RepositoryException(f"Failed to list doctors: {str(e)}")

    def list_for_doctor(
        self, doctor_id: str, *, include_inactive: bool = True
    ) -> List[DoctorScheduleRule]:
        query = self._build_query().filter(DoctorScheduleRule.doctor_id == doctor_id)
        if not include_inactive:
            query = query.filter(DoctorScheduleRule.is_active.is_(True))
        return self._execute_query(query.order_by(DoctorScheduleRule.created_at))

    def update_watermark(
        self, rule_id: str, *, last_expanded_at: date, last_expanded_version: int
    ) -> Optional[DoctorScheduleRule]:
        """Record the date and version a successful pass reached."""
        return self.update(
            rule_id,
            last_expanded_at=last_expanded_at,
            last_expanded_version=last_expanded_version,
        )

    def pin_start_date(self, rule_id: str, start_date: date) -> Optional[DoctorScheduleRule]:
        """Persist the cadence anchor of a rule stored without a start date."""
        return self.update(rule_id, start_date=start_date)

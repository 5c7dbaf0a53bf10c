# backend/app/services/schedule_management_service.py
"""
Schedule Management Service for the scheduling platform

CRUD for doctor schedule rules and exceptions. Rules are validated with the
same reader the expansion engine uses, so a rule that saves is a rule that
expands.
"""

from datetime import date
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..core.timezone_utils import get_clinic_today
from ..models.schedule_exception import DoctorScheduleException
from ..models.schedule_rule import DoctorScheduleRule
from ..repositories.factory import RepositoryFactory
from ..schemas.schedule import ScheduleExceptionCreate, ScheduleRuleCreate
from .base import BaseService
from .schedule_expansion_service import validate_rule_payload

logger = logging.getLogger(__name__)


class ScheduleManagementService(BaseService):
    """Create, list and toggle schedule rules; create and list exceptions."""

    def __init__(self, db: Session, clock: Optional[Callable[[], date]] = None):
        super().__init__(db)
        self.rule_repository = RepositoryFactory.create_schedule_rule_repository(db)
        self.exception_repository = RepositoryFactory.create_schedule_exception_repository(db)
        self.clock = clock or get_clinic_today

    @BaseService.measure_operation("create_rule")
    def create_rule(self, payload: ScheduleRuleCreate) -> DoctorScheduleRule:
        """
        Persist a new rule.

        A missing start_date is pinned to today so weekly cadence has a
        stable anchor across passes.

        Raises:
            ScheduleRuleException: If the rule cannot be evaluated
        """
        data = payload.model_dump()
        if data.get("start_date") is None:
            data["start_date"] = self.clock()
        if data.get("by_set_pos") == 0:
            data["by_set_pos"] = None

        candidate = DoctorScheduleRule(**data)
        validate_rule_payload(candidate)

        with self.transaction():
            rule = self.rule_repository.create(**data)

        self.log_operation("create_rule", rule_id=rule.id, doctor_id=rule.doctor_id)
        return rule

    def list_rules(self, doctor_id: str) -> List[DoctorScheduleRule]:
        return self.rule_repository.list_for_doctor(doctor_id)

    @BaseService.measure_operation("set_rule_active")
    def set_rule_active(self, rule_id: str, is_active: bool) -> DoctorScheduleRule:
        """Enable or disable a rule; materialized slots are left untouched."""
        with self.transaction():
            rule = self.rule_repository.update(rule_id, is_active=is_active)
            if rule is None:
                raise NotFoundException(
                    f"Schedule rule {rule_id} not found", code="SCHEDULE_RULE_NOT_FOUND"
                )

        self.log_operation("set_rule_active", rule_id=rule_id, is_active=is_active)
        return rule

    @BaseService.measure_operation("create_exception")
    def create_exception(self, payload: ScheduleExceptionCreate) -> DoctorScheduleException:
        with self.transaction():
            exception = self.exception_repository.create(**payload.model_dump())

        self.log_operation(
            "create_exception",
            exception_id=exception.id,
            doctor_id=exception.doctor_id,
            exception_type=exception.exception_type,
        )
        return exception

    def list_exceptions(
        self,
        doctor_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[DoctorScheduleException]:
        return self.exception_repository.get_for_doctor(
            doctor_id, start_date=start_date, end_date=end_date
        )

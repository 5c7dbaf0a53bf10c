# backend/app/repositories/factory.py
"""
Repository Factory for the scheduling platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository
    from .schedule_exception_repository import ScheduleExceptionRepository
    from .schedule_rule_repository import ScheduleRuleRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_schedule_rule_repository(db: Session) -> "ScheduleRuleRepository":
        """Create repository for schedule rules and their watermarks."""
        from .schedule_rule_repository import ScheduleRuleRepository

        return ScheduleRuleRepository(db)

    @staticmethod
    def create_schedule_exception_repository(db: Session) -> "ScheduleExceptionRepository":
        """Create repository for schedule exceptions."""
        from .schedule_exception_repository import ScheduleExceptionRepository

        return ScheduleExceptionRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        """Create repository for the appointment slot inventory."""
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the scheduling platform

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- ScheduleRuleRepository: Rules, active-rule listings and watermark writes
- ScheduleExceptionRepository: Date-specific overrides per doctor
- AppointmentRepository: Slot inventory keyed by (doctor_id, start_time)

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_schedule_rule_repository(db)
    rules = repository.get_active_rules(doctor_id)
"""

from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository
from .factory import RepositoryFactory
from .schedule_exception_repository import ScheduleExceptionRepository
from .schedule_rule_repository import ScheduleRuleRepository

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "RepositoryFactory",
    "ScheduleExceptionRepository",
    "ScheduleRuleRepository",
]

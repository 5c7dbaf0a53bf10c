# backend/app/tasks/__init__.py
"""
Celery tasks package for the scheduling platform.

Importing the package registers the schedule expansion tasks with the
shared Celery app.
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.schedule_expansion import expand_all_doctors, expand_doctor_schedule

__all__ = [
    "BaseTask",
    "celery_app",
    "expand_all_doctors",
    "expand_doctor_schedule",
]

# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for the scheduling platform.

The nightly pass re-expands every doctor's rules so the rolling horizon
always reaches today + schedule_expansion_weeks.
"""

from datetime import timedelta
import logging
import os
from typing import Any

from celery.schedules import crontab

from app.core.config import settings

logger = logging.getLogger(__name__)

# Main beat schedule configuration
CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    "nightly-schedule-expansion": {
        "task": "schedule_expansion.expand_all_doctors",
        # Clinic wall clock; see celery_app timezone
        "schedule": crontab(hour=settings.schedule_expansion_cron_hour, minute=0),
        "args": [],
        "kwargs": {},
        "options": {
            "queue": "schedule",
            "priority": 5,
        },
    },
}

# Schedule overrides for different environments
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "production": {},
    "testing": {
        "nightly-schedule-expansion": {
            "task": "schedule_expansion.expand_all_doctors",
            "schedule": timedelta(minutes=5),
            "options": {"queue": "schedule", "priority": 5},
        },
    },
}


def _parse_cron_expression(cron_expr: str) -> Any:
    """Convert a five-field cron expression into a Celery crontab schedule."""
    parts = cron_expr.strip().split()
    if len(parts) != 5:
        logger.warning(
            "Invalid SCHEDULE_EXPANSION_CRON expression '%s'; falling back to the configured hour",
            cron_expr,
        )
        return crontab(hour=settings.schedule_expansion_cron_hour, minute=0)
    minute, hour, day_of_month, month_of_year, day_of_week = parts
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    SCHEDULE_EXPANSION_CRON, when set, replaces the nightly crontab.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = {key: dict(value) for key, value in CELERYBEAT_SCHEDULE.items()}
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update({key: dict(value) for key, value in overrides.items()})

    cron_override = os.getenv("SCHEDULE_EXPANSION_CRON")
    if cron_override:
        base["nightly-schedule-expansion"]["schedule"] = _parse_cron_expression(cron_override)
    return base

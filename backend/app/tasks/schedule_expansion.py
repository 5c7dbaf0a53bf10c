# backend/app/tasks/schedule_expansion.py
"""
Schedule expansion tasks.

expand_all_doctors runs nightly from beat; expand_doctor_schedule is
enqueued after a doctor edits rules or exceptions. Both open their own
session and return plain dicts so results stay JSON-serializable.
"""

from dataclasses import asdict
import logging
from typing import Any, Callable, Dict, TypeVar, cast

from celery import shared_task

from app.database import get_db_session
from app.services.schedule_expansion_service import ScheduleExpansionService

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@_typed_shared_task(name="schedule_expansion.expand_all_doctors")
def expand_all_doctors() -> Dict[str, Any]:
    """Expand every doctor with at least one active rule."""
    with get_db_session() as db:
        summary = ScheduleExpansionService(db).expand_all_doctors()

    if summary.errors:
        logger.warning(
            "[SCHEDULE-EXPANSION] Nightly pass finished with %d errors",
            len(summary.errors),
            extra={"errors": summary.errors},
        )
    return asdict(summary)


@_typed_shared_task(name="schedule_expansion.expand_doctor_schedule")
def expand_doctor_schedule(doctor_id: str) -> Dict[str, Any]:
    """Expand one doctor's rules on demand."""
    with get_db_session() as db:
        result = ScheduleExpansionService(db).expand_doctor_schedule(doctor_id)

    logger.info(
        "[SCHEDULE-EXPANSION] On-demand pass for doctor %s: %d created, %d updated",
        doctor_id,
        result.slots_created,
        result.slots_updated,
    )
    return asdict(result)

# backend/app/routes/v1/schedule.py
"""
Schedule routes - API v1

Versioned schedule endpoints under /api/v1/schedule.
Business logic lives in ScheduleManagementService and
ScheduleExpansionService.

Endpoints:
    POST /rules                              → Create a rule, enqueue expansion
    GET /doctors/{doctor_id}/rules           → List a doctor's rules
    PATCH /rules/{rule_id}                   → Activate or deactivate a rule
    POST /exceptions                         → Create an exception, enqueue expansion
    GET /doctors/{doctor_id}/exceptions      → List a doctor's exceptions
    POST /doctors/{doctor_id}/expand         → Expand one doctor now
    POST /expand                             → Run the global expansion pass now
"""

import asyncio
from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.exceptions import DomainException
from ...database import get_db
from ...schemas.schedule import (
    DoctorExpansionResponse,
    ExpansionSummaryResponse,
    ScheduleExceptionCreate,
    ScheduleExceptionResponse,
    ScheduleRuleCreate,
    ScheduleRuleResponse,
    ScheduleRuleUpdate,
)
from ...services.schedule_expansion_service import ScheduleExpansionService
from ...services.schedule_management_service import ScheduleManagementService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["schedule-v1"])


def get_schedule_management_service(db: Session = Depends(get_db)) -> ScheduleManagementService:
    """Dependency to get the schedule management service."""
    return ScheduleManagementService(db)


def get_schedule_expansion_service(db: Session = Depends(get_db)) -> ScheduleExpansionService:
    """Dependency to get the schedule expansion service."""
    return ScheduleExpansionService(db)


def enqueue_doctor_expansion(doctor_id: str) -> None:
    """Queue an on-demand expansion; a broker outage must not fail the request."""
    from ...tasks.schedule_expansion import expand_doctor_schedule

    try:
        expand_doctor_schedule.delay(doctor_id)
    except Exception as e:
        logger.error(
            f"Failed to enqueue schedule expansion for doctor {doctor_id}: {str(e)}",
            extra={"doctor_id": doctor_id},
        )


@router.post("/rules", response_model=ScheduleRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: ScheduleRuleCreate,
    background_tasks: BackgroundTasks,
    service: ScheduleManagementService = Depends(get_schedule_management_service),
) -> ScheduleRuleResponse:
    """
    Create a recurring availability rule.

    Slots are materialized asynchronously right after the rule is saved.

    Raises:
        HTTPException: 400 if the rule cannot be evaluated
    """
    try:
        rule = await asyncio.to_thread(service.create_rule, payload)
    except DomainException as e:
        raise e.to_http_exception()

    background_tasks.add_task(enqueue_doctor_expansion, rule.doctor_id)
    return ScheduleRuleResponse.model_validate(rule)


@router.get("/doctors/{doctor_id}/rules", response_model=List[ScheduleRuleResponse])
async def list_rules(
    doctor_id: str,
    service: ScheduleManagementService = Depends(get_schedule_management_service),
) -> List[ScheduleRuleResponse]:
    """List all rules (active and inactive) for a doctor."""
    rules = await asyncio.to_thread(service.list_rules, doctor_id)
    return [ScheduleRuleResponse.model_validate(rule) for rule in rules]


@router.patch("/rules/{rule_id}", response_model=ScheduleRuleResponse)
async def update_rule(
    rule_id: str,
    payload: ScheduleRuleUpdate,
    service: ScheduleManagementService = Depends(get_schedule_management_service),
) -> ScheduleRuleResponse:
    """
    Activate or deactivate a rule.

    Deactivation excludes the rule from later passes; slots it already
    produced are kept.
    """
    try:
        rule = await asyncio.to_thread(service.set_rule_active, rule_id, payload.is_active)
    except DomainException as e:
        raise e.to_http_exception()
    return ScheduleRuleResponse.model_validate(rule)


@router.post(
    "/exceptions",
    response_model=ScheduleExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_exception(
    payload: ScheduleExceptionCreate,
    background_tasks: BackgroundTasks,
    service: ScheduleManagementService = Depends(get_schedule_management_service),
) -> ScheduleExceptionResponse:
    """Create a block, modify or one-time slot exception for one date."""
    try:
        exception = await asyncio.to_thread(service.create_exception, payload)
    except DomainException as e:
        raise e.to_http_exception()

    background_tasks.add_task(enqueue_doctor_expansion, exception.doctor_id)
    return ScheduleExceptionResponse.model_validate(exception)


@router.get(
    "/doctors/{doctor_id}/exceptions", response_model=List[ScheduleExceptionResponse]
)
async def list_exceptions(
    doctor_id: str,
    start_date: Optional[date] = Query(None, description="Inclusive lower bound"),
    end_date: Optional[date] = Query(None, description="Inclusive upper bound"),
    service: ScheduleManagementService = Depends(get_schedule_management_service),
) -> List[ScheduleExceptionResponse]:
    """List a doctor's exceptions, optionally within a date range."""
    exceptions = await asyncio.to_thread(
        service.list_exceptions, doctor_id, start_date=start_date, end_date=end_date
    )
    return [ScheduleExceptionResponse.model_validate(item) for item in exceptions]


@router.post("/doctors/{doctor_id}/expand", response_model=DoctorExpansionResponse)
async def expand_doctor(
    doctor_id: str,
    service: ScheduleExpansionService = Depends(get_schedule_expansion_service),
) -> DoctorExpansionResponse:
    """Expand one doctor's active rules synchronously."""
    try:
        result = await asyncio.to_thread(service.expand_doctor_schedule, doctor_id)
    except DomainException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error expanding schedule for doctor {doctor_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to expand schedule",
        )
    return DoctorExpansionResponse.model_validate(result)


@router.post("/expand", response_model=ExpansionSummaryResponse)
async def expand_all(
    service: ScheduleExpansionService = Depends(get_schedule_expansion_service),
) -> ExpansionSummaryResponse:
    """Run the global expansion pass synchronously."""
    try:
        summary = await asyncio.to_thread(service.expand_all_doctors)
    except Exception as e:
        logger.error(f"Error running global schedule expansion: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to expand schedules",
        )
    return ExpansionSummaryResponse.model_validate(summary)

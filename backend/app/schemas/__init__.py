# backend/app/schemas/__init__.py
"""
Pydantic schemas for the scheduling platform.
"""

from .schedule import (
    DoctorExpansionResponse,
    ExpansionSummaryResponse,
    ScheduleExceptionCreate,
    ScheduleExceptionResponse,
    ScheduleRuleCreate,
    ScheduleRuleResponse,
    ScheduleRuleUpdate,
)

__all__ = [
    "DoctorExpansionResponse",
    "ExpansionSummaryResponse",
    "ScheduleExceptionCreate",
    "ScheduleExceptionResponse",
    "ScheduleRuleCreate",
    "ScheduleRuleResponse",
    "ScheduleRuleUpdate",
]

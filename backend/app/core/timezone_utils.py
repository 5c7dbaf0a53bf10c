"""
Timezone utilities for the scheduling platform.

Rules store local wall-clock times, so "today" and "now" are always taken
in the clinic timezone configured in settings.
"""

from datetime import date, datetime
from typing import Optional

import pytz

from .config import settings


def get_clinic_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """
    Get the clinic timezone.

    Args:
        name: IANA timezone name; defaults to settings.schedule_timezone

    Returns:
        pytz timezone object
    """
    return pytz.timezone(name or settings.schedule_timezone)


def get_clinic_today(name: Optional[str] = None) -> date:
    """Today's date in the clinic timezone."""
    return datetime.now(get_clinic_timezone(name)).date()

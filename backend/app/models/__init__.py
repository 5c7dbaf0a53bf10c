"""
Database models for the scheduling platform.

- DoctorScheduleRule: recurring availability declarations
- DoctorScheduleException: single-date blocks, modifications and one-off slots
- Appointment: materialized slot inventory keyed by (doctor_id, start_time)
"""

from .appointment import Appointment
from .schedule_exception import DoctorScheduleException
from .schedule_rule import DoctorScheduleRule

__all__ = [
    "Appointment",
    "DoctorScheduleException",
    "DoctorScheduleRule",
]

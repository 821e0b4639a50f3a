"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine, compute_available_slots
from .eligibility import DayEligibility, DayEligibilityPolicy
from .models import (
    AppointmentStatus,
    CandidateSlot,
    DayHours,
    ExistingAppointment,
    TimeRange,
    WeeklyHours,
    Weekday,
)

__all__ = [
    "AppointmentStatus",
    "AvailabilityEngine",
    "CandidateSlot",
    "DayEligibility",
    "DayEligibilityPolicy",
    "DayHours",
    "ExistingAppointment",
    "TimeRange",
    "WeeklyHours",
    "Weekday",
    "compute_available_slots",
]

"""
Domain layer - Pure business logic without external dependencies.
"""

from .due_for_service import (
    DueForServiceResult,
    DueStatus,
    ServiceRecord,
    calculate_due_status,
    resolve_interval,
)
from .models import DayAvailability, Interval, Location, TimeSlot, UnavailableReason
from .result import DomainError, ErrorCode, Failure, Success
from .slot_calculator import SlotCalculator, calculate_available_slots
from .travel_time import TravelTimeService, TravelTimeSlotFilter

__all__ = [
    "DayAvailability",
    "DomainError",
    "DueForServiceResult",
    "DueStatus",
    "ErrorCode",
    "Failure",
    "Interval",
    "Location",
    "ServiceRecord",
    "SlotCalculator",
    "Success",
    "TimeSlot",
    "TravelTimeService",
    "TravelTimeSlotFilter",
    "UnavailableReason",
    "calculate_available_slots",
    "calculate_due_status",
    "resolve_interval",
]

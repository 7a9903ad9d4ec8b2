"""
Service layer that orchestrates repositories, dispatch and domain logic.
"""

from .availability import AvailabilityService
from .booking_events import create_booking_event_dispatcher
from .booking_lifecycle import BookingLifecycleService, CreateBookingInput
from .due_for_service import DueForServiceService
from .event_dispatcher import EventDispatcher
from .group_booking import GroupBookingService, MatchRequestInput, MatchResult

__all__ = [
    "AvailabilityService",
    "BookingLifecycleService",
    "CreateBookingInput",
    "DueForServiceService",
    "EventDispatcher",
    "GroupBookingService",
    "MatchRequestInput",
    "MatchResult",
    "create_booking_event_dispatcher",
]

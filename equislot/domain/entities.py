"""
Aggregates stored by the repositories: providers, services, bookings,
provider schedules and group booking requests.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

import pendulum

from .models import Interval, Location


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActorRole(str, Enum):
    PROVIDER = "provider"
    CUSTOMER = "customer"


class GroupBookingStatus(str, Enum):
    OPEN = "open"
    MATCHED = "matched"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ParticipantStatus(str, Enum):
    JOINED = "joined"
    BOOKED = "booked"
    REMOVED = "removed"


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""
    user_id: str
    role: ActorRole


@dataclass
class Provider:
    id: str
    user_id: str
    business_name: str
    is_active: bool = True
    location: Optional[Location] = None


@dataclass
class Service:
    id: str
    provider_id: str
    name: str
    duration_minutes: int
    price: float = 0.0
    recommended_interval_weeks: Optional[int] = None
    is_active: bool = True


@dataclass
class Entity:
    """A customer-owned animal that receives recurring services."""
    id: str
    owner_id: str
    name: str


@dataclass
class Payment:
    id: str
    amount: float
    currency: str
    paid_at: datetime


@dataclass
class Booking:
    id: str
    customer_id: str
    provider_id: str
    service_id: str
    booking_date: date
    start_time: str
    end_time: str
    status: BookingStatus = BookingStatus.PENDING
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    customer_notes: Optional[str] = None
    location: Optional[Location] = None
    is_manual: bool = False
    cancellation_message: Optional[str] = None
    payment: Optional[Payment] = None
    created_at: datetime = field(default_factory=lambda: pendulum.now("UTC"))

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def is_active(self) -> bool:
        """Pending and confirmed bookings occupy the provider's calendar."""
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass
class OpeningHours:
    """Regular opening hours for one weekday (0=Monday, 6=Sunday)."""
    weekday: int
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    is_closed: bool = False


@dataclass
class AvailabilityException:
    """A one-off change to a provider's hours on a given date."""
    date: date
    is_closed: bool = True
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class ProviderSchedule:
    provider_id: str
    weekly: Dict[int, OpeningHours] = field(default_factory=dict)
    exceptions: Dict[date, AvailabilityException] = field(default_factory=dict)

    def hours_for(self, day: date) -> OpeningHours:
        """
        Resolve the opening hours for a date.

        Exceptions win over the weekly schedule; weekdays without an entry
        are closed.
        """
        exception = self.exceptions.get(day)
        if exception is not None:
            return OpeningHours(
                weekday=day.weekday(),
                opening_time=exception.opening_time,
                closing_time=exception.closing_time,
                is_closed=exception.is_closed,
            )
        return self.weekly.get(day.weekday(), OpeningHours(weekday=day.weekday(), is_closed=True))


@dataclass
class Participant:
    id: str
    user_id: str
    number_of_entities: int = 1
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    notes: Optional[str] = None
    status: ParticipantStatus = ParticipantStatus.JOINED
    booking_id: Optional[str] = None
    joined_at: datetime = field(default_factory=lambda: pendulum.now("UTC"))

    @property
    def is_active(self) -> bool:
        return self.status in (ParticipantStatus.JOINED, ParticipantStatus.BOOKED)


@dataclass
class GroupBookingRequest:
    id: str
    creator_id: str
    service_type: str
    location_name: str
    address: str
    date_from: date
    date_to: date
    max_participants: int
    invite_code: str
    status: GroupBookingStatus = GroupBookingStatus.OPEN
    provider_id: Optional[str] = None
    location: Optional[Location] = None
    join_deadline: Optional[datetime] = None
    notes: Optional[str] = None
    participants: List[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: pendulum.now("UTC"))

    def active_participants(self) -> List[Participant]:
        return [p for p in self.participants if p.is_active]

    def joined_participants(self) -> List[Participant]:
        """Participants waiting for a booking, in join order."""
        return [p for p in self.participants if p.status == ParticipantStatus.JOINED]

    def find_participant(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def has_active_user(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.active_participants())

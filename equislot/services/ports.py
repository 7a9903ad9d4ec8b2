"""
Protocols describing the collaborators the services depend on.

Services only talk to these protocols, so the JSON-file store, the
in-memory store used in tests, or any other backend can be plugged in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol, Sequence, Tuple

from ..domain.entities import (
    Booking,
    Entity,
    GroupBookingRequest,
    Provider,
    ProviderSchedule,
    Service,
)
from ..domain.models import Location


class NotificationType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    PAYMENT_RECEIVED = "payment_received"
    GROUP_BOOKING_JOINED = "group_booking_joined"
    GROUP_BOOKING_LEFT = "group_booking_left"
    GROUP_BOOKING_CANCELLED = "group_booking_cancelled"
    GROUP_BOOKING_MATCHED = "group_booking_matched"


@dataclass(frozen=True)
class NotificationInput:
    user_id: str
    type: NotificationType
    message: str
    link_url: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class IntervalOverrides:
    """Cadence overrides keyed by ``(entity_id, service_id)``."""
    entity: Dict[Tuple[str, str], int] = field(default_factory=dict)
    customer: Dict[Tuple[str, str], int] = field(default_factory=dict)


class BookingRepository(Protocol):
    async def get(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by id, or None."""

    async def save(self, booking: Booking) -> Booking:
        """Insert or replace a booking."""

    async def list_for_provider_on(self, provider_id: str, day: date) -> List[Booking]:
        """Active (pending/confirmed) bookings of a provider on one date."""

    async def list_for_provider_between(
        self, provider_id: str, start: date, end: date
    ) -> List[Booking]:
        """Active bookings of a provider between two dates, inclusive."""

    async def list_completed_for_customers(
        self, customer_ids: Sequence[str], entity_id: Optional[str] = None
    ) -> List[Booking]:
        """Completed bookings with an entity for the given customers."""

    async def list_completed_for_provider(self, provider_id: str) -> List[Booking]:
        """Completed bookings with an entity served by a provider."""

    def transaction(self) -> AsyncContextManager[Any]:
        """All-or-nothing boundary for a write set."""


class GroupBookingRepository(Protocol):
    async def get(self, group_id: str) -> Optional[GroupBookingRequest]:
        """Return a group request by id, or None."""

    async def get_by_invite_code(self, invite_code: str) -> Optional[GroupBookingRequest]:
        """Return a group request by invite code, or None."""

    async def save(self, group: GroupBookingRequest) -> GroupBookingRequest:
        """Insert or replace a group request with its participants."""

    async def list_for_user(self, user_id: str) -> List[GroupBookingRequest]:
        """Requests created by or joined by the user."""


class ProviderRepository(Protocol):
    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        ...

    async def get_provider_for_user(self, user_id: str) -> Optional[Provider]:
        ...

    async def get_service(self, service_id: str) -> Optional[Service]:
        ...

    async def get_schedule(self, provider_id: str) -> Optional[ProviderSchedule]:
        ...

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        ...

    async def get_customer_name(self, customer_id: str) -> str:
        ...


class IntervalRepository(Protocol):
    async def get_entity_override(self, entity_id: str, service_id: str) -> Optional[int]:
        """Provider-set cadence for one entity and service."""

    async def get_customer_override(self, entity_id: str, service_id: str) -> Optional[int]:
        """Customer-set cadence for one entity and service."""

    async def set_entity_override(
        self, entity_id: str, service_id: str, weeks: Optional[int]
    ) -> None:
        ...

    async def set_customer_override(
        self, entity_id: str, service_id: str, weeks: Optional[int]
    ) -> None:
        ...

    async def list_for_entities(self, entity_ids: Sequence[str]) -> IntervalOverrides:
        """Bulk read of both override tiers for many entities."""


class EmailSender(Protocol):
    async def send_booking_confirmation(self, booking_id: str) -> None:
        ...

    async def send_booking_status_change(self, booking_id: str, new_status: str) -> None:
        ...

    async def send_payment_confirmation(self, booking_id: str) -> None:
        ...


class NotificationSender(Protocol):
    async def create(self, notification: NotificationInput) -> None:
        ...


class Geocoder(Protocol):
    def geocode(
        self, address: str, city: Optional[str] = None, postal_code: Optional[str] = None
    ) -> Optional[Location]:
        """Coordinates for an address, or None when it cannot be resolved."""


class CachePort(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

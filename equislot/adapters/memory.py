"""
In-memory implementation of every repository port.

Used as the test double for the services and as the base of the JSON file
store. Objects are copied on the way in and out, so callers never share
state with the store except through ``save``.
"""

import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from ..domain.entities import (
    Booking,
    BookingStatus,
    Entity,
    GroupBookingRequest,
    Provider,
    ProviderSchedule,
    Service,
)
from ..services.ports import IntervalOverrides, NotificationInput

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


@dataclass
class StoreData:
    providers: Dict[str, Provider] = field(default_factory=dict)
    services: Dict[str, Service] = field(default_factory=dict)
    schedules: Dict[str, ProviderSchedule] = field(default_factory=dict)
    entities: Dict[str, Entity] = field(default_factory=dict)
    customers: Dict[str, str] = field(default_factory=dict)
    bookings: Dict[str, Booking] = field(default_factory=dict)
    group_bookings: Dict[str, GroupBookingRequest] = field(default_factory=dict)
    entity_intervals: Dict[PairKey, int] = field(default_factory=dict)
    customer_intervals: Dict[PairKey, int] = field(default_factory=dict)


class InMemoryStore:
    """
    Holds all aggregates and hands out one repository per port.

    ``transaction()`` snapshots the data and restores it when the block
    raises. Nested transactions join the outer one.
    """

    def __init__(self, data: Optional[StoreData] = None):
        self.data = data if data is not None else StoreData()
        self._in_transaction = False
        self.bookings = InMemoryBookingRepository(self)
        self.groups = InMemoryGroupBookingRepository(self)
        self.providers = InMemoryProviderRepository(self)
        self.intervals = InMemoryIntervalRepository(self)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryStore"]:
        if self._in_transaction:
            yield self
            return

        snapshot = copy.deepcopy(self.data)
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self.data = snapshot
            self._in_transaction = False
            logger.debug("Transaction rolled back")
            raise
        self._in_transaction = False
        self._committed()

    def _changed(self) -> None:
        if not self._in_transaction:
            self._committed()

    def _committed(self) -> None:
        """Hook for persistent subclasses."""

    # Seeding helpers

    def add_provider(self, provider: Provider) -> Provider:
        self.data.providers[provider.id] = copy.deepcopy(provider)
        self._changed()
        return provider

    def add_service(self, service: Service) -> Service:
        self.data.services[service.id] = copy.deepcopy(service)
        self._changed()
        return service

    def set_schedule(self, schedule: ProviderSchedule) -> ProviderSchedule:
        self.data.schedules[schedule.provider_id] = copy.deepcopy(schedule)
        self._changed()
        return schedule

    def add_entity(self, entity: Entity) -> Entity:
        self.data.entities[entity.id] = copy.deepcopy(entity)
        self._changed()
        return entity

    def add_customer(self, customer_id: str, name: str) -> None:
        self.data.customers[customer_id] = name
        self._changed()

    def add_booking(self, booking: Booking) -> Booking:
        self.data.bookings[booking.id] = copy.deepcopy(booking)
        self._changed()
        return booking

    def add_group(self, group: GroupBookingRequest) -> GroupBookingRequest:
        self.data.group_bookings[group.id] = copy.deepcopy(group)
        self._changed()
        return group


class InMemoryBookingRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def transaction(self):
        return self.store.transaction()

    async def get(self, booking_id: str) -> Optional[Booking]:
        booking = self.store.data.bookings.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    async def save(self, booking: Booking) -> Booking:
        self.store.data.bookings[booking.id] = copy.deepcopy(booking)
        self.store._changed()
        return booking

    async def list_for_provider_on(self, provider_id: str, day: date) -> List[Booking]:
        return await self.list_for_provider_between(provider_id, day, day)

    async def list_for_provider_between(self, provider_id: str, start: date, end: date) -> List[Booking]:
        found = [
            b for b in self.store.data.bookings.values()
            if b.provider_id == provider_id and b.is_active and start <= b.booking_date <= end
        ]
        found.sort(key=lambda b: (b.booking_date, b.start_time))
        return copy.deepcopy(found)

    async def list_completed_for_customers(
        self, customer_ids: Sequence[str], entity_id: Optional[str] = None
    ) -> List[Booking]:
        wanted = set(customer_ids)
        found = [
            b for b in self._completed_with_entity()
            if b.customer_id in wanted and (entity_id is None or b.entity_id == entity_id)
        ]
        return copy.deepcopy(found)

    async def list_completed_for_provider(self, provider_id: str) -> List[Booking]:
        found = [b for b in self._completed_with_entity() if b.provider_id == provider_id]
        return copy.deepcopy(found)

    def _completed_with_entity(self) -> List[Booking]:
        return [
            b for b in self.store.data.bookings.values()
            if b.status == BookingStatus.COMPLETED and b.entity_id
        ]


class InMemoryGroupBookingRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get(self, group_id: str) -> Optional[GroupBookingRequest]:
        group = self.store.data.group_bookings.get(group_id)
        return copy.deepcopy(group) if group else None

    async def get_by_invite_code(self, invite_code: str) -> Optional[GroupBookingRequest]:
        code = invite_code.strip().upper()
        for group in self.store.data.group_bookings.values():
            if group.invite_code.upper() == code:
                return copy.deepcopy(group)
        return None

    async def save(self, group: GroupBookingRequest) -> GroupBookingRequest:
        self.store.data.group_bookings[group.id] = copy.deepcopy(group)
        self.store._changed()
        return group

    async def list_for_user(self, user_id: str) -> List[GroupBookingRequest]:
        found = [
            g for g in self.store.data.group_bookings.values()
            if g.creator_id == user_id or g.has_active_user(user_id)
        ]
        found.sort(key=lambda g: g.created_at, reverse=True)
        return copy.deepcopy(found)


class InMemoryProviderRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        return copy.deepcopy(self.store.data.providers.get(provider_id))

    async def get_provider_for_user(self, user_id: str) -> Optional[Provider]:
        for provider in self.store.data.providers.values():
            if provider.user_id == user_id:
                return copy.deepcopy(provider)
        return None

    async def get_service(self, service_id: str) -> Optional[Service]:
        return copy.deepcopy(self.store.data.services.get(service_id))

    async def get_schedule(self, provider_id: str) -> Optional[ProviderSchedule]:
        schedule = self.store.data.schedules.get(provider_id)
        if schedule is None and provider_id in self.store.data.providers:
            # known provider without configured hours: closed every day
            return ProviderSchedule(provider_id=provider_id)
        return copy.deepcopy(schedule)

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        return copy.deepcopy(self.store.data.entities.get(entity_id))

    async def get_customer_name(self, customer_id: str) -> str:
        return self.store.data.customers.get(customer_id, customer_id)


class InMemoryIntervalRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_entity_override(self, entity_id: str, service_id: str) -> Optional[int]:
        return self.store.data.entity_intervals.get((entity_id, service_id))

    async def get_customer_override(self, entity_id: str, service_id: str) -> Optional[int]:
        return self.store.data.customer_intervals.get((entity_id, service_id))

    async def set_entity_override(self, entity_id: str, service_id: str, weeks: Optional[int]) -> None:
        _set_or_clear(self.store.data.entity_intervals, (entity_id, service_id), weeks)
        self.store._changed()

    async def set_customer_override(self, entity_id: str, service_id: str, weeks: Optional[int]) -> None:
        _set_or_clear(self.store.data.customer_intervals, (entity_id, service_id), weeks)
        self.store._changed()

    async def list_for_entities(self, entity_ids: Sequence[str]) -> IntervalOverrides:
        wanted = set(entity_ids)
        return IntervalOverrides(
            entity={k: v for k, v in self.store.data.entity_intervals.items() if k[0] in wanted},
            customer={k: v for k, v in self.store.data.customer_intervals.items() if k[0] in wanted},
        )


def _set_or_clear(table: Dict[PairKey, int], key: PairKey, weeks: Optional[int]) -> None:
    if weeks is None:
        table.pop(key, None)
        return
    if weeks <= 0:
        raise ValueError("Interval weeks must be greater than zero")
    table[key] = weeks


class RecordingEmailSender:
    """Keeps every email request in ``sent`` as ``(kind, booking_id, extra)``."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Optional[str]]] = []

    async def send_booking_confirmation(self, booking_id: str) -> None:
        self.sent.append(("booking_confirmation", booking_id, None))

    async def send_booking_status_change(self, booking_id: str, new_status: str) -> None:
        self.sent.append(("booking_status_change", booking_id, new_status))

    async def send_payment_confirmation(self, booking_id: str) -> None:
        self.sent.append(("payment_confirmation", booking_id, None))


class RecordingNotificationSender:
    def __init__(self):
        self.notifications: List[NotificationInput] = []

    async def create(self, notification: NotificationInput) -> None:
        self.notifications.append(notification)

    def for_user(self, user_id: str) -> List[NotificationInput]:
        return [n for n in self.notifications if n.user_id == user_id]

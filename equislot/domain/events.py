"""
Domain events emitted by the booking lifecycle.

Events are immutable records created once per occurrence and handed to the
in-process dispatcher. They are not persisted.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

import pendulum

from .entities import ActorRole, BookingStatus


class BookingEventType(str, Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_STATUS_CHANGED = "BOOKING_STATUS_CHANGED"
    BOOKING_PAYMENT_RECEIVED = "BOOKING_PAYMENT_RECEIVED"


@dataclass(frozen=True)
class BookingCreatedPayload:
    booking_id: str
    customer_id: str
    provider_id: str
    provider_user_id: str
    customer_name: str
    service_name: str
    booking_date: date
    start_time: str
    entity_name: Optional[str] = None


@dataclass(frozen=True)
class BookingStatusChangedPayload:
    booking_id: str
    customer_id: str
    provider_id: str
    provider_user_id: str
    customer_name: str
    provider_name: str
    service_name: str
    booking_date: date
    start_time: Optional[str]
    old_status: BookingStatus
    new_status: BookingStatus
    changed_by: ActorRole
    cancellation_message: Optional[str] = None


@dataclass(frozen=True)
class BookingPaymentReceivedPayload:
    booking_id: str
    payment_id: str
    customer_id: str
    provider_user_id: str
    customer_name: str
    service_name: str
    booking_date: date
    amount: float
    currency: str = "SEK"


EventPayload = Union[
    BookingCreatedPayload,
    BookingStatusChangedPayload,
    BookingPaymentReceivedPayload,
]


@dataclass(frozen=True)
class BookingEvent:
    event_type: BookingEventType
    payload: EventPayload
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: pendulum.now("UTC"))


def booking_created(payload: BookingCreatedPayload) -> BookingEvent:
    return BookingEvent(event_type=BookingEventType.BOOKING_CREATED, payload=payload)


def booking_status_changed(payload: BookingStatusChangedPayload) -> BookingEvent:
    return BookingEvent(event_type=BookingEventType.BOOKING_STATUS_CHANGED, payload=payload)


def booking_payment_received(payload: BookingPaymentReceivedPayload) -> BookingEvent:
    return BookingEvent(event_type=BookingEventType.BOOKING_PAYMENT_RECEIVED, payload=payload)

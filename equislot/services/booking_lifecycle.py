"""
Booking creation, status transitions and payments.

Every successful change publishes a domain event; side effects (email,
notifications, logging) run from the dispatcher and never influence the
result returned here.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

import pendulum

from ..domain.booking_rules import BookingRules, end_time_for, validate_booking_interval
from ..domain.booking_status import transition
from ..domain.entities import (
    Actor,
    ActorRole,
    Booking,
    BookingStatus,
    Payment,
    Provider,
    Service,
)
from ..domain.events import (
    BookingCreatedPayload,
    BookingPaymentReceivedPayload,
    BookingStatusChangedPayload,
    booking_created,
    booking_payment_received,
    booking_status_changed,
)
from ..domain.models import Location, parse_time
from ..domain.result import ErrorCode, Result, fail, ok
from ..domain.travel_time import BookingWithLocation, TravelTimeService
from .event_dispatcher import EventDispatcher
from .ports import BookingRepository, ProviderRepository

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


@dataclass
class CreateBookingInput:
    customer_id: str
    provider_id: str
    service_id: str
    booking_date: date
    start_time: str
    end_time: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    customer_notes: Optional[str] = None
    location: Optional[Location] = None


def _new_id() -> str:
    return str(uuid.uuid4())


class BookingLifecycleService:
    """
    Application service for a single booking's lifecycle.

    Unknown bookings and bookings the actor does not own fail the same way
    (``BOOKING_NOT_FOUND``), so callers cannot discover other users' data.
    """

    def __init__(
        self,
        *,
        bookings: BookingRepository,
        providers: ProviderRepository,
        dispatcher: EventDispatcher,
        rules: Optional[BookingRules] = None,
        travel_time_service: Optional[TravelTimeService] = None,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], datetime] = lambda: pendulum.now("UTC"),
    ) -> None:
        self._bookings = bookings
        self._providers = providers
        self._dispatcher = dispatcher
        self._rules = rules if rules is not None else BookingRules()
        self._travel_time_service = travel_time_service
        self._id_factory = id_factory
        self._clock = clock

    async def create_booking(self, data: CreateBookingInput) -> Result:
        """Create an online booking; it starts as ``pending``."""
        return await self._create(data, status=BookingStatus.PENDING, is_manual=False)

    async def create_manual_booking(self, provider_user_id: str, data: CreateBookingInput) -> Result:
        """
        Create a booking entered by the provider; it starts as ``confirmed``.

        The acting user must own ``data.provider_id``.
        """
        provider = await self._providers.get_provider_for_user(provider_user_id)
        if provider is None or provider.id != data.provider_id:
            return fail(ErrorCode.NOT_FOUND, "Provider not found")
        return await self._create(data, status=BookingStatus.CONFIRMED, is_manual=True)

    async def _create(self, data: CreateBookingInput, *, status: BookingStatus, is_manual: bool) -> Result:
        service = await self._providers.get_service(data.service_id)
        if service is None or not service.is_active:
            return fail(ErrorCode.INACTIVE_SERVICE, "The service is not available")
        if service.provider_id != data.provider_id:
            return fail(ErrorCode.SERVICE_PROVIDER_MISMATCH, "The service does not belong to the provider")

        provider = await self._providers.get_provider(data.provider_id)
        if provider is None or not provider.is_active:
            return fail(ErrorCode.INACTIVE_PROVIDER, "The provider is not active")
        if not is_manual and provider.user_id == data.customer_id:
            return fail(ErrorCode.SELF_BOOKING, "Providers cannot book their own services")

        try:
            parse_time(data.start_time)
        except ValueError as exc:
            return fail(ErrorCode.INVALID_TIMES, f"Invalid start time: {exc}")

        end_time = data.end_time or end_time_for(data.start_time, service.duration_minutes)
        interval_result = validate_booking_interval(data.start_time, end_time, self._rules)
        if interval_result.is_failure:
            return interval_result
        interval = interval_result.value

        booking = Booking(
            id=self._id_factory(),
            customer_id=data.customer_id,
            provider_id=data.provider_id,
            service_id=data.service_id,
            booking_date=data.booking_date,
            start_time=interval.start_time,
            end_time=interval.end_time,
            status=status,
            entity_id=data.entity_id,
            entity_name=data.entity_name,
            customer_notes=data.customer_notes,
            location=data.location,
            is_manual=is_manual,
            created_at=self._clock(),
        )

        async with self._bookings.transaction():
            same_day = await self._bookings.list_for_provider_on(data.provider_id, data.booking_date)
            if any(existing.interval.overlaps(interval) for existing in same_day):
                return fail(ErrorCode.OVERLAP, "The provider is already booked at the selected time")

            if self._travel_time_service is not None and data.location is not None:
                validation = self._travel_time_service.has_enough_travel_time(
                    BookingWithLocation(id=booking.id, interval=interval, location=data.location),
                    [
                        BookingWithLocation(id=b.id, interval=b.interval, location=b.location)
                        for b in same_day
                    ],
                )
                if not validation.valid:
                    return fail(
                        ErrorCode.INSUFFICIENT_TRAVEL_TIME,
                        validation.error,
                        required_gap_minutes=validation.required_gap_minutes,
                        actual_gap_minutes=validation.actual_gap_minutes,
                    )

            await self._bookings.save(booking)

        customer_name = await self._providers.get_customer_name(booking.customer_id)
        self._dispatcher.publish(
            booking_created(
                BookingCreatedPayload(
                    booking_id=booking.id,
                    customer_id=booking.customer_id,
                    provider_id=booking.provider_id,
                    provider_user_id=provider.user_id,
                    customer_name=customer_name,
                    service_name=service.name,
                    booking_date=booking.booking_date,
                    start_time=booking.start_time,
                    entity_name=booking.entity_name,
                )
            )
        )

        logger.info(
            "Booking %s created with status %s",
            booking.id,
            booking.status.value,
            extra={"booking_id": booking.id, "provider_id": booking.provider_id},
        )
        return ok(booking)

    async def update_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: Actor,
        cancellation_message: Optional[str] = None,
    ) -> Result:
        """Apply a status transition on behalf of the booking's provider or customer."""
        booking = await self._find_for_actor(booking_id, actor)
        if booking is None:
            return self._not_found()

        transition_result = transition(booking.status, new_status)
        if transition_result.is_failure:
            return transition_result

        old_status = booking.status
        booking.status = transition_result.value
        if new_status == BookingStatus.CANCELLED:
            booking.cancellation_message = cancellation_message
        await self._bookings.save(booking)

        provider, service = await self._provider_and_service(booking)
        customer_name = await self._providers.get_customer_name(booking.customer_id)
        self._dispatcher.publish(
            booking_status_changed(
                BookingStatusChangedPayload(
                    booking_id=booking.id,
                    customer_id=booking.customer_id,
                    provider_id=booking.provider_id,
                    provider_user_id=provider.user_id if provider else "",
                    customer_name=customer_name,
                    provider_name=provider.business_name if provider else "",
                    service_name=service.name if service else "",
                    booking_date=booking.booking_date,
                    start_time=booking.start_time,
                    old_status=old_status,
                    new_status=booking.status,
                    changed_by=actor.role,
                    cancellation_message=booking.cancellation_message,
                )
            )
        )

        logger.info(
            "Booking %s changed from %s to %s by %s",
            booking.id,
            old_status.value,
            booking.status.value,
            actor.role.value,
            extra={"booking_id": booking.id},
        )
        return ok(booking)

    async def record_payment(
        self,
        booking_id: str,
        customer_id: str,
        amount: Optional[float] = None,
        currency: str = "SEK",
        payment_id: Optional[str] = None,
    ) -> Result:
        """
        Register a completed payment for a confirmed or completed booking.

        The amount defaults to the service price.
        """
        actor = Actor(user_id=customer_id, role=ActorRole.CUSTOMER)
        booking = await self._find_for_actor(booking_id, actor)
        if booking is None:
            return self._not_found()

        if booking.payment is not None:
            return fail(ErrorCode.ALREADY_PAID, "The booking is already paid")
        if booking.status not in PAYABLE_STATUSES:
            return fail(
                ErrorCode.BOOKING_NOT_PAYABLE,
                "The booking must be confirmed before it can be paid",
            )

        provider, service = await self._provider_and_service(booking)
        if amount is None:
            amount = service.price if service else 0.0

        booking.payment = Payment(
            id=payment_id or self._id_factory(),
            amount=amount,
            currency=currency,
            paid_at=self._clock(),
        )
        await self._bookings.save(booking)

        customer_name = await self._providers.get_customer_name(booking.customer_id)
        self._dispatcher.publish(
            booking_payment_received(
                BookingPaymentReceivedPayload(
                    booking_id=booking.id,
                    payment_id=booking.payment.id,
                    customer_id=booking.customer_id,
                    provider_user_id=provider.user_id if provider else "",
                    customer_name=customer_name,
                    service_name=service.name if service else "",
                    booking_date=booking.booking_date,
                    amount=amount,
                    currency=currency,
                )
            )
        )
        return ok(booking)

    async def _find_for_actor(self, booking_id: str, actor: Actor) -> Optional[Booking]:
        booking = await self._bookings.get(booking_id)
        if booking is None:
            return None

        if actor.role == ActorRole.PROVIDER:
            provider = await self._providers.get_provider_for_user(actor.user_id)
            if provider is None or provider.id != booking.provider_id:
                return None
        elif booking.customer_id != actor.user_id:
            return None

        return booking

    async def _provider_and_service(self, booking: Booking):
        provider: Optional[Provider] = await self._providers.get_provider(booking.provider_id)
        service: Optional[Service] = await self._providers.get_service(booking.service_id)
        return provider, service

    @staticmethod
    def _not_found() -> Result:
        return fail(
            ErrorCode.BOOKING_NOT_FOUND,
            "Booking not found or you do not have permission to change it",
        )

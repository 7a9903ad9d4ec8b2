"""
Availability service - Orchestrates the slot calculator and travel-time filter.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import pendulum

from ..domain.entities import Booking
from ..domain.models import DayAvailability, Location
from ..domain.result import ErrorCode, Result, fail, ok
from ..domain.slot_calculator import SlotCalculator
from ..domain.travel_time import BookingWithLocation, TravelTimeSlotFilter
from .ports import BookingRepository, Geocoder, ProviderRepository

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Stockholm"


class AvailabilityService:
    """
    Builds bookable days for a provider.

    Uses dependency injection for testability:
    - providers: schedule and service lookups
    - bookings: the provider's existing bookings
    - calculator / slot_filter: the domain rules
    - geocoder: optional, resolves a customer address to a location
    """

    def __init__(
        self,
        *,
        providers: ProviderRepository,
        bookings: BookingRepository,
        calculator: Optional[SlotCalculator] = None,
        slot_filter: Optional[TravelTimeSlotFilter] = None,
        geocoder: Optional[Geocoder] = None,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.providers = providers
        self.bookings = bookings
        self.calculator = calculator if calculator is not None else SlotCalculator()
        self.slot_filter = slot_filter if slot_filter is not None else TravelTimeSlotFilter()
        self.geocoder = geocoder
        self.timezone = timezone

    async def get_week_availability(
        self,
        provider_id: str,
        start_date: date,
        days: int = 7,
        service_duration_minutes: Optional[int] = None,
        service_id: Optional[str] = None,
        customer_location: Optional[Location] = None,
        customer_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Result:
        """
        Calculate availability for ``days`` consecutive dates.

        Args:
            provider_id: Provider whose calendar is read
            start_date: First date to calculate
            days: Number of dates, at least 1
            service_duration_minutes: Slot length; taken from ``service_id`` when omitted
            service_id: Service whose duration is used
            customer_location: Enables travel-time filtering
            customer_address: Geocoded when no location is given
            now: Current time; defaults to the configured timezone's clock

        Returns:
            Success with one ``DayAvailability`` per date, slots filled in
        """
        if days < 1:
            return fail(ErrorCode.INVALID_INPUT, "days must be at least 1")

        schedule = await self.providers.get_schedule(provider_id)
        if schedule is None:
            return fail(ErrorCode.NOT_FOUND, "Provider not found")

        duration = service_duration_minutes
        if duration is None and service_id is not None:
            service = await self.providers.get_service(service_id)
            if service is None or service.provider_id != provider_id:
                return fail(ErrorCode.NOT_FOUND, "Service not found")
            duration = service.duration_minutes
        if duration is None or duration <= 0:
            return fail(ErrorCode.INVALID_INPUT, "A positive service duration is required")

        if customer_location is None and customer_address:
            customer_location = await self._locate(customer_address)

        local_now = self._local_now(now)
        end_date = start_date + timedelta(days=days - 1)
        bookings = await self.bookings.list_for_provider_between(provider_id, start_date, end_date)
        by_date: Dict[date, List[Booking]] = defaultdict(list)
        for booking in bookings:
            if booking.is_active:
                by_date[booking.booking_date].append(booking)

        result = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            hours = schedule.hours_for(day)
            exception = schedule.exceptions.get(day)
            day_bookings = by_date.get(day, [])

            availability = DayAvailability(
                date=day,
                is_closed=hours.is_closed,
                opening_time=hours.opening_time,
                closing_time=hours.closing_time,
                booked_slots=[b.interval for b in day_bookings],
                closed_reason=exception.reason if exception and hours.is_closed else None,
            )
            slots = self.calculator.calculate_for_day(availability, duration, local_now)
            availability.slots = self.slot_filter.apply(
                slots,
                [
                    BookingWithLocation(id=b.id, interval=b.interval, location=b.location)
                    for b in day_bookings
                ],
                customer_location,
            )
            result.append(availability)

        logger.debug(
            "Calculated availability for %s days",
            days,
            extra={"provider_id": provider_id, "travel_aware": customer_location is not None},
        )
        return ok(result)

    async def _locate(self, address: str) -> Optional[Location]:
        if self.geocoder is None:
            return None
        location = await asyncio.to_thread(self.geocoder.geocode, address)
        if location is None:
            logger.info("Customer address could not be geocoded; travel time not enforced")
        return location

    def _local_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return pendulum.now(self.timezone)
        return pendulum.instance(now).in_timezone(self.timezone)

"""
Travel-time rules between consecutive bookings.

Providers drive between customers, so a new booking needs enough time after
the previous booking (and before the next one) to wrap up and travel. The
estimate is the straight-line distance at an average speed, padded by a
margin factor for real roads, plus a fixed setup buffer.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence

from .models import DayAvailability, Interval, Location, TimeSlot, UnavailableReason
from .slot_calculator import SlotCalculator

DEFAULT_AVERAGE_SPEED_KMH = 50.0
DEFAULT_MIN_BUFFER_MINUTES = 60
DEFAULT_DEFAULT_BUFFER_MINUTES = 60
DEFAULT_MARGIN_FACTOR = 1.2


@dataclass(frozen=True)
class TravelTimeConfig:
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH
    min_buffer_minutes: int = DEFAULT_MIN_BUFFER_MINUTES
    default_buffer_minutes: int = DEFAULT_DEFAULT_BUFFER_MINUTES
    margin_factor: float = DEFAULT_MARGIN_FACTOR


@dataclass(frozen=True)
class BookingWithLocation:
    """A booking on the provider's day, reduced to what travel rules need."""
    id: str
    interval: Interval
    location: Optional[Location] = None


@dataclass(frozen=True)
class TravelTimeValidation:
    valid: bool
    error: Optional[str] = None
    travel_time_minutes: Optional[int] = None
    required_gap_minutes: Optional[int] = None
    actual_gap_minutes: Optional[int] = None


class TravelTimeService:
    """Validates that a booking leaves room to travel to and from its neighbours."""

    def __init__(self, config: Optional[TravelTimeConfig] = None):
        self.config = config if config is not None else TravelTimeConfig()

    def calculate_travel_time_minutes(self, origin: Location, destination: Location) -> int:
        """Travel time including the road margin, rounded up to whole minutes."""
        base = origin.travel_time_to(destination, self.config.average_speed_kmh)
        return math.ceil(base * self.config.margin_factor)

    def required_gap_minutes(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
    ) -> int:
        """Minimum gap between two bookings; falls back to the default buffer."""
        if origin is None or destination is None:
            return self.config.default_buffer_minutes

        travel = self.calculate_travel_time_minutes(origin, destination)
        return max(travel + self.config.min_buffer_minutes, self.config.min_buffer_minutes)

    def has_enough_travel_time(
        self,
        new_booking: BookingWithLocation,
        existing_bookings: Sequence[BookingWithLocation],
    ) -> TravelTimeValidation:
        """
        Check the gap to the previous and the next booking on the same day.

        Bookings overlapping ``new_booking`` are ignored here; overlap is
        reported separately as "booked".
        """
        if not existing_bookings:
            return TravelTimeValidation(valid=True)

        ordered = sorted(existing_bookings, key=lambda b: b.interval.start_minutes)
        new_start = new_booking.interval.start_minutes
        new_end = new_booking.interval.end_minutes

        previous = self._find_previous(ordered, new_start)
        following = self._find_next(ordered, new_end)

        if previous is not None:
            gap = new_start - previous.interval.end_minutes
            required = self.required_gap_minutes(previous.location, new_booking.location)
            if gap < required:
                return TravelTimeValidation(
                    valid=False,
                    error=self._format_error(required, gap, "previous"),
                    required_gap_minutes=required,
                    actual_gap_minutes=gap,
                )

        if following is not None:
            gap = following.interval.start_minutes - new_end
            required = self.required_gap_minutes(new_booking.location, following.location)
            if gap < required:
                return TravelTimeValidation(
                    valid=False,
                    error=self._format_error(required, gap, "next"),
                    required_gap_minutes=required,
                    actual_gap_minutes=gap,
                )

        travel_time = None
        if previous is not None and previous.location and new_booking.location:
            travel_time = self.calculate_travel_time_minutes(previous.location, new_booking.location)

        return TravelTimeValidation(valid=True, travel_time_minutes=travel_time)

    @staticmethod
    def _find_previous(
        ordered: List[BookingWithLocation],
        before_minutes: int,
    ) -> Optional[BookingWithLocation]:
        previous = None
        for booking in ordered:
            if booking.interval.end_minutes <= before_minutes:
                previous = booking
            else:
                break
        return previous

    @staticmethod
    def _find_next(
        ordered: List[BookingWithLocation],
        after_minutes: int,
    ) -> Optional[BookingWithLocation]:
        for booking in ordered:
            if booking.interval.start_minutes >= after_minutes:
                return booking
        return None

    def _format_error(self, required: int, actual: int, direction: str) -> str:
        if required == self.config.min_buffer_minutes:
            return (
                f"Not enough time to the {direction} booking. "
                f"At least {required} minutes of buffer are required."
            )
        return (
            f"Not enough travel time to the {direction} booking. "
            f"{required} minutes required (including buffer), only {actual} available."
        )


class TravelTimeSlotFilter:
    """
    Marks slots that cannot be reached in time as "travel-time".

    Only available slots are inspected, so "past" and "booked" reasons are
    never overwritten. Without a customer location nothing is blocked: the
    provider can still decline, which is preferable to hiding bookable time.
    """

    def __init__(self, travel_time_service: Optional[TravelTimeService] = None):
        self.travel_time_service = travel_time_service if travel_time_service is not None else TravelTimeService()

    def apply(
        self,
        slots: Sequence[TimeSlot],
        existing_bookings: Sequence[BookingWithLocation],
        customer_location: Optional[Location],
    ) -> List[TimeSlot]:
        if customer_location is None or not existing_bookings:
            return list(slots)

        filtered: List[TimeSlot] = []
        for slot in slots:
            if not slot.is_available:
                filtered.append(slot)
                continue

            candidate = BookingWithLocation(
                id="candidate",
                interval=slot.interval,
                location=customer_location,
            )
            validation = self.travel_time_service.has_enough_travel_time(
                candidate,
                existing_bookings,
            )
            if validation.valid:
                filtered.append(slot)
            else:
                filtered.append(slot.mark_unavailable(UnavailableReason.TRAVEL_TIME))

        return filtered


def select_day_slots(
    day: DayAvailability,
    service_duration_minutes: int,
    current_datetime: Optional[datetime] = None,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    calculator: Optional[SlotCalculator] = None,
) -> DayAvailability:
    """
    Resolve the slots to show for a day.

    Server-supplied slots (already travel-aware) are preferred; otherwise the
    slots are calculated locally without travel-time rules.
    """
    if (date_from is not None and day.date < date_from) or (
        date_to is not None and day.date > date_to
    ):
        return DayAvailability(
            date=day.date,
            is_closed=True,
            opening_time=day.opening_time,
            closing_time=day.closing_time,
            booked_slots=list(day.booked_slots),
            slots=[],
            closed_reason="outside_range",
        )

    if not day.has_hours:
        return DayAvailability(
            date=day.date,
            is_closed=day.is_closed,
            opening_time=day.opening_time,
            closing_time=day.closing_time,
            booked_slots=list(day.booked_slots),
            slots=[],
            closed_reason=day.closed_reason,
        )

    if day.slots:
        slots = list(day.slots)
    else:
        slots = (calculator or SlotCalculator()).calculate_for_day(
            day,
            service_duration_minutes,
            current_datetime,
        )

    return DayAvailability(
        date=day.date,
        is_closed=False,
        opening_time=day.opening_time,
        closing_time=day.closing_time,
        booked_slots=list(day.booked_slots),
        slots=slots,
        closed_reason=day.closed_reason,
    )

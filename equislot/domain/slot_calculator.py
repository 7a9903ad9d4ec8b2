"""
Core business logic for generating bookable time slots.

This is pure domain logic without any external dependencies (no repository
access, no I/O). Given a day's opening hours, the bookings already made and
the service duration, it produces fixed-length candidate slots, each marked
available or unavailable with a reason.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from .models import (
    DayAvailability,
    Interval,
    TimeSlot,
    UnavailableReason,
    format_minutes,
    parse_time,
)

MICROS_PER_MINUTE = 60 * 1_000_000


class SlotCalculator:
    """
    Generates candidate slots for a single day.

    Algorithm:
    1. Start at the opening time
    2. Step forward by the service duration, or by a longer slot interval
    3. Drop a final slot that would run past the closing time
    4. Mark slots that already started as "past"
    5. Mark slots overlapping an existing booking as "booked"
    """

    def __init__(self, interval_minutes: Optional[int] = None):
        if interval_minutes is not None and interval_minutes <= 0:
            raise ValueError("interval_minutes must be greater than zero")
        self.interval_minutes = interval_minutes

    def calculate(
        self,
        *,
        opening_time: str,
        closing_time: str,
        booked_slots: Iterable[Interval],
        service_duration_minutes: int,
        date: Optional[date] = None,
        current_datetime: Optional[datetime] = None,
    ) -> List[TimeSlot]:
        """
        Calculate the ordered list of slots for one day.

        Args:
            opening_time: Day start, "HH:MM"
            closing_time: Day end, "HH:MM"
            booked_slots: Intervals already taken on this day
            service_duration_minutes: Length of every generated slot
            date: The calendar day being calculated
            current_datetime: "Now"; only used together with ``date``

        Returns:
            Slots ordered by start time. Empty when the day has no usable hours.
        """
        if service_duration_minutes <= 0:
            raise ValueError("service_duration_minutes must be greater than zero")

        open_minutes = parse_time(opening_time)
        close_minutes = _closing_minutes(closing_time)
        if open_minutes >= close_minutes:
            return []

        # a step shorter than the service would make slots overlap
        step = max(self.interval_minutes or 0, service_duration_minutes)
        booked = sorted(booked_slots, key=lambda interval: interval.start_minutes)
        past_cutoff = self._past_cutoff_micros(date, current_datetime)

        slots: List[TimeSlot] = []
        cursor = open_minutes

        while cursor + service_duration_minutes <= close_minutes:
            candidate = Interval(
                format_minutes(cursor),
                format_minutes(cursor + service_duration_minutes),
            )
            slots.append(self._classify(candidate, booked, past_cutoff))
            cursor += step

        return slots

    def calculate_for_day(
        self,
        day: DayAvailability,
        service_duration_minutes: int,
        current_datetime: Optional[datetime] = None,
    ) -> List[TimeSlot]:
        """Calculate slots for a ``DayAvailability``; closed days yield no slots."""
        if not day.has_hours:
            return []

        return self.calculate(
            opening_time=day.opening_time,
            closing_time=day.closing_time,
            booked_slots=day.booked_slots,
            service_duration_minutes=service_duration_minutes,
            date=day.date,
            current_datetime=current_datetime,
        )

    @staticmethod
    def _classify(
        candidate: Interval,
        booked: List[Interval],
        past_cutoff: Optional[int],
    ) -> TimeSlot:
        # "past" wins over "booked": a slot in the past is never offered again
        if past_cutoff is not None and candidate.start_minutes * MICROS_PER_MINUTE < past_cutoff:
            return TimeSlot(
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                is_available=False,
                unavailable_reason=UnavailableReason.PAST,
            )

        for interval in booked:
            if candidate.overlaps(interval):
                return TimeSlot(
                    start_time=candidate.start_time,
                    end_time=candidate.end_time,
                    is_available=False,
                    unavailable_reason=UnavailableReason.BOOKED,
                )

        return TimeSlot(
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            is_available=True,
        )

    @staticmethod
    def _past_cutoff_micros(
        day: Optional[date],
        current_datetime: Optional[datetime],
    ) -> Optional[int]:
        """
        Microseconds into ``day`` before which slots count as past.

        None means nothing is past (future day or no clock given); a value
        beyond the end of the day means everything is past.
        """
        if day is None or current_datetime is None:
            return None

        today = current_datetime.date()
        if day > today:
            return None
        if day < today:
            return 24 * 60 * MICROS_PER_MINUTE + 1

        return (
            (current_datetime.hour * 60 + current_datetime.minute) * MICROS_PER_MINUTE
            + current_datetime.second * 1_000_000
            + current_datetime.microsecond
        )


def _closing_minutes(closing_time: str) -> int:
    if closing_time.strip()[:5] == "24:00":
        return 24 * 60
    return parse_time(closing_time)


def calculate_available_slots(
    opening_time: str,
    closing_time: str,
    booked_slots: Iterable[Interval],
    service_duration_minutes: int,
    date: Optional[date] = None,
    current_datetime: Optional[datetime] = None,
    interval_minutes: Optional[int] = None,
) -> List[TimeSlot]:
    """Functional entry point around ``SlotCalculator.calculate``."""
    return SlotCalculator(interval_minutes=interval_minutes).calculate(
        opening_time=opening_time,
        closing_time=closing_time,
        booked_slots=booked_slots,
        service_duration_minutes=service_duration_minutes,
        date=date,
        current_datetime=current_datetime,
    )

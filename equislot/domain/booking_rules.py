"""
Validation rules for a booking's time window.
"""

from dataclasses import dataclass

from .models import Interval, add_minutes, parse_time
from .result import ErrorCode, Result, fail, ok


@dataclass(frozen=True)
class BookingRules:
    min_duration_minutes: int = 15
    max_duration_minutes: int = 480
    business_hours_start: int = 8
    business_hours_end: int = 18


def end_time_for(start_time: str, duration_minutes: int) -> str:
    """Derive the end of a booking from its service duration."""
    return add_minutes(start_time, duration_minutes)


def validate_booking_interval(
    start_time: str,
    end_time: str,
    rules: BookingRules = BookingRules(),
) -> Result:
    """
    Check a requested booking window and return it as an ``Interval``.

    The window must be valid "HH:MM" times, end after start, last between
    the minimum and maximum duration, and fall within business hours.
    """
    try:
        start_minutes = parse_time(start_time)
    except ValueError as exc:
        return fail(ErrorCode.INVALID_TIMES, f"Invalid start time: {exc}")
    try:
        end_minutes = parse_time(end_time)
    except ValueError as exc:
        return fail(ErrorCode.INVALID_TIMES, f"Invalid end time: {exc}")

    if end_minutes <= start_minutes:
        return fail(ErrorCode.INVALID_TIMES, "End time must be after start time")

    duration = end_minutes - start_minutes
    if duration < rules.min_duration_minutes:
        return fail(
            ErrorCode.INVALID_TIMES,
            f"A booking must be at least {rules.min_duration_minutes} minutes",
        )
    if duration > rules.max_duration_minutes:
        return fail(
            ErrorCode.INVALID_TIMES,
            f"A booking cannot exceed {rules.max_duration_minutes // 60} hours",
        )

    if (
        start_minutes < rules.business_hours_start * 60
        or end_minutes > rules.business_hours_end * 60
    ):
        return fail(
            ErrorCode.INVALID_TIMES,
            f"A booking must be within business hours "
            f"({rules.business_hours_start:02d}:00-{rules.business_hours_end:02d}:00)",
        )

    return ok(Interval(start_time, end_time))

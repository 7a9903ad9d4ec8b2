"""
Value objects for wall-clock intervals, slots, and locations.

Times inside a day are "HH:MM" strings; arithmetic is done on minutes since
midnight so that intervals never depend on a timezone.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

_TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")

EARTH_RADIUS_KM = 6371.0
DEFAULT_SPEED_KMH = 50.0


def normalize_time(value: str) -> str:
    """Drop a trailing seconds part ("09:30:00" -> "09:30") and validate."""
    if not value or not isinstance(value, str):
        raise ValueError("Time is required")

    normalized = value.strip()[:5]
    if not _TIME_PATTERN.match(normalized):
        raise ValueError(f"Time must be in HH:MM format (00:00-23:59), got {value!r}")
    return normalized


def parse_time(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    normalized = normalize_time(value)
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total_minutes: int) -> str:
    """
    Convert minutes since midnight back to "HH:MM".

    Values of 24:00 and beyond are rendered as-is (e.g. "24:30") so that
    sequences running past midnight stay strictly increasing.
    """
    if total_minutes < 0:
        raise ValueError(f"Minutes must not be negative, got {total_minutes}")
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def add_minutes(start_time: str, minutes: int) -> str:
    """Add a duration to an "HH:MM" time, rolling minutes over into hours."""
    return format_minutes(parse_time(start_time) + minutes)


@dataclass(frozen=True)
class Interval:
    """
    A start/end pair on a single calendar day.

    Invariant: start must be before end.
    """
    start_time: str
    end_time: str

    def __post_init__(self):
        object.__setattr__(self, "start_time", normalize_time(self.start_time))
        object.__setattr__(self, "end_time", _normalize_end(self.end_time))
        if self.start_minutes >= self.end_minutes:
            raise ValueError(
                f"Start time {self.start_time} must be before end time {self.end_time}"
            )

    @property
    def start_minutes(self) -> int:
        return parse_time(self.start_time)

    @property
    def end_minutes(self) -> int:
        return _end_to_minutes(self.end_time)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "Interval") -> bool:
        """Half-open overlap: touching intervals do not overlap."""
        return self.start_minutes < other.end_minutes and self.end_minutes > other.start_minutes

    def contains(self, other: "Interval") -> bool:
        return self.start_minutes <= other.start_minutes and self.end_minutes >= other.end_minutes

    def is_adjacent_to(self, other: "Interval") -> bool:
        return self.end_minutes == other.start_minutes or other.end_minutes == self.start_minutes

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


def _normalize_end(value: str) -> str:
    # "24:00" is accepted as an end-of-day marker
    if isinstance(value, str) and value.strip()[:5] == "24:00":
        return "24:00"
    return normalize_time(value)


def _end_to_minutes(value: str) -> int:
    if value == "24:00":
        return 24 * 60
    return parse_time(value)


class UnavailableReason(str, Enum):
    """Why a generated slot cannot be booked."""
    BOOKED = "booked"
    TRAVEL_TIME = "travel-time"
    PAST = "past"


@dataclass(frozen=True)
class TimeSlot:
    """A candidate appointment window. Regenerated on every query."""
    start_time: str
    end_time: str
    is_available: bool
    unavailable_reason: Optional[UnavailableReason] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def mark_unavailable(self, reason: UnavailableReason) -> "TimeSlot":
        """Return a copy of this slot flagged with ``reason``."""
        return TimeSlot(
            start_time=self.start_time,
            end_time=self.end_time,
            is_available=False,
            unavailable_reason=reason,
        )

    def format_display(self) -> str:
        if self.is_available:
            return f"{self.start_time} – {self.end_time}"
        return f"{self.start_time} – {self.end_time} ({self.unavailable_reason.value})"


@dataclass
class DayAvailability:
    """
    One calendar day of a provider's availability.

    ``slots`` carries pre-calculated slots when the server already applied
    travel-time rules; otherwise the consumer calculates them locally.
    """
    date: date
    is_closed: bool
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    booked_slots: List[Interval] = field(default_factory=list)
    slots: Optional[List[TimeSlot]] = None
    closed_reason: Optional[str] = None

    @property
    def has_hours(self) -> bool:
        return not self.is_closed and bool(self.opening_time) and bool(self.closing_time)


@dataclass(frozen=True)
class Location:
    """A geographic point, optionally labelled with an address."""
    latitude: float
    longitude: float
    address: Optional[str] = None

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Latitude must be between -90 and 90, got {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"Longitude must be between -180 and 180, got {self.longitude}")

    def distance_to(self, other: "Location") -> float:
        """Great-circle (haversine) distance in kilometres."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        d_lat = lat2 - lat1
        d_lon = math.radians(other.longitude - self.longitude)

        a = (
            math.sin(d_lat / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_KM * c

    def travel_time_to(self, other: "Location", speed_kmh: float = DEFAULT_SPEED_KMH) -> float:
        """Straight-line travel time in minutes at ``speed_kmh``."""
        if speed_kmh <= 0:
            raise ValueError("speed_kmh must be greater than zero")
        return self.distance_to(other) / speed_kmh * 60

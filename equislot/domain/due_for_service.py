"""
Recurring-service reminders.

Each (entity, service) pair has a cadence in weeks, resolved from three
sources. Comparing the last completed visit with that cadence tells whether
the next visit is overdue, coming up, or not yet relevant.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Hashable, Iterable, List, Optional, TypeVar

import pendulum

UPCOMING_THRESHOLD_DAYS = 14

V = TypeVar("V")


class DueStatus(str, Enum):
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    OK = "ok"


@dataclass(frozen=True)
class ServiceRecord:
    """The latest completed visit for one (entity, service) pair."""
    entity_id: str
    entity_name: str
    service_id: str
    service_name: str
    last_service_date: date
    interval_weeks: int


@dataclass(frozen=True)
class DueForServiceResult:
    entity_id: str
    entity_name: str
    service_id: str
    service_name: str
    last_service_date: date
    interval_weeks: int
    days_until_due: int
    status: DueStatus
    days_since_service: int
    due_date: date


@dataclass(frozen=True)
class CompletedVisit:
    """A completed booking as read from the booking history."""
    customer_id: str
    entity_id: str
    entity_name: str
    service_id: str
    service_name: str
    booking_date: date
    service_default_weeks: Optional[int] = None


def resolve_interval(
    service_default_weeks: Optional[int],
    entity_override_weeks: Optional[int] = None,
    customer_override_weeks: Optional[int] = None,
) -> Optional[int]:
    """
    Pick the cadence for an (entity, service) pair.

    The provider's override for this entity wins, then the customer's own
    preference, then the service's recommended default. None means no
    recurrence is configured and the pair is left out of due lists.
    """
    for weeks in (entity_override_weeks, customer_override_weeks, service_default_weeks):
        if weeks is not None:
            return weeks
    return None


def days_since(last_service: date, now: datetime) -> int:
    """Whole days elapsed between the last visit and ``now``."""
    if isinstance(last_service, datetime):
        elapsed = now - last_service
        return math.floor(elapsed.total_seconds() / 86400)
    return (now.date() - last_service).days


def calculate_due_status(
    record: ServiceRecord,
    now: Optional[datetime] = None,
    upcoming_threshold_days: int = UPCOMING_THRESHOLD_DAYS,
) -> DueForServiceResult:
    """
    Compute how many days remain until the next visit is due.

    Negative ``days_until_due`` means overdue; zero up to the threshold is
    upcoming; anything later is ok.
    """
    now = now or pendulum.now()
    elapsed = days_since(record.last_service_date, now)
    interval_days = record.interval_weeks * 7
    days_until_due = interval_days - elapsed

    if days_until_due < 0:
        status = DueStatus.OVERDUE
    elif days_until_due <= upcoming_threshold_days:
        status = DueStatus.UPCOMING
    else:
        status = DueStatus.OK

    return DueForServiceResult(
        entity_id=record.entity_id,
        entity_name=record.entity_name,
        service_id=record.service_id,
        service_name=record.service_name,
        last_service_date=record.last_service_date,
        interval_weeks=record.interval_weeks,
        days_until_due=days_until_due,
        status=status,
        days_since_service=elapsed,
        due_date=record.last_service_date + timedelta(days=interval_days),
    )


def latest_by_key(
    items: Iterable[V],
    key: Callable[[V], Hashable],
    when: Callable[[V], date],
) -> List[V]:
    """
    Keep only the most recent item per key.

    Recency is decided by ``when``, never by input order, so history can be
    read in any order.
    """
    latest: Dict[Hashable, V] = {}
    for item in items:
        item_key = key(item)
        current = latest.get(item_key)
        if current is None or when(item) > when(current):
            latest[item_key] = item
    return list(latest.values())


def sort_by_urgency(results: Iterable[DueForServiceResult]) -> List[DueForServiceResult]:
    """Most overdue first (ascending days until due)."""
    return sorted(results, key=lambda result: result.days_until_due)

"""
Read-side queries for due-for-service reminders.

History comes from completed bookings that name an entity. Only the latest
visit per (entity, service) pair counts; its cadence is resolved from the
provider override, the customer preference and the service default.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pendulum

from ..domain.due_for_service import (
    UPCOMING_THRESHOLD_DAYS,
    CompletedVisit,
    DueForServiceResult,
    DueStatus,
    ServiceRecord,
    calculate_due_status,
    latest_by_key,
    resolve_interval,
    sort_by_urgency,
)
from ..domain.entities import Booking
from ..domain.result import ErrorCode, Result, fail, ok
from .ports import BookingRepository, IntervalRepository, ProviderRepository

logger = logging.getLogger(__name__)

REMINDER_STATUSES = (DueStatus.OVERDUE, DueStatus.UPCOMING)


class DueForServiceService:
    def __init__(
        self,
        *,
        bookings: BookingRepository,
        providers: ProviderRepository,
        intervals: IntervalRepository,
        upcoming_threshold_days: int = UPCOMING_THRESHOLD_DAYS,
        clock: Callable[[], datetime] = pendulum.now,
    ):
        self.bookings = bookings
        self.providers = providers
        self.intervals = intervals
        self.upcoming_threshold_days = upcoming_threshold_days
        self.clock = clock

    async def get_for_customer(self, customer_id: str) -> Result:
        """Overdue and upcoming items for all of a customer's entities, most urgent first."""
        history = await self.bookings.list_completed_for_customers([customer_id])
        visits = await self._to_visits(history)
        results = await self._evaluate(
            latest_by_key(visits, key=_pair_key, when=_visit_date)
        )
        return ok(_reminders_only(results))

    async def get_for_entity(self, entity_id: str, customer_id: str) -> Result:
        """Like ``get_for_customer`` but for one entity the customer owns."""
        entity = await self.providers.get_entity(entity_id)
        if entity is None or entity.owner_id != customer_id:
            return fail(ErrorCode.NOT_FOUND, "Entity not found")

        history = await self.bookings.list_completed_for_customers([customer_id], entity_id=entity_id)
        visits = await self._to_visits(history)
        results = await self._evaluate(
            latest_by_key(visits, key=_pair_key, when=_visit_date)
        )
        return ok(_reminders_only(results))

    async def get_for_provider(self, provider_id: str, status: Optional[DueStatus] = None) -> Result:
        """
        Every entity a provider has served, with its due status.

        Args:
            provider_id: The provider whose completed bookings are read
            status: Keep only results with this status

        Returns:
            Success with results sorted by ascending days until due
        """
        history = await self.bookings.list_completed_for_provider(provider_id)
        visits = await self._to_visits(history)
        results = await self._evaluate(
            latest_by_key(visits, key=_pair_key, when=_visit_date)
        )
        if status is not None:
            results = [r for r in results if r.status == status]
        return ok(sort_by_urgency(results))

    async def get_overdue_for_customers(self, customer_ids: Sequence[str]) -> Result:
        """
        Batch lookup of overdue items, keyed by customer id.

        Customers without anything overdue are left out of the mapping.
        """
        if not customer_ids:
            return ok({})

        history = await self.bookings.list_completed_for_customers(list(customer_ids))
        visits = await self._to_visits(history)
        latest = latest_by_key(
            visits,
            key=lambda v: (v.customer_id, v.entity_id, v.service_id),
            when=_visit_date,
        )

        per_customer: Dict[str, List[CompletedVisit]] = defaultdict(list)
        for visit in latest:
            per_customer[visit.customer_id].append(visit)

        overdue: Dict[str, List[DueForServiceResult]] = {}
        for customer_id, customer_visits in per_customer.items():
            results = [
                r for r in await self._evaluate(customer_visits) if r.status == DueStatus.OVERDUE
            ]
            if results:
                overdue[customer_id] = sort_by_urgency(results)

        logger.debug(
            "Overdue lookup done",
            extra={"customers": len(customer_ids), "with_overdue": len(overdue)},
        )
        return ok(overdue)

    async def _to_visits(self, history: Iterable[Booking]) -> List[CompletedVisit]:
        services = {}
        visits = []
        for booking in history:
            if not booking.entity_id:
                continue
            if booking.service_id not in services:
                services[booking.service_id] = await self.providers.get_service(booking.service_id)
            service = services[booking.service_id]
            if service is None:
                logger.warning(
                    "Skipping booking with unknown service",
                    extra={"booking_id": booking.id, "service_id": booking.service_id},
                )
                continue

            entity_name = booking.entity_name
            if not entity_name:
                entity = await self.providers.get_entity(booking.entity_id)
                entity_name = entity.name if entity else ""

            visits.append(
                CompletedVisit(
                    customer_id=booking.customer_id,
                    entity_id=booking.entity_id,
                    entity_name=entity_name,
                    service_id=service.id,
                    service_name=service.name,
                    booking_date=booking.booking_date,
                    service_default_weeks=service.recommended_interval_weeks,
                )
            )
        return visits

    async def _evaluate(self, visits: List[CompletedVisit]) -> List[DueForServiceResult]:
        if not visits:
            return []

        overrides = await self.intervals.list_for_entities(sorted({v.entity_id for v in visits}))
        now = self.clock()

        results = []
        for visit in visits:
            pair = (visit.entity_id, visit.service_id)
            weeks = resolve_interval(
                visit.service_default_weeks,
                overrides.entity.get(pair),
                overrides.customer.get(pair),
            )
            if weeks is None:
                continue

            results.append(
                calculate_due_status(
                    ServiceRecord(
                        entity_id=visit.entity_id,
                        entity_name=visit.entity_name,
                        service_id=visit.service_id,
                        service_name=visit.service_name,
                        last_service_date=visit.booking_date,
                        interval_weeks=weeks,
                    ),
                    now,
                    self.upcoming_threshold_days,
                )
            )
        return results


def _pair_key(visit: CompletedVisit):
    return (visit.entity_id, visit.service_id)


def _visit_date(visit: CompletedVisit):
    return visit.booking_date


def _reminders_only(results: Iterable[DueForServiceResult]) -> List[DueForServiceResult]:
    return sort_by_urgency(r for r in results if r.status in REMINDER_STATUSES)

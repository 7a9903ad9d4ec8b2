"""
Tests for the due-for-service queries over stored booking history.
"""

import asyncio
from datetime import timedelta

import pendulum

from equislot.adapters.memory import InMemoryStore
from equislot.domain.due_for_service import DueStatus
from equislot.domain.entities import Booking, BookingStatus, Entity, Provider, Service
from equislot.domain.result import ErrorCode
from equislot.services.due_for_service import DueForServiceService

NOW = pendulum.datetime(2026, 10, 19, 12, 0, tz="Europe/Stockholm")


def _visit(store, booking_id, customer_id, entity_id, days_ago, service_id="svc-trim", status=BookingStatus.COMPLETED):
    store.add_booking(
        Booking(
            id=booking_id,
            customer_id=customer_id,
            provider_id="prov-1",
            service_id=service_id,
            booking_date=NOW.date() - timedelta(days=days_ago),
            start_time="09:00",
            end_time="10:00",
            status=status,
            entity_id=entity_id,
        )
    )


def _build():
    store = InMemoryStore()
    store.add_provider(Provider(id="prov-1", user_id="user-prov", business_name="Hovslageri AB"))
    store.add_service(
        Service(id="svc-trim", provider_id="prov-1", name="Hoof trimming", duration_minutes=60,
                recommended_interval_weeks=6)
    )
    store.add_service(
        Service(id="svc-once", provider_id="prov-1", name="Inspection", duration_minutes=30)
    )
    for entity_id, owner, name in (
        ("horse-1", "cust-1", "Blansen"),
        ("horse-2", "cust-1", "Stjärna"),
        ("horse-3", "cust-1", "Doris"),
        ("horse-4", "cust-2", "Pärla"),
    ):
        store.add_entity(Entity(id=entity_id, owner_id=owner, name=name))

    _visit(store, "b1", "cust-1", "horse-1", days_ago=100)
    _visit(store, "b2", "cust-1", "horse-1", days_ago=70)
    _visit(store, "b3", "cust-1", "horse-2", days_ago=35)
    _visit(store, "b4", "cust-1", "horse-3", days_ago=10)
    _visit(store, "b5", "cust-2", "horse-4", days_ago=90)
    _visit(store, "b6", "cust-1", "horse-3", days_ago=5, status=BookingStatus.CONFIRMED)
    _visit(store, "b7", "cust-1", "horse-3", days_ago=200, service_id="svc-once")

    service = DueForServiceService(
        bookings=store.bookings,
        providers=store.providers,
        intervals=store.intervals,
        clock=lambda: NOW,
    )
    return store, service


def test_customer_reminders_are_sorted_by_urgency():
    _, service = _build()

    items = asyncio.run(service.get_for_customer("cust-1")).value

    assert [(i.entity_name, i.status) for i in items] == [
        ("Blansen", DueStatus.OVERDUE),
        ("Stjärna", DueStatus.UPCOMING),
    ]
    assert items[0].days_since_service == 70
    assert items[1].days_until_due == 7


def test_entity_override_changes_cadence():
    store, service = _build()
    asyncio.run(store.intervals.set_entity_override("horse-2", "svc-trim", 8))

    items = asyncio.run(service.get_for_customer("cust-1")).value

    assert [i.entity_id for i in items] == ["horse-1"]


def test_customer_override_applies_without_entity_override():
    store, service = _build()
    asyncio.run(store.intervals.set_customer_override("horse-3", "svc-trim", 2))

    items = asyncio.run(service.get_for_entity("horse-3", "cust-1")).value

    assert [(i.entity_id, i.status, i.interval_weeks) for i in items] == [
        ("horse-3", DueStatus.UPCOMING, 2)
    ]


def test_entity_lookup_checks_ownership():
    _, service = _build()

    result = asyncio.run(service.get_for_entity("horse-4", "cust-1"))

    assert result.error.code == ErrorCode.NOT_FOUND


def test_provider_view_includes_ok_items():
    _, service = _build()

    items = asyncio.run(service.get_for_provider("prov-1")).value

    assert [i.entity_id for i in items] == ["horse-4", "horse-1", "horse-2", "horse-3"]
    assert items[-1].status == DueStatus.OK


def test_provider_view_status_filter():
    _, service = _build()

    items = asyncio.run(service.get_for_provider("prov-1", status=DueStatus.OVERDUE)).value

    assert {i.entity_id for i in items} == {"horse-1", "horse-4"}


def test_overdue_batch_groups_by_customer():
    _, service = _build()

    overdue = asyncio.run(service.get_overdue_for_customers(["cust-1", "cust-2", "cust-3"])).value

    assert set(overdue) == {"cust-1", "cust-2"}
    assert [i.entity_id for i in overdue["cust-1"]] == ["horse-1"]
    assert asyncio.run(service.get_overdue_for_customers([])).value == {}


def test_no_history_means_no_reminders():
    _, service = _build()

    assert asyncio.run(service.get_for_customer("cust-9")).value == []

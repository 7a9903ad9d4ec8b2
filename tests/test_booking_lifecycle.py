"""
Tests for the booking lifecycle service.
"""

import asyncio
from datetime import date

from equislot.adapters.memory import InMemoryStore, RecordingEmailSender, RecordingNotificationSender
from equislot.domain.entities import Actor, ActorRole, Booking, BookingStatus, Provider, Service
from equislot.domain.models import Location
from equislot.domain.result import ErrorCode
from equislot.domain.travel_time import TravelTimeService
from equislot.services.booking_events import create_booking_event_dispatcher
from equislot.services.booking_lifecycle import BookingLifecycleService, CreateBookingInput
from equislot.services.ports import NotificationType

DAY = date(2026, 11, 2)
PROVIDER = Actor(user_id="user-prov", role=ActorRole.PROVIDER)
CUSTOMER = Actor(user_id="cust-1", role=ActorRole.CUSTOMER)


class Harness:
    def __init__(self, travel_time=False):
        self.store = InMemoryStore()
        self.store.add_provider(Provider(id="prov-1", user_id="user-prov", business_name="Hovslageri AB"))
        self.store.add_provider(Provider(id="prov-2", user_id="user-other", business_name="Other AB"))
        self.store.add_service(
            Service(id="svc-1", provider_id="prov-1", name="Hoof trimming", duration_minutes=60, price=800.0)
        )
        self.store.add_service(
            Service(id="svc-old", provider_id="prov-1", name="Old", duration_minutes=60, is_active=False)
        )
        self.store.add_customer("cust-1", "Anna Svensson")
        self.email = RecordingEmailSender()
        self.notifications = RecordingNotificationSender()
        self.dispatcher = create_booking_event_dispatcher(
            email_sender=self.email, notification_sender=self.notifications
        )
        ids = iter(f"bk-{n}" for n in range(1, 100))
        self.service = BookingLifecycleService(
            bookings=self.store.bookings,
            providers=self.store.providers,
            dispatcher=self.dispatcher,
            travel_time_service=TravelTimeService() if travel_time else None,
            id_factory=lambda: next(ids),
        )

    def run(self, coro_factory):
        async def scenario():
            result = await coro_factory()
            await self.dispatcher.drain()
            return result

        return asyncio.run(scenario())


def _input(start="10:00", **kwargs):
    values = dict(
        customer_id="cust-1",
        provider_id="prov-1",
        service_id="svc-1",
        booking_date=DAY,
        start_time=start,
        entity_name="Blansen",
    )
    values.update(kwargs)
    return CreateBookingInput(**values)


def _seed_booking(h, status=BookingStatus.PENDING, booking_id="seed-1", start="09:00", end="10:00"):
    h.store.add_booking(
        Booking(
            id=booking_id,
            customer_id="cust-1",
            provider_id="prov-1",
            service_id="svc-1",
            booking_date=DAY,
            start_time=start,
            end_time=end,
            status=status,
        )
    )


class TestCreateBooking:
    def test_creates_pending_booking_and_notifies_provider(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input()))

        assert result.is_success
        booking = result.value
        assert booking.status == BookingStatus.PENDING
        assert (booking.start_time, booking.end_time) == ("10:00", "11:00")
        assert h.store.data.bookings["bk-1"].status == BookingStatus.PENDING
        assert h.email.sent == [("booking_confirmation", "bk-1", None)]
        [notification] = h.notifications.for_user("user-prov")
        assert notification.type == NotificationType.BOOKING_CREATED

    def test_overlapping_booking_is_rejected(self):
        h = Harness()
        _seed_booking(h, start="09:30", end="10:30")

        result = h.run(lambda: h.service.create_booking(_input()))

        assert result.error.code == ErrorCode.OVERLAP
        assert list(h.store.data.bookings) == ["seed-1"]
        assert h.notifications.notifications == []

    def test_cancelled_booking_frees_the_time(self):
        h = Harness()
        _seed_booking(h, status=BookingStatus.CANCELLED, start="10:00", end="11:00")

        assert h.run(lambda: h.service.create_booking(_input())).is_success

    def test_adjacent_booking_is_allowed(self):
        h = Harness()
        _seed_booking(h, start="09:00", end="10:00")

        assert h.run(lambda: h.service.create_booking(_input())).is_success

    def test_provider_cannot_book_themselves(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input(customer_id="user-prov")))

        assert result.error.code == ErrorCode.SELF_BOOKING

    def test_inactive_service(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input(service_id="svc-old")))

        assert result.error.code == ErrorCode.INACTIVE_SERVICE

    def test_service_of_other_provider(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input(provider_id="prov-2")))

        assert result.error.code == ErrorCode.SERVICE_PROVIDER_MISMATCH

    def test_outside_business_hours(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input(start="17:30")))

        assert result.error.code == ErrorCode.INVALID_TIMES

    def test_malformed_start_time_is_rejected(self):
        h = Harness()

        result = h.run(lambda: h.service.create_booking(_input(start="9am")))

        assert result.error.code == ErrorCode.INVALID_TIMES
        assert h.store.data.bookings == {}

    def test_travel_time_between_distant_farms(self):
        h = Harness(travel_time=True)
        h.store.add_booking(
            Booking(
                id="seed-1",
                customer_id="cust-2",
                provider_id="prov-1",
                service_id="svc-1",
                booking_date=DAY,
                start_time="09:00",
                end_time="10:00",
                location=Location(57.93, 12.53),
            )
        )

        result = h.run(
            lambda: h.service.create_booking(_input(start="10:30", location=Location(58.5, 13.5)))
        )

        assert result.error.code == ErrorCode.INSUFFICIENT_TRAVEL_TIME
        assert result.error.details["actual_gap_minutes"] == 30


class TestManualBooking:
    def test_manual_booking_is_confirmed(self):
        h = Harness()

        result = h.run(lambda: h.service.create_manual_booking("user-prov", _input()))

        assert result.value.status == BookingStatus.CONFIRMED
        assert result.value.is_manual

    def test_manual_booking_for_foreign_provider(self):
        h = Harness()

        result = h.run(lambda: h.service.create_manual_booking("user-other", _input()))

        assert result.error.code == ErrorCode.NOT_FOUND

    def test_manual_booking_with_malformed_start_time(self):
        h = Harness()

        result = h.run(lambda: h.service.create_manual_booking("user-prov", _input(start="25:00")))

        assert result.error.code == ErrorCode.INVALID_TIMES


class TestUpdateStatus:
    def test_provider_confirms_and_customer_is_notified(self):
        h = Harness()
        _seed_booking(h)

        result = h.run(lambda: h.service.update_status("seed-1", BookingStatus.CONFIRMED, PROVIDER))

        assert result.value.status == BookingStatus.CONFIRMED
        assert h.store.data.bookings["seed-1"].status == BookingStatus.CONFIRMED
        assert h.email.sent == [("booking_status_change", "seed-1", "confirmed")]
        [notification] = h.notifications.for_user("cust-1")
        assert notification.type == NotificationType.BOOKING_CONFIRMED

    def test_customer_cancels_with_message(self):
        h = Harness()
        _seed_booking(h)

        result = h.run(
            lambda: h.service.update_status("seed-1", BookingStatus.CANCELLED, CUSTOMER, "Lame horse")
        )

        assert result.value.cancellation_message == "Lame horse"
        [notification] = h.notifications.for_user("user-prov")
        assert notification.type == NotificationType.BOOKING_CANCELLED
        assert notification.message.endswith("Message: Lame horse")

    def test_invalid_transition(self):
        h = Harness()
        _seed_booking(h, status=BookingStatus.COMPLETED)

        result = h.run(lambda: h.service.update_status("seed-1", BookingStatus.CANCELLED, PROVIDER))

        assert result.error.code == ErrorCode.INVALID_STATUS_TRANSITION
        assert result.error.details == {"from_status": "completed", "to_status": "cancelled"}
        assert h.email.sent == []

    def test_foreign_actor_gets_not_found(self):
        h = Harness()
        _seed_booking(h)
        other_provider = Actor(user_id="user-other", role=ActorRole.PROVIDER)
        other_customer = Actor(user_id="cust-9", role=ActorRole.CUSTOMER)

        for actor in (other_provider, other_customer):
            result = h.run(lambda: h.service.update_status("seed-1", BookingStatus.CONFIRMED, actor))
            assert result.error.code == ErrorCode.BOOKING_NOT_FOUND

        missing = h.run(lambda: h.service.update_status("nope", BookingStatus.CONFIRMED, PROVIDER))
        assert missing.error.code == ErrorCode.BOOKING_NOT_FOUND
        assert h.store.data.bookings["seed-1"].status == BookingStatus.PENDING


class TestRecordPayment:
    def test_payment_defaults_to_service_price(self):
        h = Harness()
        _seed_booking(h, status=BookingStatus.CONFIRMED)

        result = h.run(lambda: h.service.record_payment("seed-1", "cust-1", payment_id="pay-1"))

        payment = h.store.data.bookings["seed-1"].payment
        assert result.is_success
        assert (payment.id, payment.amount, payment.currency) == ("pay-1", 800.0, "SEK")
        assert ("payment_confirmation", "seed-1", None) in h.email.sent
        [notification] = h.notifications.for_user("user-prov")
        assert notification.type == NotificationType.PAYMENT_RECEIVED

    def test_cannot_pay_twice(self):
        h = Harness()
        _seed_booking(h, status=BookingStatus.CONFIRMED)
        h.run(lambda: h.service.record_payment("seed-1", "cust-1"))

        result = h.run(lambda: h.service.record_payment("seed-1", "cust-1"))

        assert result.error.code == ErrorCode.ALREADY_PAID

    def test_pending_booking_is_not_payable(self):
        h = Harness()
        _seed_booking(h)

        result = h.run(lambda: h.service.record_payment("seed-1", "cust-1"))

        assert result.error.code == ErrorCode.BOOKING_NOT_PAYABLE

    def test_other_customer_cannot_pay(self):
        h = Harness()
        _seed_booking(h, status=BookingStatus.CONFIRMED)

        result = h.run(lambda: h.service.record_payment("seed-1", "cust-2"))

        assert result.error.code == ErrorCode.BOOKING_NOT_FOUND

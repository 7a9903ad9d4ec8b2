"""
Side-effect handlers for booking events: email, in-app notification, log.

Each handler is registered separately so one failing channel never stops the
others. ``create_booking_event_dispatcher`` wires the default handler order.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import pendulum

from ..domain.entities import ActorRole, BookingStatus
from ..domain.events import BookingEvent, BookingEventType
from .event_dispatcher import EventDispatcher
from .ports import EmailSender, NotificationInput, NotificationSender, NotificationType

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    BookingStatus.CONFIRMED: "confirmed",
    BookingStatus.CANCELLED: "cancelled",
    BookingStatus.COMPLETED: "marked as completed",
}

STATUS_TO_NOTIFICATION_TYPE = {
    BookingStatus.CONFIRMED: NotificationType.BOOKING_CONFIRMED,
    BookingStatus.CANCELLED: NotificationType.BOOKING_CANCELLED,
    BookingStatus.COMPLETED: NotificationType.BOOKING_COMPLETED,
}

EMAIL_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)


def format_notification_date(value: date) -> str:
    """Short date used in notification texts, e.g. "29 Jan"."""
    return pendulum.date(value.year, value.month, value.day).format("D MMM")


class BookingCreatedEmailHandler:
    def __init__(self, email_sender: EmailSender):
        self.email_sender = email_sender

    async def handle(self, event: BookingEvent) -> None:
        try:
            await self.email_sender.send_booking_confirmation(event.payload.booking_id)
        except Exception as exc:
            logger.warning(
                "Booking confirmation email failed: %s",
                exc,
                extra={"booking_id": event.payload.booking_id},
            )


class BookingCreatedNotificationHandler:
    def __init__(self, notification_sender: NotificationSender):
        self.notification_sender = notification_sender

    async def handle(self, event: BookingEvent) -> None:
        p = event.payload
        entity_part = f" for {p.entity_name}" if p.entity_name else ""
        message = (
            f"New booking: {p.customer_name} booked {p.service_name} "
            f"on {format_notification_date(p.booking_date)} at {p.start_time}{entity_part}"
        )

        await self.notification_sender.create(
            NotificationInput(
                user_id=p.provider_user_id,
                type=NotificationType.BOOKING_CREATED,
                message=message,
                link_url="/provider/bookings",
                metadata={"booking_id": p.booking_id},
            )
        )


class BookingCreatedLogHandler:
    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log if log is not None else logger

    async def handle(self, event: BookingEvent) -> None:
        self.log.info(
            "Booking created successfully",
            extra={
                "booking_id": event.payload.booking_id,
                "customer_id": event.payload.customer_id,
                "provider_id": event.payload.provider_id,
            },
        )


class StatusChangedEmailHandler:
    def __init__(self, email_sender: EmailSender):
        self.email_sender = email_sender

    async def handle(self, event: BookingEvent) -> None:
        new_status = event.payload.new_status
        if new_status not in EMAIL_STATUSES:
            return

        try:
            await self.email_sender.send_booking_status_change(
                event.payload.booking_id,
                new_status.value,
            )
        except Exception as exc:
            logger.warning(
                "Status change email failed: %s",
                exc,
                extra={"booking_id": event.payload.booking_id},
            )


class StatusChangedNotificationHandler:
    """Tells the counter-party: customers hear from providers and vice versa."""

    def __init__(self, notification_sender: NotificationSender):
        self.notification_sender = notification_sender

    async def handle(self, event: BookingEvent) -> None:
        p = event.payload
        notification_type = STATUS_TO_NOTIFICATION_TYPE.get(p.new_status)
        if notification_type is None:
            return

        date_str = format_notification_date(p.booking_date)
        label = STATUS_LABELS[p.new_status]
        reason = ""
        if p.new_status == BookingStatus.CANCELLED and p.cancellation_message:
            reason = f". Message: {p.cancellation_message}"

        if p.changed_by == ActorRole.PROVIDER:
            time_str = f" at {p.start_time}" if p.start_time else ""
            notification = NotificationInput(
                user_id=p.customer_id,
                type=notification_type,
                message=(
                    f"{p.service_name} with {p.provider_name} on {date_str}{time_str} "
                    f"has been {label}{reason}"
                ),
                link_url="/customer/bookings",
                metadata={"booking_id": p.booking_id},
            )
        else:
            notification = NotificationInput(
                user_id=p.provider_user_id,
                type=notification_type,
                message=f"{p.customer_name} has {label} {p.service_name} on {date_str}{reason}",
                link_url="/provider/bookings",
                metadata={"booking_id": p.booking_id},
            )

        await self.notification_sender.create(notification)


class PaymentReceivedEmailHandler:
    def __init__(self, email_sender: EmailSender):
        self.email_sender = email_sender

    async def handle(self, event: BookingEvent) -> None:
        try:
            await self.email_sender.send_payment_confirmation(event.payload.booking_id)
        except Exception as exc:
            logger.warning(
                "Payment confirmation email failed: %s",
                exc,
                extra={"booking_id": event.payload.booking_id},
            )


class PaymentReceivedNotificationHandler:
    def __init__(self, notification_sender: NotificationSender):
        self.notification_sender = notification_sender

    async def handle(self, event: BookingEvent) -> None:
        p = event.payload
        amount = f"{p.amount:g} {p.currency}"
        await self.notification_sender.create(
            NotificationInput(
                user_id=p.provider_user_id,
                type=NotificationType.PAYMENT_RECEIVED,
                message=(
                    f"Payment received: {p.customer_name} paid {amount} for "
                    f"{p.service_name} ({format_notification_date(p.booking_date)})"
                ),
                link_url="/provider/bookings",
                metadata={"booking_id": p.booking_id, "payment_id": p.payment_id},
            )
        )


def create_booking_event_dispatcher(
    *,
    email_sender: EmailSender,
    notification_sender: NotificationSender,
    log: Optional[logging.Logger] = None,
) -> EventDispatcher:
    dispatcher = EventDispatcher()

    dispatcher.register(BookingEventType.BOOKING_CREATED, BookingCreatedEmailHandler(email_sender))
    dispatcher.register(
        BookingEventType.BOOKING_CREATED, BookingCreatedNotificationHandler(notification_sender)
    )
    dispatcher.register(BookingEventType.BOOKING_CREATED, BookingCreatedLogHandler(log))

    dispatcher.register(
        BookingEventType.BOOKING_STATUS_CHANGED, StatusChangedEmailHandler(email_sender)
    )
    dispatcher.register(
        BookingEventType.BOOKING_STATUS_CHANGED,
        StatusChangedNotificationHandler(notification_sender),
    )

    dispatcher.register(
        BookingEventType.BOOKING_PAYMENT_RECEIVED, PaymentReceivedEmailHandler(email_sender)
    )
    dispatcher.register(
        BookingEventType.BOOKING_PAYMENT_RECEIVED,
        PaymentReceivedNotificationHandler(notification_sender),
    )

    return dispatcher

"""
Email and notification senders that only write to the log.

The CLI has no mail server or notification inbox; these keep the side-effect
handlers wired up and visible when running locally.
"""

import logging

from ..services.ports import NotificationInput

logger = logging.getLogger(__name__)


class LoggingEmailSender:
    async def send_booking_confirmation(self, booking_id: str) -> None:
        logger.info("Email: booking confirmation", extra={"booking_id": booking_id})

    async def send_booking_status_change(self, booking_id: str, new_status: str) -> None:
        logger.info(
            "Email: booking is now %s",
            new_status,
            extra={"booking_id": booking_id},
        )

    async def send_payment_confirmation(self, booking_id: str) -> None:
        logger.info("Email: payment confirmation", extra={"booking_id": booking_id})


class LoggingNotificationSender:
    async def create(self, notification: NotificationInput) -> None:
        logger.info(
            "Notification to %s: %s",
            notification.user_id,
            notification.message,
            extra={"notification_type": notification.type.value},
        )

"""
Booking notifications.

Delivery itself (SMTP, templates) lives outside this service; the core
only hands a confirmed booking to a notifier and never waits on it.
"""

import logging
from abc import ABC, abstractmethod

from ..models.booking import Booking

logger = logging.getLogger(__name__)


class BookingNotifier(ABC):
    @abstractmethod
    def booking_confirmed(self, booking: Booking) -> None:
        """Send the guest their confirmation."""


class LoggingNotifier(BookingNotifier):
    """Default notifier: records the confirmation that should be sent."""

    def booking_confirmed(self, booking: Booking) -> None:
        logger.info(
            f"Confirmation email queued for {booking.guest_email} "
            f"(booking {booking.id}, {booking.check_in} -> {booking.check_out})"
        )


def notify_confirmed(notifier: BookingNotifier, booking: Booking) -> None:
    """Fire-and-forget: a failing notifier must never undo a confirmed payment."""
    try:
        notifier.booking_confirmed(booking)
    except Exception:
        logger.exception(f"Confirmation notification failed for booking {booking.id}")


def get_notifier() -> BookingNotifier:
    return LoggingNotifier()

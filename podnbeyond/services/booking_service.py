"""
Booking Service

Booking lifecycle:

    PENDING --payment confirmed--> PAID
    PENDING --cancel-------------> CANCELLED
    PAID    --cancel-------------> CANCELLED

CANCELLED is terminal. Inventory is consumed when a booking becomes PAID
(not when it is created) and released when a PAID booking is cancelled.

Refund policy on cancellation, measured from the check-in instant
(check-in date at settings.check_in_hour UTC):
- 24 hours or more before: full refund
- less than 24 hours before: 50% refund
- at or after check-in: no refund
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import Conflict, NotFound, SignatureVerificationError, ValidationError
from ..models.booking import Booking, BookingStatus
from ..models.room import RoomType
from ..utils.dates import as_naive_utc, utcnow
from ..utils.db_helpers import acquire_row_lock
from ..utils.logging_config import get_logger
from .availability_service import validate_stay
from .inventory_service import consume_inventory, release_inventory
from .loyalty_service import LoyaltyService
from .notifications import BookingNotifier, LoggingNotifier, notify_confirmed
from .payment_gateway import PaymentOrder, RazorpayClient
from .pricing_engine import PriceBreakdown, compute_pricing, percentage_of

logger = get_logger(__name__)

FULL_REFUND_HOURS = 24
PARTIAL_REFUND_RATE = Decimal("0.5")

PAYMENT_CAPTURED_EVENT = "payment.captured"


@dataclass
class BookingCreation:
    booking: Booking
    pricing: PriceBreakdown
    payment_order: PaymentOrder


@dataclass
class PaymentConfirmation:
    booking: Booking
    applied: bool
    points_earned: int = 0


@dataclass
class CancellationResult:
    booking: Booking
    refund_amount: int
    refund_policy: str
    hours_until_check_in: float
    inventory_restored: bool = False


def check_in_instant(check_in: date) -> datetime:
    """Naive UTC datetime at which the guest may check in."""
    return datetime.combine(check_in, time(hour=settings.check_in_hour))


def refund_for(total_amount: int, hours_until: float) -> Tuple[int, str]:
    """Refund amount and policy label ("full", "partial" or "none")."""
    if hours_until >= FULL_REFUND_HOURS:
        return total_amount, "full"
    if hours_until > 0:
        return percentage_of(total_amount, PARTIAL_REFUND_RATE), "partial"
    return 0, "none"


class BookingService:
    """Creates bookings and drives them through their lifecycle."""

    def __init__(
        self,
        db: Session,
        payment_gateway: Optional[RazorpayClient] = None,
        notifier: Optional[BookingNotifier] = None
    ):
        self.db = db
        self.payment_gateway = payment_gateway or RazorpayClient()
        self.notifier = notifier or LoggingNotifier()
        self.loyalty = LoyaltyService(db)

    # ==================== Queries ====================

    def get(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Booking]:
        query = self.db.query(Booking)
        if status:
            if status not in BookingStatus.__members__:
                raise ValidationError.for_field("status", f"unknown booking status '{status}'")
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc()).offset(offset).limit(limit).all()

    # ==================== Create ====================

    def create(
        self,
        room_type_id: str,
        check_in: date,
        check_out: date,
        guests: int,
        guest_name: str,
        guest_email: str,
        guest_phone: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> BookingCreation:
        """
        Price the stay, store a PENDING booking and open a payment order.

        The booking row and the order id are committed together; if the
        gateway fails nothing is kept.

        Raises:
            ValidationError, NotFound, ExternalServiceError
        """
        validate_stay(check_in, check_out)

        room_type = self.db.query(RoomType).filter(RoomType.id == room_type_id).first()
        if not room_type:
            raise NotFound(f"Room type {room_type_id} not found")
        if not room_type.is_active:
            raise ValidationError.for_field("room_type_id", "room type is not available for booking")
        if guests is None or guests < 1:
            raise ValidationError.for_field("guests", "at least one guest is required")
        if guests > room_type.capacity:
            raise ValidationError.for_field(
                "guests", f"room type accommodates at most {room_type.capacity} guests"
            )

        pricing = compute_pricing(room_type.base_rate, (check_out - check_in).days)

        booking = Booking(
            user_id=user_id,
            room_type_id=room_type.id,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            nights=pricing.nights,
            room_total=pricing.room_total,
            service_charge=pricing.service_charge,
            tax_on_room=pricing.tax_on_room,
            tax_on_service=pricing.tax_on_service,
            total_amount=pricing.total_amount,
            status=BookingStatus.PENDING.value,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
        )

        try:
            self.db.add(booking)
            self.db.flush()

            order = self.payment_gateway.create_order(pricing.total_amount, booking.id)
            booking.payment_order_id = order.external_order_id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.booking_created(booking.id, booking.guest_email, booking.total_amount)
        return BookingCreation(booking=booking, pricing=pricing, payment_order=order)

    # ==================== Payment ====================

    def confirm_payment(
        self,
        external_order_id: str,
        external_payment_id: Optional[str] = None
    ) -> PaymentConfirmation:
        """
        Mark the booking behind a payment order as PAID.

        Idempotent: a PAID booking is left alone, and a CANCELLED booking
        is never reactivated. Both return applied=False.
        """
        try:
            booking = acquire_row_lock(self.db, Booking, Booking.payment_order_id == external_order_id)
            if not booking:
                raise NotFound(f"No booking for payment order {external_order_id}")

            if booking.status == BookingStatus.PAID.value:
                self.db.rollback()
                logger.info(f"Booking {booking.id} already paid, ignoring duplicate confirmation")
                return PaymentConfirmation(booking=booking, applied=False)

            if booking.status == BookingStatus.CANCELLED.value:
                self.db.rollback()
                logger.warning(
                    f"Payment {external_payment_id} captured for cancelled booking {booking.id}, "
                    f"leaving it cancelled (refund must be handled manually)"
                )
                return PaymentConfirmation(booking=booking, applied=False)

            booking.status = BookingStatus.PAID.value
            booking.payment_id = external_payment_id
            booking.paid_at = utcnow()

            consume_inventory(self.db, booking.room_type_id, booking.check_in, booking.check_out)
            entry = self.loyalty.earn_for_booking(booking)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.booking_status_changed(
            booking.id, BookingStatus.PENDING.value, BookingStatus.PAID.value,
            payment_id=external_payment_id
        )

        notify_confirmed(self.notifier, booking)
        return PaymentConfirmation(
            booking=booking,
            applied=True,
            points_earned=entry.points if entry else 0
        )

    def verify_checkout_payment(
        self,
        booking_id: str,
        external_order_id: str,
        external_payment_id: str,
        signature: str
    ) -> PaymentConfirmation:
        """
        Confirm a payment from the checkout widget callback.

        The widget signs "order_id|payment_id" with the key secret. The
        webhook stays the source of truth; whichever arrives first marks the
        booking PAID and the other is a no-op.

        Raises:
            SignatureVerificationError: Signature does not match
            ValidationError: Order does not belong to the booking
            NotFound: Unknown booking
        """
        booking = self.get(booking_id)
        if booking.payment_order_id != external_order_id:
            raise ValidationError.for_field("razorpay_order_id", "order does not belong to this booking")

        if not self.payment_gateway.verify_payment_signature(external_order_id, external_payment_id, signature):
            logger.warning(f"Rejected checkout callback for booking {booking_id} with invalid signature")
            raise SignatureVerificationError("Invalid payment signature")

        return self.confirm_payment(external_order_id, external_payment_id)

    def handle_payment_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict:
        """
        Process a gateway webhook.

        The signature is checked against the raw bytes before anything is
        parsed. Only payment.captured events change state.

        Raises:
            SignatureVerificationError: Bad or missing signature
            ValidationError: Body is not a usable event
            NotFound: No booking for the order
        """
        if not self.payment_gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Rejected payment webhook with invalid signature")
            raise SignatureVerificationError("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Invalid webhook body: {e}") from e

        event_type = event.get("event") if isinstance(event, dict) else None
        if event_type != PAYMENT_CAPTURED_EVENT:
            logger.info(f"Ignoring payment webhook event {event_type}")
            return {"status": "ignored", "event": event_type}

        entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
        order_id = entity.get("order_id")
        if not order_id:
            raise ValidationError.for_field("order_id", "payment entity has no order_id")

        result = self.confirm_payment(order_id, entity.get("id"))
        return {
            "status": "processed" if result.applied else "unchanged",
            "event": event_type,
            "booking_id": result.booking.id,
        }

    # ==================== Cancel ====================

    def cancel(self, booking_id: str, now: Optional[datetime] = None) -> CancellationResult:
        """
        Cancel a booking and compute its refund.

        Raises:
            NotFound: Unknown booking
            Conflict: Booking already cancelled
        """
        now = as_naive_utc(now) if now else utcnow()

        try:
            booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
            if not booking:
                raise NotFound(f"Booking {booking_id} not found")
            if booking.status == BookingStatus.CANCELLED.value:
                raise Conflict(f"Booking {booking_id} is already cancelled")

            old_status = booking.status
            hours_until = (check_in_instant(booking.check_in) - now) / timedelta(hours=1)
            refund_amount, policy = refund_for(booking.total_amount, hours_until)

            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = now
            booking.refund_amount = refund_amount

            restored = False
            if old_status == BookingStatus.PAID.value:
                release_inventory(self.db, booking.room_type_id, booking.check_in, booking.check_out)
                restored = True

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.booking_status_changed(
            booking.id, old_status, BookingStatus.CANCELLED.value,
            refund_amount=refund_amount, refund_policy=policy
        )
        return CancellationResult(
            booking=booking,
            refund_amount=refund_amount,
            refund_policy=policy,
            hours_until_check_in=hours_until,
            inventory_restored=restored
        )

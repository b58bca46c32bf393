"""
Tests for the Booking Service

Tests cover:
- Creation: pricing snapshot, payment order, validation, atomicity
- Payment confirmation: inventory, loyalty, idempotency, cancelled bookings
- Cancellation: refund tiers at the 24h boundary, inventory release
"""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

from podnbeyond.exceptions import Conflict, ExternalServiceError, NotFound, ValidationError
from podnbeyond.models import Booking, BookingStatus, Inventory, LoyaltyLedger
from podnbeyond.services.booking_service import BookingService, refund_for
from podnbeyond.services.notifications import BookingNotifier
from podnbeyond.services.payment_gateway import RazorpayClient

CHECK_IN = date(2030, 1, 10)
CHECK_OUT = date(2030, 1, 12)


@pytest.fixture
def notifier():
    return MagicMock(spec=BookingNotifier)


@pytest.fixture
def service(db, notifier):
    return BookingService(db, RazorpayClient(key_id="", key_secret=""), notifier)


@pytest.fixture
def pending(service, room_type, stock, guest_user):
    stock(room_type, CHECK_IN, 2, allotment=3)
    return service.create(
        room_type_id=room_type.id,
        check_in=CHECK_IN,
        check_out=CHECK_OUT,
        guests=2,
        guest_name="Asha Guest",
        guest_email="guest@example.com",
        user_id=guest_user.id
    ).booking


def _booked(db, room_type):
    db.expire_all()
    rows = db.query(Inventory).filter(Inventory.room_type_id == room_type.id).order_by(Inventory.date).all()
    return [row.booked for row in rows]


class TestCreateBooking:
    """BookingService.create"""

    def test_creates_pending_booking_with_snapshot(self, service, room_type):
        created = service.create(
            room_type_id=room_type.id,
            check_in=CHECK_IN,
            check_out=CHECK_OUT,
            guests=1,
            guest_name="Asha Guest",
            guest_email="guest@example.com"
        )

        booking = created.booking
        assert booking.status == BookingStatus.PENDING.value
        assert booking.nights == 2
        assert booking.room_total == 1000000
        assert booking.service_charge == 100000
        assert booking.tax_on_room == 120000
        assert booking.tax_on_service == 18000
        assert booking.total_amount == 1238000
        assert booking.user_id is None

    def test_payment_order_uses_total_and_booking_id(self, service, room_type):
        created = service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
        )

        assert created.payment_order.amount == 1238000
        assert created.payment_order.receipt == created.booking.id
        assert created.booking.payment_order_id == created.payment_order.external_order_id
        assert created.booking.payment_order_id.startswith("order_stub_")

    def test_creation_does_not_hold_inventory(self, db, service, room_type, stock):
        stock(room_type, CHECK_IN, 2, allotment=1)

        service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
        )

        assert _booked(db, room_type) == [0, 0]

    def test_snapshot_survives_rate_change(self, db, service, room_type):
        booking = service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
        ).booking

        room_type.base_rate = 999999
        db.commit()

        assert service.get(booking.id).total_amount == 1238000

    def test_checkout_before_checkin(self, service, room_type):
        with pytest.raises(ValidationError) as exc:
            service.create(
                room_type_id=room_type.id, check_in=CHECK_OUT, check_out=CHECK_IN,
                guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
            )

        assert exc.value.errors == [
            {"field": "check_out", "message": "checkout date must be after check-in date"}
        ]

    def test_unknown_room_type(self, service):
        with pytest.raises(NotFound):
            service.create(
                room_type_id="missing", check_in=CHECK_IN, check_out=CHECK_OUT,
                guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
            )

    def test_inactive_room_type(self, db, service, room_type):
        room_type.is_active = False
        db.commit()

        with pytest.raises(ValidationError):
            service.create(
                room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
                guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
            )

    @pytest.mark.parametrize("guests", [0, 3])
    def test_guest_count_outside_capacity(self, service, room_type, guests):
        with pytest.raises(ValidationError) as exc:
            service.create(
                room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
                guests=guests, guest_name="Asha Guest", guest_email="guest@example.com"
            )
        assert exc.value.errors[0]["field"] == "guests"

    def test_gateway_failure_leaves_no_booking(self, db, room_type):
        gateway = MagicMock(spec=RazorpayClient)
        gateway.create_order.side_effect = ExternalServiceError("razorpay", "connection reset")
        service = BookingService(db, gateway, MagicMock(spec=BookingNotifier))

        with pytest.raises(ExternalServiceError):
            service.create(
                room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
                guests=1, guest_name="Asha Guest", guest_email="guest@example.com"
            )

        assert db.query(Booking).count() == 0


class TestConfirmPayment:
    """BookingService.confirm_payment"""

    def test_marks_paid_and_consumes_inventory(self, db, service, pending, room_type):
        result = service.confirm_payment(pending.payment_order_id, "pay_123")

        assert result.applied is True
        assert result.booking.status == BookingStatus.PAID.value
        assert result.booking.payment_id == "pay_123"
        assert result.booking.paid_at is not None
        assert _booked(db, room_type) == [1, 1]

    def test_credits_loyalty_points(self, db, service, pending, guest_user):
        result = service.confirm_payment(pending.payment_order_id, "pay_123")

        db.refresh(guest_user)
        assert result.points_earned == 123  # floor(1238000 / 10000)
        assert guest_user.points == 123
        entries = db.query(LoyaltyLedger).filter(LoyaltyLedger.user_id == guest_user.id).all()
        assert [(e.action, e.points, e.booking_id) for e in entries] == [("EARN", 123, pending.id)]

    def test_guest_checkout_earns_nothing(self, db, service, room_type):
        booking = service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="Walk In", guest_email="walkin@example.com"
        ).booking

        result = service.confirm_payment(booking.payment_order_id, "pay_1")

        assert result.points_earned == 0
        assert db.query(LoyaltyLedger).count() == 0

    def test_duplicate_confirmation_is_noop(self, db, service, pending, room_type, guest_user):
        service.confirm_payment(pending.payment_order_id, "pay_123")
        again = service.confirm_payment(pending.payment_order_id, "pay_123")

        db.refresh(guest_user)
        assert again.applied is False
        assert _booked(db, room_type) == [1, 1]
        assert guest_user.points == 123
        assert db.query(LoyaltyLedger).count() == 1

    def test_cancelled_booking_not_reactivated(self, db, service, pending, room_type):
        service.cancel(pending.id, now=datetime(2030, 1, 1))

        result = service.confirm_payment(pending.payment_order_id, "pay_late")

        assert result.applied is False
        assert service.get(pending.id).status == BookingStatus.CANCELLED.value
        assert _booked(db, room_type) == [0, 0]

    def test_unknown_order(self, service):
        with pytest.raises(NotFound):
            service.confirm_payment("order_missing", "pay_1")

    def test_notifier_called_once_after_commit(self, service, pending, notifier):
        service.confirm_payment(pending.payment_order_id, "pay_123")
        service.confirm_payment(pending.payment_order_id, "pay_123")

        notifier.booking_confirmed.assert_called_once()

    def test_notifier_failure_does_not_undo_payment(self, service, pending, notifier):
        notifier.booking_confirmed.side_effect = RuntimeError("smtp down")

        result = service.confirm_payment(pending.payment_order_id, "pay_123")

        assert result.applied is True
        assert service.get(pending.id).status == BookingStatus.PAID.value

    def test_loyalty_failure_rolls_back_inventory(self, db, service, pending, room_type, guest_user, monkeypatch):
        def broken_earn(booking):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(service.loyalty, "earn_for_booking", broken_earn)

        with pytest.raises(RuntimeError):
            service.confirm_payment(pending.payment_order_id, "pay_123")

        db.refresh(guest_user)
        assert service.get(pending.id).status == BookingStatus.PENDING.value
        assert service.get(pending.id).payment_id is None
        assert _booked(db, room_type) == [0, 0]
        assert db.query(LoyaltyLedger).count() == 0
        assert guest_user.points == 0

    def test_inventory_failure_leaves_booking_pending(self, db, service, pending, room_type, guest_user, monkeypatch):
        def broken_consume(*args):
            raise RuntimeError("inventory row locked")

        monkeypatch.setattr("podnbeyond.services.booking_service.consume_inventory", broken_consume)

        with pytest.raises(RuntimeError):
            service.confirm_payment(pending.payment_order_id, "pay_123")

        db.refresh(guest_user)
        assert service.get(pending.id).status == BookingStatus.PENDING.value
        assert _booked(db, room_type) == [0, 0]
        assert db.query(LoyaltyLedger).count() == 0
        assert guest_user.points == 0

    def test_retry_after_failure_applies_once(self, db, service, pending, room_type, guest_user, monkeypatch):
        def broken_earn(booking):
            raise RuntimeError("ledger unavailable")

        real_earn = service.loyalty.earn_for_booking
        monkeypatch.setattr(service.loyalty, "earn_for_booking", broken_earn)
        with pytest.raises(RuntimeError):
            service.confirm_payment(pending.payment_order_id, "pay_123")
        monkeypatch.setattr(service.loyalty, "earn_for_booking", real_earn)

        result = service.confirm_payment(pending.payment_order_id, "pay_123")

        db.refresh(guest_user)
        assert result.applied is True
        assert _booked(db, room_type) == [1, 1]
        assert guest_user.points == 123
        assert db.query(LoyaltyLedger).count() == 1

    def test_pending_bookings_can_oversell_last_room(self, db, service, room_type, stock):
        """No hold at creation: two guests can both pay for the last room"""
        stock(room_type, CHECK_IN, 2, allotment=1)
        first = service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="First", guest_email="first@example.com"
        ).booking
        second = service.create(
            room_type_id=room_type.id, check_in=CHECK_IN, check_out=CHECK_OUT,
            guests=1, guest_name="Second", guest_email="second@example.com"
        ).booking

        service.confirm_payment(first.payment_order_id, "pay_1")
        service.confirm_payment(second.payment_order_id, "pay_2")

        assert _booked(db, room_type) == [2, 2]


class TestRefundPolicy:
    def test_full_at_24_hours(self):
        assert refund_for(1238000, 24.0) == (1238000, "full")

    def test_partial_just_under_24_hours(self):
        assert refund_for(1238000, 23 + 59 / 60) == (619000, "partial")

    def test_partial_rounds_half_up(self):
        assert refund_for(1001, 5) == (501, "partial")

    def test_none_at_check_in(self):
        assert refund_for(1238000, 0) == (0, "none")

    def test_none_after_check_in(self):
        assert refund_for(1238000, -3) == (0, "none")


class TestCancelBooking:
    """BookingService.cancel"""

    def test_full_refund_exactly_24h_before(self, service, pending):
        result = service.cancel(pending.id, now=datetime(2030, 1, 9, 0, 0))

        assert result.refund_policy == "full"
        assert result.refund_amount == 1238000
        assert result.booking.status == BookingStatus.CANCELLED.value
        assert result.booking.refund_amount == 1238000
        assert result.booking.cancelled_at == datetime(2030, 1, 9, 0, 0)

    def test_partial_refund_23h59m_before(self, service, pending):
        result = service.cancel(pending.id, now=datetime(2030, 1, 9, 0, 1))

        assert result.refund_policy == "partial"
        assert result.refund_amount == 619000

    def test_no_refund_after_check_in(self, service, pending):
        result = service.cancel(pending.id, now=datetime(2030, 1, 10, 12, 0))

        assert result.refund_policy == "none"
        assert result.refund_amount == 0
        assert result.booking.status == BookingStatus.CANCELLED.value

    def test_check_in_hour_shifts_boundary(self, service, pending, monkeypatch):
        from podnbeyond.config import settings
        monkeypatch.setattr(settings, "check_in_hour", 14)

        result = service.cancel(pending.id, now=datetime(2030, 1, 9, 13, 0))

        assert result.refund_policy == "full"

    def test_timezone_aware_now_is_normalized(self, service, pending):
        from datetime import timezone
        result = service.cancel(pending.id, now=datetime(2030, 1, 9, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30))))

        assert result.refund_policy == "full"

    def test_double_cancel_conflicts(self, service, pending):
        service.cancel(pending.id, now=datetime(2030, 1, 1))

        with pytest.raises(Conflict):
            service.cancel(pending.id, now=datetime(2030, 1, 1))

    def test_unknown_booking(self, service):
        with pytest.raises(NotFound):
            service.cancel("missing")

    def test_paid_cancel_restores_inventory(self, db, service, pending, room_type):
        service.confirm_payment(pending.payment_order_id, "pay_123")
        assert _booked(db, room_type) == [1, 1]

        result = service.cancel(pending.id, now=datetime(2030, 1, 1))

        assert result.inventory_restored is True
        assert _booked(db, room_type) == [0, 0]

    def test_pending_cancel_leaves_inventory(self, db, service, pending, room_type, stock):
        result = service.cancel(pending.id, now=datetime(2030, 1, 1))

        assert result.inventory_restored is False
        assert _booked(db, room_type) == [0, 0]

    def test_restore_never_goes_negative(self, db, service, pending, room_type):
        service.confirm_payment(pending.payment_order_id, "pay_123")
        for row in db.query(Inventory).all():
            row.booked = 0
        db.commit()

        service.cancel(pending.id, now=datetime(2030, 1, 1))

        assert _booked(db, room_type) == [0, 0]

    def test_paid_cancel_keeps_earned_points(self, db, service, pending, guest_user):
        service.confirm_payment(pending.payment_order_id, "pay_123")
        service.cancel(pending.id, now=datetime(2030, 1, 1))

        db.refresh(guest_user)
        assert guest_user.points == 123


class TestQueries:
    def test_list_filters_by_status(self, service, pending):
        assert [b.id for b in service.list(status="PENDING")] == [pending.id]
        assert service.list(status="PAID") == []

    def test_list_rejects_unknown_status(self, service):
        with pytest.raises(ValidationError):
            service.list(status="BOGUS")

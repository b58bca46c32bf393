"""
Tests for the Loyalty Ledger

Tests cover:
- Accrual from paid bookings
- Redemption and its validation
- Staff adjustments
- Ledger / balance agreement and the summary view
"""

import pytest
from datetime import date

from podnbeyond.exceptions import InsufficientBalance, NotFound, ValidationError
from podnbeyond.models import Booking, LoyaltyLedger
from podnbeyond.services.loyalty_service import LoyaltyService, TIER_BENEFITS, points_for_amount


@pytest.fixture
def loyalty(db):
    return LoyaltyService(db)


@pytest.fixture
def funded_user(db, loyalty, guest_user):
    loyalty.adjust(guest_user.id, 500, "Opening balance")
    db.refresh(guest_user)
    return guest_user


class TestPointsForAmount:
    @pytest.mark.parametrize("amount,points", [
        (1238000, 123),
        (10000, 1),
        (9999, 0),
        (0, 0),
        (None, 0),
    ])
    def test_floor_of_amount(self, amount, points):
        assert points_for_amount(amount) == points


class TestEarn:
    def test_earn_does_not_commit(self, db, loyalty, guest_user, room_type):
        booking = Booking(
            user_id=guest_user.id, room_type_id=room_type.id,
            check_in=date(2030, 1, 10), check_out=date(2030, 1, 11),
            guest_name="Asha Guest", guest_email="guest@example.com", total_amount=250000
        )
        db.add(booking)
        db.flush()

        entry = loyalty.earn_for_booking(booking)
        db.rollback()

        assert entry.points == 25
        db.refresh(guest_user)
        assert guest_user.points == 0
        assert db.query(LoyaltyLedger).count() == 0

    def test_no_user_no_points(self, loyalty):
        assert loyalty.earn_for_booking(Booking(user_id=None, total_amount=1000000)) is None


class TestRedeem:
    def test_redeem_reduces_balance(self, db, loyalty, funded_user):
        result = loyalty.redeem(funded_user.id, 200)

        assert result.points_redeemed == 200
        assert result.discount_amount == 200
        assert result.discount_minor_units == 20000
        assert result.remaining_points == 300
        db.refresh(funded_user)
        assert funded_user.points == 300

    def test_redeem_entire_balance(self, loyalty, funded_user):
        assert loyalty.redeem(funded_user.id, 500).remaining_points == 0

    def test_redeem_more_than_balance(self, db, loyalty, funded_user):
        with pytest.raises(InsufficientBalance) as exc:
            loyalty.redeem(funded_user.id, 501)

        assert exc.value.requested == 501
        assert exc.value.available == 500
        db.refresh(funded_user)
        assert funded_user.points == 500

    @pytest.mark.parametrize("points", [0, -5, True])
    def test_redeem_requires_positive_points(self, loyalty, funded_user, points):
        with pytest.raises(ValidationError):
            loyalty.redeem(funded_user.id, points)

    def test_unknown_user(self, loyalty):
        with pytest.raises(NotFound):
            loyalty.redeem("missing", 10)

    def test_redeem_writes_negative_ledger_entry(self, db, loyalty, funded_user):
        loyalty.redeem(funded_user.id, 120, booking_id=None)

        entry = db.query(LoyaltyLedger).filter(LoyaltyLedger.action == "REDEEM").one()
        assert entry.points == -120


class TestAdjust:
    def test_positive_and_negative_adjustments(self, db, loyalty, funded_user):
        loyalty.adjust(funded_user.id, 50, "Goodwill")
        loyalty.adjust(funded_user.id, -30, "Correction")

        db.refresh(funded_user)
        assert funded_user.points == 520

    def test_adjustment_cannot_go_negative(self, loyalty, funded_user):
        with pytest.raises(InsufficientBalance):
            loyalty.adjust(funded_user.id, -501, "Too much")

    def test_zero_adjustment_rejected(self, loyalty, funded_user):
        with pytest.raises(ValidationError):
            loyalty.adjust(funded_user.id, 0, "Nothing")


class TestLedgerConsistency:
    def test_ledger_sum_matches_balance(self, db, loyalty, funded_user):
        loyalty.redeem(funded_user.id, 75)
        loyalty.adjust(funded_user.id, 10, "Bonus")
        with pytest.raises(InsufficientBalance):
            loyalty.redeem(funded_user.id, 10000)

        db.refresh(funded_user)
        assert loyalty.ledger_total(funded_user.id) == funded_user.points == 435

    def test_summary(self, loyalty, funded_user):
        loyalty.redeem(funded_user.id, 100)

        summary = loyalty.get_summary(funded_user.id)

        assert summary["points"] == 400
        assert summary["tier"] == "BRONZE"
        assert summary["benefits"] == TIER_BENEFITS["BRONZE"]
        assert {e.action for e in summary["recent_transactions"]} == {"ADJUST", "REDEEM"}

    def test_summary_limits_recent_transactions(self, loyalty, funded_user):
        for _ in range(12):
            loyalty.adjust(funded_user.id, 1, "Tick")

        assert len(loyalty.get_summary(funded_user.id)["recent_transactions"]) == 10

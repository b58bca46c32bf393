"""
Loyalty Ledger Service

Points are kept twice: as append-only LoyaltyLedger rows and as the
denormalized User.points balance. Every movement goes through
_append_entry, which writes both in the same session, so for any user
sum(ledger.points) == user.points after each commit.

Accrual: floor(total_amount / 10000) points per paid booking, i.e. one
point per 100 currency units spent.
Redemption: 1 point = 1 currency unit off.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..exceptions import InsufficientBalance, NotFound, ValidationError
from ..models.booking import Booking
from ..models.loyalty import LoyaltyActionType, LoyaltyLedger
from ..models.user import LoyaltyTier, User
from ..utils.db_helpers import acquire_row_lock

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_POINT_EARNED = 10000
MINOR_UNITS_PER_POINT_REDEEMED = 100
RECENT_TRANSACTIONS_LIMIT = 10

# Display only: multipliers are not applied to accrual
TIER_BENEFITS: Dict[str, Dict] = {
    LoyaltyTier.BRONZE.value: {
        "multiplier": 1.0,
        "perks": ["Basic support"],
    },
    LoyaltyTier.SILVER.value: {
        "multiplier": 1.2,
        "perks": ["Priority support", "Late checkout"],
    },
    LoyaltyTier.GOLD.value: {
        "multiplier": 1.5,
        "perks": ["Priority support", "Late checkout", "Room upgrade"],
    },
    LoyaltyTier.PLATINUM.value: {
        "multiplier": 2.0,
        "perks": ["Dedicated support", "Late checkout", "Room upgrade", "Complimentary breakfast"],
    },
}


@dataclass
class RedemptionResult:
    points_redeemed: int
    discount_amount: int
    discount_minor_units: int
    remaining_points: int


def points_for_amount(total_amount_minor_units: int) -> int:
    if not total_amount_minor_units or total_amount_minor_units < 0:
        return 0
    return total_amount_minor_units // MINOR_UNITS_PER_POINT_EARNED


class LoyaltyService:
    """Reads and writes loyalty points."""

    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, user_id: str, lock: bool = False) -> User:
        if lock:
            user = acquire_row_lock(self.db, User, User.id == user_id)
        else:
            user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user

    def _append_entry(
        self,
        user: User,
        points: int,
        action: LoyaltyActionType,
        booking_id: Optional[str] = None,
        note: Optional[str] = None
    ) -> LoyaltyLedger:
        entry = LoyaltyLedger(
            user_id=user.id,
            points=points,
            action=action.value,
            booking_id=booking_id,
            note=note
        )
        self.db.add(entry)
        user.points = (user.points or 0) + points
        self.db.flush()
        return entry

    def earn_for_booking(self, booking: Booking) -> Optional[LoyaltyLedger]:
        """
        Credit points for a paid booking.

        Runs inside the caller's transaction and does not commit. Returns
        None when the booking has no user or earns zero points.
        """
        if not booking.user_id:
            return None

        points = points_for_amount(booking.total_amount)
        if points <= 0:
            return None

        user = self._get_user(booking.user_id, lock=True)
        entry = self._append_entry(
            user, points, LoyaltyActionType.EARN,
            booking_id=booking.id,
            note=f"Booking {booking.id}"
        )
        logger.info(f"User {user.id} earned {points} points for booking {booking.id}")
        return entry

    def redeem(self, user_id: str, points: int, booking_id: Optional[str] = None) -> RedemptionResult:
        """
        Spend points for a discount.

        Raises:
            ValidationError: points < 1
            NotFound: unknown user
            InsufficientBalance: points exceed the balance
        """
        if isinstance(points, bool) or not isinstance(points, int) or points < 1:
            raise ValidationError.for_field("points", "points must be a positive integer")

        try:
            user = self._get_user(user_id, lock=True)
            if points > (user.points or 0):
                raise InsufficientBalance(requested=points, available=user.points or 0)

            self._append_entry(
                user, -points, LoyaltyActionType.REDEEM,
                booking_id=booking_id,
                note=f"Redeemed {points} points"
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"User {user_id} redeemed {points} points, {user.points} remaining")
        return RedemptionResult(
            points_redeemed=points,
            discount_amount=points,
            discount_minor_units=points * MINOR_UNITS_PER_POINT_REDEEMED,
            remaining_points=user.points
        )

    def adjust(self, user_id: str, delta: int, note: str) -> LoyaltyLedger:
        """Manual correction by staff. The balance may not go negative."""
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError.for_field("points", "adjustment must be a non-zero integer")

        try:
            user = self._get_user(user_id, lock=True)
            if (user.points or 0) + delta < 0:
                raise InsufficientBalance(requested=-delta, available=user.points or 0)

            entry = self._append_entry(user, delta, LoyaltyActionType.ADJUST, note=note)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Adjusted points for user {user_id} by {delta:+d}: {note}")
        return entry

    def recent_entries(self, user_id: str, limit: int = RECENT_TRANSACTIONS_LIMIT) -> List[LoyaltyLedger]:
        return self.db.query(LoyaltyLedger).filter(
            LoyaltyLedger.user_id == user_id
        ).order_by(LoyaltyLedger.created_at.desc()).limit(limit).all()

    def ledger_total(self, user_id: str) -> int:
        total = self.db.query(func.coalesce(func.sum(LoyaltyLedger.points), 0)).filter(
            LoyaltyLedger.user_id == user_id
        ).scalar()
        return int(total or 0)

    def get_summary(self, user_id: str) -> Dict:
        user = self._get_user(user_id)
        tier = user.tier or LoyaltyTier.BRONZE.value
        benefits = TIER_BENEFITS.get(tier, TIER_BENEFITS[LoyaltyTier.BRONZE.value])

        return {
            "user_id": user.id,
            "points": user.points or 0,
            "tier": tier,
            "benefits": benefits,
            "points_value": f"1 point = 1 currency unit ({user.points or 0} points = {user.points or 0} off)",
            "recent_transactions": self.recent_entries(user.id),
        }

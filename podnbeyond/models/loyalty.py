import uuid
from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow
import enum


class LoyaltyActionType(str, enum.Enum):
    EARN = "EARN"
    REDEEM = "REDEEM"
    ADJUST = "ADJUST"


class LoyaltyLedger(Base):
    """
    Append-only point movements. Rows are never updated or deleted; the sum
    of a user's rows equals User.points.
    """
    __tablename__ = "loyalty_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    points = Column(Integer, nullable=False)  # signed delta
    action = Column(String(20), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    note = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="ledger_entries")

    __table_args__ = (
        Index("ix_loyalty_ledger_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<LoyaltyLedger {self.action} {self.points:+d} user={self.user_id}>"

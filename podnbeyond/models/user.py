import uuid
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow
import enum


class UserRole(str, enum.Enum):
    GUEST = "GUEST"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class LoyaltyTier(str, enum.Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default=UserRole.GUEST.value, nullable=False)

    # Denormalized loyalty balance. Only LoyaltyService writes it, always
    # together with a LoyaltyLedger row.
    points = Column(Integer, default=0, nullable=False)
    tier = Column(String(20), default=LoyaltyTier.BRONZE.value, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="user")
    ledger_entries = relationship("LoyaltyLedger", back_populates="user", order_by="LoyaltyLedger.created_at")

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.STAFF.value, UserRole.ADMIN.value)

    def __repr__(self):
        return f"<User {self.email} points={self.points}>"

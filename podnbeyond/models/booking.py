import uuid
from sqlalchemy import Column, String, Date, Integer, ForeignKey, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow
import enum


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class BookingSource(str, enum.Enum):
    """How the booking arrived"""
    DIRECT = "direct"  # Guest checkout on our site
    OTA = "ota"        # Pulled from a channel provider


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    room_type_id = Column(String(36), ForeignKey("room_types.id"), nullable=False)

    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)

    # Pricing snapshot in minor units, captured at booking time
    nights = Column(Integer, nullable=False, default=1)
    room_total = Column(Integer, nullable=False, default=0)
    service_charge = Column(Integer, nullable=False, default=0)
    tax_on_room = Column(Integer, nullable=False, default=0)
    tax_on_service = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)

    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)

    # Guest contact (redundant with user for guest checkout)
    guest_name = Column(String(100), nullable=False)
    guest_email = Column(String(255), nullable=False)
    guest_phone = Column(String(20), nullable=True)

    # Payment gateway references
    payment_order_id = Column(String(100), nullable=True, unique=True)
    payment_id = Column(String(100), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Cancellation
    cancelled_at = Column(DateTime, nullable=True)
    refund_amount = Column(Integer, nullable=True)

    # Provenance for bookings pulled from channel providers
    source = Column(String(20), default=BookingSource.DIRECT.value, nullable=False)
    provider = Column(String(50), nullable=True)
    external_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="bookings")
    room_type = relationship("RoomType", back_populates="bookings")

    __table_args__ = (
        UniqueConstraint("provider", "external_id", name="uq_booking_provider_external_id"),
        Index("ix_booking_status", "status"),
        Index("ix_booking_room_type_dates", "room_type_id", "check_in", "check_out"),
    )

    def __repr__(self):
        return f"<Booking {self.id} {self.status} {self.check_in}->{self.check_out}>"

"""
Inventory Model

Daily allotment per room type. This is the source of truth for
availability and what gets pushed to channel providers.
"""

import uuid
from sqlalchemy import Column, String, Date, DateTime, Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow


class Inventory(Base):
    """
    One row per (room type, calendar date).

    booked <= allotment is expected but not enforced at write time:
    bookings only take inventory when payment is confirmed, so concurrent
    PENDING bookings for the same dates can oversell.
    """
    __tablename__ = "inventory"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    allotment = Column(Integer, nullable=False, default=0)
    booked = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    room_type = relationship("RoomType", back_populates="inventory")

    __table_args__ = (
        UniqueConstraint('room_type_id', 'date', name='uq_inventory_room_type_date'),
        Index('ix_inventory_room_type_date', 'room_type_id', 'date'),
    )

    @property
    def remaining(self) -> int:
        return (self.allotment or 0) - (self.booked or 0)

    def __repr__(self):
        return f"<Inventory {self.room_type_id} {self.date} {self.booked}/{self.allotment}>"

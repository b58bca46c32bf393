"""
Room Type and Rate Plan Models

RoomType carries the base nightly rate used by the pricing engine.
RatePlan is informational only: it is listed and edited by admins but
not applied to price computation.
"""

import uuid
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow


class RoomType(Base):
    """
    A sellable room category.

    Never deleted while bookings reference it; admins deactivate it
    (is_active=False) instead, which removes it from availability search.
    """
    __tablename__ = "room_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    capacity = Column(Integer, nullable=False, default=2)
    amenities = Column(JSON, default=list)
    images = Column(JSON, default=list)

    # Nightly rate in minor currency units (paise)
    base_rate = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    inventory = relationship("Inventory", back_populates="room_type")
    bookings = relationship("Booking", back_populates="room_type")
    channel_mappings = relationship("ChannelMapping", back_populates="room_type", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<RoomType {self.name} rate={self.base_rate}>"


class RatePlan(Base):
    __tablename__ = "rate_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_refundable = Column(Boolean, default=True, nullable=False)
    discount_percent = Column(Integer, nullable=True)  # 0-100
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<RatePlan {self.name}>"

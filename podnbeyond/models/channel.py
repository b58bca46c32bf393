"""
Channel Integration Models

- ChannelMapping: room type <-> provider room code
- ProviderPayload: append-only audit row per provider call attempt
"""

import uuid
from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Integer, Boolean, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.dates import utcnow
import enum


class SyncDirection(str, enum.Enum):
    PUSH = "push"
    PULL = "pull"


class SyncOperation(str, enum.Enum):
    AVAILABILITY = "availability"
    RATES = "rates"
    BOOKINGS = "bookings"
    CONNECTION = "connection"
    ROOM_MAPPINGS = "room_mappings"


class ChannelMapping(Base):
    """
    Maps an internal room type to the room code a provider uses for it.
    One mapping per (room type, provider).
    """
    __tablename__ = "channel_mappings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(50), nullable=False)
    external_room_code = Column(String(100), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    room_type = relationship("RoomType", back_populates="channel_mappings")

    __table_args__ = (
        UniqueConstraint('room_type_id', 'provider', name='uq_channel_mapping_room_type_provider'),
        Index("ix_channel_mapping_provider_code", "provider", "external_room_code"),
    )

    def __repr__(self):
        return f"<ChannelMapping {self.provider}:{self.external_room_code} -> {self.room_type_id}>"


class ProviderPayload(Base):
    """
    Audit log of every provider call attempt, successful or not.
    Rows are written once and never mutated.
    """
    __tablename__ = "provider_payloads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider = Column(String(50), nullable=False)
    operation = Column(String(30), nullable=False)
    direction = Column(String(10), nullable=False)

    request_payload = Column(JSON, nullable=True)
    response_payload = Column(JSON, nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)

    attempt = Column(Integer, nullable=False, default=1)
    duration_ms = Column(Integer, nullable=True)
    # When the call was sent; the cursor for the next pull
    started_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_provider_payload_provider_created", "provider", "created_at"),
        Index("ix_provider_payload_operation", "provider", "operation", "success"),
    )

    def __repr__(self):
        return f"<ProviderPayload {self.provider} {self.operation} success={self.success}>"

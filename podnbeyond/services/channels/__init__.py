# Channel providers package
from .base import (
    AvailabilityUpdate,
    RateUpdate,
    ExternalBooking,
    SyncResult,
    PullResult,
    ChannelProvider,
    BaseChannelProvider,
)
from .beds24 import Beds24Provider
from .registry import get_provider, available_providers, configured_providers, load_room_mappings

__all__ = [
    "AvailabilityUpdate", "RateUpdate", "ExternalBooking", "SyncResult", "PullResult",
    "ChannelProvider", "BaseChannelProvider", "Beds24Provider",
    "get_provider", "available_providers", "configured_providers", "load_room_mappings",
]

# Models package
from .user import User, UserRole, LoyaltyTier
from .room import RoomType, RatePlan
from .inventory import Inventory
from .booking import Booking, BookingStatus, BookingSource
from .loyalty import LoyaltyLedger, LoyaltyActionType
from .channel import ChannelMapping, ProviderPayload, SyncDirection, SyncOperation

__all__ = [
    "User", "UserRole", "LoyaltyTier",
    "RoomType", "RatePlan",
    "Inventory",
    "Booking", "BookingStatus", "BookingSource",
    "LoyaltyLedger", "LoyaltyActionType",
    "ChannelMapping", "ProviderPayload", "SyncDirection", "SyncOperation",
]

# Services package
from .pricing_engine import PriceBreakdown, compute_pricing
from .availability_service import AvailabilityCalculator, AvailableRoom, stay_dates
from .payment_gateway import RazorpayClient, PaymentOrder, get_payment_gateway
from .notifications import BookingNotifier, LoggingNotifier, get_notifier
from .loyalty_service import LoyaltyService, RedemptionResult, TIER_BENEFITS
from .inventory_service import InventoryService, consume_inventory, release_inventory
from .booking_service import (
    BookingService,
    BookingCreation,
    PaymentConfirmation,
    CancellationResult,
    refund_for,
)
from .sync_orchestrator import SyncOrchestrator, PullSummary

__all__ = [
    "PriceBreakdown", "compute_pricing",
    "AvailabilityCalculator", "AvailableRoom", "stay_dates",
    "RazorpayClient", "PaymentOrder", "get_payment_gateway",
    "BookingNotifier", "LoggingNotifier", "get_notifier",
    "LoyaltyService", "RedemptionResult", "TIER_BENEFITS",
    "InventoryService", "consume_inventory", "release_inventory",
    "BookingService", "BookingCreation", "PaymentConfirmation", "CancellationResult", "refund_for",
    "SyncOrchestrator", "PullSummary",
]

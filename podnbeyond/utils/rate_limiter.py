"""
Rate Limiter Configuration

Uses in-memory storage by default; point RATE_LIMIT_STORAGE_URI at
redis:// when running more than one instance.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind a reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_real_client_ip,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=["100/minute"],
    enabled=settings.rate_limit_enabled
)


RATE_LIMITS = {
    "availability": "120/minute",
    "booking_create": "30/minute",
    "booking_cancel": "20/minute",
    "loyalty_redeem": "10/minute",
    # Gateways retry aggressively, keep webhooks generous
    "webhook": "300/minute",
    "manual_sync": "10/minute",
}


def get_rate_limit(operation: str) -> str:
    """Get rate limit for a specific operation."""
    return RATE_LIMITS.get(operation, "100/minute")

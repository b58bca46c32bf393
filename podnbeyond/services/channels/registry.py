"""
Provider registry: builds the adapter for a provider name from settings
and the stored ChannelMapping rows.
"""

from typing import Callable, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import settings
from ...exceptions import NotFound, ValidationError
from ...models.channel import ChannelMapping
from .base import ChannelProvider
from .beds24 import Beds24Provider


def load_room_mappings(db: Session, provider_name: str) -> Dict[str, str]:
    rows = db.query(ChannelMapping).filter(ChannelMapping.provider == provider_name).all()
    return {row.room_type_id: row.external_room_code for row in rows}


def _build_beds24(db: Session, transport: Optional[httpx.BaseTransport]) -> ChannelProvider:
    if not settings.has_beds24_config:
        raise ValidationError("Beds24 is not configured: BEDS24_API_KEY and BEDS24_HOTEL_CODE are required")
    return Beds24Provider(
        api_url=settings.beds24_api_url,
        api_key=settings.beds24_api_key,
        hotel_code=settings.beds24_hotel_code,
        room_mappings=load_room_mappings(db, Beds24Provider.name),
        timeout=settings.channel_timeout_seconds,
        transport=transport
    )


PROVIDER_FACTORIES: Dict[str, Callable[[Session, Optional[httpx.BaseTransport]], ChannelProvider]] = {
    Beds24Provider.name: _build_beds24,
}


def available_providers() -> List[str]:
    return sorted(PROVIDER_FACTORIES)


def configured_providers() -> List[str]:
    """Providers with credentials present, i.e. the ones the scheduler syncs."""
    configured = []
    if settings.has_beds24_config:
        configured.append(Beds24Provider.name)
    return configured


def get_provider(
    name: str,
    db: Session,
    transport: Optional[httpx.BaseTransport] = None
) -> ChannelProvider:
    """
    Raises:
        NotFound: unknown provider name
        ValidationError: provider known but not configured
    """
    factory = PROVIDER_FACTORIES.get((name or "").lower())
    if factory is None:
        raise NotFound(f"Unknown channel provider '{name}'")
    return factory(db, transport)

"""
Channel Manager API

Room mappings, manual sync and the provider call audit log.
All routes require STAFF or ADMIN.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..exceptions import Conflict, NotFound
from ..models.channel import ChannelMapping, ProviderPayload
from ..models.room import RoomType
from ..models.user import User
from ..schemas.channel import (
    ChannelMappingCreate, ChannelMappingResponse,
    ProviderInfo, ProviderPayloadResponse,
    PullRequest, PullSummaryResponse, PushRequest,
    SchedulerStatus, SyncResultResponse,
)
from ..services.channels.registry import available_providers, configured_providers, get_provider
from ..services.sync_orchestrator import SyncOrchestrator
from ..services.sync_scheduler import get_scheduler_status
from ..utils.dates import utcnow
from ..utils.dependencies import require_staff
from ..utils.rate_limiter import limiter, get_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/channel", tags=["Channel Manager"])


def _orchestrator(provider_name: str, db: Session) -> SyncOrchestrator:
    return SyncOrchestrator(db, get_provider(provider_name, db))


def _push_range(data: PushRequest):
    start = data.start or utcnow().date()
    end = data.end or (start + timedelta(days=settings.sync_horizon_days - 1))
    return start, end


# ==================== Providers ====================

@router.get("/providers", response_model=List[ProviderInfo])
async def list_providers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    configured = set(configured_providers())
    return [
        ProviderInfo(
            name=name,
            configured=name in configured,
            mappings=db.query(ChannelMapping).filter(ChannelMapping.provider == name).count()
        )
        for name in available_providers()
    ]


@router.post("/{provider}/test", response_model=SyncResultResponse)
def test_connection(
    provider: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return _orchestrator(provider, db).test_connection()


# ==================== Mappings ====================

@router.get("/mappings", response_model=List[ChannelMappingResponse])
async def list_mappings(
    provider: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    query = db.query(ChannelMapping)
    if provider:
        query = query.filter(ChannelMapping.provider == provider)
    return query.order_by(ChannelMapping.provider, ChannelMapping.external_room_code).all()


@router.post("/mappings", response_model=ChannelMappingResponse, status_code=201)
async def create_mapping(
    data: ChannelMappingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    if data.provider not in available_providers():
        raise NotFound(f"Unknown channel provider '{data.provider}'")
    if not db.query(RoomType).filter(RoomType.id == data.room_type_id).first():
        raise NotFound(f"Room type {data.room_type_id} not found")

    mapping = ChannelMapping(**data.model_dump())
    try:
        db.add(mapping)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Room type {data.room_type_id} is already mapped for {data.provider}")

    db.refresh(mapping)
    logger.info(f"Mapped room type {mapping.room_type_id} -> {mapping.provider}:{mapping.external_room_code}")
    return mapping


@router.delete("/mappings/{mapping_id}", status_code=204)
async def delete_mapping(
    mapping_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    mapping = db.query(ChannelMapping).filter(ChannelMapping.id == mapping_id).first()
    if not mapping:
        raise NotFound(f"Mapping {mapping_id} not found")
    db.delete(mapping)
    db.commit()


@router.post("/{provider}/mappings/refresh")
def refresh_mappings(
    provider: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Stored mappings the provider confirms exist on its side."""
    return {"provider": provider, "mappings": _orchestrator(provider, db).refresh_room_mappings()}


# ==================== Manual sync ====================

@router.post("/{provider}/sync/push-availability", response_model=SyncResultResponse)
@limiter.limit(get_rate_limit("manual_sync"))
def push_availability(
    request: Request,
    provider: str,
    data: PushRequest = PushRequest(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    start, end = _push_range(data)
    return _orchestrator(provider, db).push_availability(start, end, data.room_type_id)


@router.post("/{provider}/sync/push-rates", response_model=SyncResultResponse)
@limiter.limit(get_rate_limit("manual_sync"))
def push_rates(
    request: Request,
    provider: str,
    data: PushRequest = PushRequest(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    start, end = _push_range(data)
    return _orchestrator(provider, db).push_rates(start, end, data.room_type_id)


@router.post("/{provider}/sync/pull-reservations", response_model=PullSummaryResponse)
@limiter.limit(get_rate_limit("manual_sync"))
def pull_reservations(
    request: Request,
    provider: str,
    data: PullRequest = PullRequest(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return _orchestrator(provider, db).pull_bookings(data.since)


# ==================== Logs / status ====================

@router.get("/logs", response_model=List[ProviderPayloadResponse])
async def sync_logs(
    provider: Optional[str] = Query(None),
    operation: Optional[str] = Query(None),
    success: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    query = db.query(ProviderPayload)
    if provider:
        query = query.filter(ProviderPayload.provider == provider)
    if operation:
        query = query.filter(ProviderPayload.operation == operation)
    if success is not None:
        query = query.filter(ProviderPayload.success == success)
    return query.order_by(ProviderPayload.created_at.desc()).limit(limit).all()


@router.get("/scheduler", response_model=SchedulerStatus)
async def scheduler_status(current_user: User = Depends(require_staff)):
    return get_scheduler_status()

"""
Admin API

Room types, inventory, rate plans, bookings and loyalty corrections.
All routes require STAFF or ADMIN.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import NotFound
from ..models.room import RatePlan, RoomType
from ..models.user import User
from ..schemas.admin import (
    InventoryBulkUpsert, InventoryResponse,
    RatePlanCreate, RatePlanResponse,
    RoomTypeCreate, RoomTypeResponse, RoomTypeUpdate,
)
from ..schemas.booking import BookingResponse
from ..schemas.loyalty import LoyaltyAdjustRequest, LoyaltyEntryResponse
from ..services.booking_service import BookingService
from ..services.inventory_service import InventoryService
from ..services.loyalty_service import LoyaltyService
from ..utils.dependencies import require_staff

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["Admin"])


def _get_room_type(db: Session, room_type_id: str) -> RoomType:
    room_type = db.query(RoomType).filter(RoomType.id == room_type_id).first()
    if not room_type:
        raise NotFound(f"Room type {room_type_id} not found")
    return room_type


# ==================== Room types ====================

@router.get("/room-types", response_model=List[RoomTypeResponse])
async def list_room_types(
    include_inactive: bool = Query(True),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    query = db.query(RoomType)
    if not include_inactive:
        query = query.filter(RoomType.is_active == True)  # noqa: E712
    return query.order_by(RoomType.name).all()


@router.post("/room-types", response_model=RoomTypeResponse, status_code=201)
async def create_room_type(
    data: RoomTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    room_type = RoomType(**data.model_dump())
    db.add(room_type)
    db.commit()
    db.refresh(room_type)
    logger.info(f"Room type {room_type.id} ({room_type.name}) created by {current_user.email}")
    return room_type


@router.patch("/room-types/{room_type_id}", response_model=RoomTypeResponse)
async def update_room_type(
    room_type_id: str,
    data: RoomTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Changing base_rate only affects bookings created afterwards."""
    room_type = _get_room_type(db, room_type_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(room_type, field, value)
    db.commit()
    db.refresh(room_type)
    return room_type


@router.delete("/room-types/{room_type_id}", response_model=RoomTypeResponse)
async def deactivate_room_type(
    room_type_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Room types are deactivated, never deleted, so bookings keep their reference."""
    room_type = _get_room_type(db, room_type_id)
    room_type.is_active = False
    db.commit()
    db.refresh(room_type)
    logger.info(f"Room type {room_type.id} deactivated by {current_user.email}")
    return room_type


# ==================== Inventory ====================

@router.get("/inventory", response_model=List[InventoryResponse])
async def list_inventory(
    start: date = Query(...),
    end: date = Query(...),
    room_type_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return InventoryService(db).list(room_type_id, start, end)


@router.put("/inventory", response_model=List[InventoryResponse])
async def upsert_inventory(
    data: InventoryBulkUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Set allotments; booked counts are never touched here."""
    return InventoryService(db).bulk_upsert(
        data.room_type_id,
        [entry.model_dump() for entry in data.entries]
    )


# ==================== Rate plans ====================

@router.get("/rate-plans", response_model=List[RatePlanResponse])
async def list_rate_plans(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return db.query(RatePlan).order_by(RatePlan.name).all()


@router.post("/rate-plans", response_model=RatePlanResponse, status_code=201)
async def create_rate_plan(
    data: RatePlanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    rate_plan = RatePlan(**data.model_dump())
    db.add(rate_plan)
    db.commit()
    db.refresh(rate_plan)
    return rate_plan


# ==================== Bookings ====================

@router.get("/bookings", response_model=List[BookingResponse])
async def list_bookings(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return BookingService(db).list(status=status, limit=limit, offset=offset)


# ==================== Loyalty ====================

@router.post("/loyalty/adjust", response_model=LoyaltyEntryResponse, status_code=201)
async def adjust_points(
    data: LoyaltyAdjustRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    entry = LoyaltyService(db).adjust(data.user_id, data.points, f"{data.note} (by {current_user.email})")
    return entry

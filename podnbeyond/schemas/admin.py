from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


# ==================
# Room types
# ==================

class RoomTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: int = Field(..., ge=1)
    amenities: List[str] = []
    images: List[str] = []
    base_rate: int = Field(..., ge=0, description="Nightly rate in minor units")
    is_active: bool = True


class RoomTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    base_rate: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class RoomTypeResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    capacity: int
    amenities: List[str] = []
    images: List[str] = []
    base_rate: int
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ==================
# Inventory
# ==================

class InventoryEntry(BaseModel):
    date: date
    allotment: int = Field(..., ge=0)


class InventoryBulkUpsert(BaseModel):
    room_type_id: str
    entries: List[InventoryEntry] = Field(..., min_length=1)


class InventoryResponse(BaseModel):
    id: str
    room_type_id: str
    date: date
    allotment: int
    booked: int
    remaining: int

    class Config:
        from_attributes = True


# ==================
# Rate plans
# ==================

class RatePlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_refundable: bool = True
    discount_percent: Optional[int] = Field(None, ge=0, le=100)
    is_active: bool = True


class RatePlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_refundable: bool
    discount_percent: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True

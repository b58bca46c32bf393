"""
Availability Schemas

All money fields are integers in minor currency units (paise).
"""

from datetime import date
from typing import List
from pydantic import BaseModel


class PriceBreakdownResponse(BaseModel):
    nights: int
    base_rate: int
    room_total: int
    service_charge: int
    tax_on_room: int
    tax_on_service: int
    total_amount: int

    class Config:
        from_attributes = True


class AvailableRoomResponse(BaseModel):
    room_type_id: str
    name: str
    capacity: int
    available: int
    amenities: List[str] = []
    images: List[str] = []
    pricing: PriceBreakdownResponse

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    check_in: date
    check_out: date
    guests: int
    nights: int
    rooms: List[AvailableRoomResponse]

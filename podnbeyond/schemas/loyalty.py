from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class LoyaltyEntryResponse(BaseModel):
    id: str
    points: int
    action: str
    booking_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TierBenefits(BaseModel):
    multiplier: float
    perks: List[str]


class LoyaltySummaryResponse(BaseModel):
    user_id: str
    points: int
    tier: str
    benefits: TierBenefits
    points_value: str
    recent_transactions: List[LoyaltyEntryResponse]


class RedeemRequest(BaseModel):
    points: int
    booking_id: Optional[str] = None


class RedeemResponse(BaseModel):
    points_redeemed: int
    discount_amount: int = Field(..., description="Currency units, 1 point = 1 unit")
    discount_minor_units: int
    remaining_points: int

    class Config:
        from_attributes = True


class LoyaltyAdjustRequest(BaseModel):
    user_id: str
    points: int = Field(..., description="Signed adjustment")
    note: str = Field(..., min_length=1, max_length=255)

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime, date
import re

from .availability import PriceBreakdownResponse


def _strip_markup(v):
    if isinstance(v, str):
        v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
        v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
        v = v.strip()
    return v


class BookingCreate(BaseModel):
    room_type_id: str = Field(..., min_length=1, max_length=36)
    check_in: date
    check_out: date
    guests: int = Field(default=1, description="Number of guests")
    guest_name: str = Field(..., min_length=1, max_length=100)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=20)

    @field_validator('guest_name', mode='before')
    @classmethod
    def sanitize_name(cls, v):
        """Strip script tags and inline handlers"""
        return _strip_markup(v)


class BookingResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    room_type_id: str
    check_in: date
    check_out: date
    guests: int
    nights: int
    room_total: int
    service_charge: int
    tax_on_room: int
    tax_on_service: int
    total_amount: int
    status: str
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    payment_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refund_amount: Optional[int] = None
    source: str
    provider: Optional[str] = None
    external_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentOrderResponse(BaseModel):
    """What the checkout widget needs to open the payment"""
    order_id: str
    key_id: str
    amount: int
    currency: str


class BookingCreateResponse(BaseModel):
    booking: BookingResponse
    pricing: PriceBreakdownResponse
    payment: PaymentOrderResponse


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund_amount: int
    refund_policy: str
    hours_until_check_in: float
    inventory_restored: bool


class WebhookAck(BaseModel):
    status: str
    event: Optional[str] = None
    booking_id: Optional[str] = None


class PaymentVerifyRequest(BaseModel):
    """Fields the checkout widget hands back after a successful payment"""
    razorpay_order_id: str = Field(..., min_length=1, max_length=100)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=100)
    razorpay_signature: str = Field(..., min_length=1, max_length=256)

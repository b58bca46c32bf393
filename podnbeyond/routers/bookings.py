import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas.booking import (
    BookingCreate, BookingCreateResponse, BookingResponse,
    CancellationResponse, PaymentOrderResponse, PaymentVerifyRequest, WebhookAck
)
from ..services.booking_service import BookingService
from ..services.notifications import BookingNotifier, get_notifier
from ..services.payment_gateway import RazorpayClient, get_payment_gateway
from ..utils.dependencies import get_current_user_optional
from ..utils.rate_limiter import limiter, get_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_payment_gateway),
    notifier: BookingNotifier = Depends(get_notifier)
) -> BookingService:
    return BookingService(db, gateway, notifier)


@router.post("/bookings", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("booking_create"))
def create_booking(
    request: Request,
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user: Optional[User] = Depends(get_current_user_optional)
):
    """
    Create a PENDING booking and its payment order.

    Guests may book without an account; signed-in users earn loyalty
    points once the payment is captured.
    """
    created = service.create(
        room_type_id=data.room_type_id,
        check_in=data.check_in,
        check_out=data.check_out,
        guests=data.guests,
        guest_name=data.guest_name,
        guest_email=data.guest_email,
        guest_phone=data.guest_phone,
        user_id=current_user.id if current_user else None
    )
    return BookingCreateResponse(
        booking=created.booking,
        pricing=created.pricing,
        payment=PaymentOrderResponse(**service.payment_gateway.public_checkout_config(created.payment_order))
    )


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str, service: BookingService = Depends(get_booking_service)):
    return service.get(booking_id)


@router.post("/bookings/{booking_id}/cancel", response_model=CancellationResponse)
@limiter.limit(get_rate_limit("booking_cancel"))
def cancel_booking(
    request: Request,
    booking_id: str,
    service: BookingService = Depends(get_booking_service)
):
    result = service.cancel(booking_id)
    return CancellationResponse(
        booking=result.booking,
        refund_amount=result.refund_amount,
        refund_policy=result.refund_policy,
        hours_until_check_in=result.hours_until_check_in,
        inventory_restored=result.inventory_restored
    )


@router.post("/bookings/{booking_id}/verify-payment", response_model=BookingResponse)
@limiter.limit(get_rate_limit("booking_create"))
def verify_payment(
    request: Request,
    booking_id: str,
    data: PaymentVerifyRequest,
    service: BookingService = Depends(get_booking_service)
):
    """Checkout callback: marks the booking PAID once the signature checks out."""
    result = service.verify_checkout_payment(
        booking_id, data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
    )
    return result.booking


@router.post("/webhooks/razorpay", response_model=WebhookAck)
@limiter.limit(get_rate_limit("webhook"))
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: BookingService = Depends(get_booking_service)
):
    """
    Payment gateway webhook.

    The signature covers the raw body, so it is read and verified before
    any JSON parsing happens.
    """
    raw_body = await request.body()
    return service.handle_payment_webhook(raw_body, x_razorpay_signature)

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.availability import AvailabilityResponse
from ..services.availability_service import AvailabilityCalculator
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/v1/availability", tags=["Availability"])


@router.get("", response_model=AvailabilityResponse)
@limiter.limit(get_rate_limit("availability"))
async def search_availability(
    request: Request,
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    guests: int = Query(1),
    room_type_id: Optional[str] = Query(None, alias="roomTypeId"),
    db: Session = Depends(get_db)
):
    """Room types bookable for the whole stay, with price breakdown."""
    rooms = AvailabilityCalculator(db).search(check_in, check_out, guests, room_type_id)
    return AvailabilityResponse(
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        nights=(check_out - check_in).days,
        rooms=rooms
    )

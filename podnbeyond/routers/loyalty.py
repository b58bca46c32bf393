from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas.loyalty import LoyaltySummaryResponse, RedeemRequest, RedeemResponse
from ..services.loyalty_service import LoyaltyService
from ..utils.dependencies import get_current_user
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/v1/loyalty", tags=["Loyalty"])


@router.get("/me", response_model=LoyaltySummaryResponse)
async def my_loyalty(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Balance, tier, benefits and the last 10 point movements."""
    return LoyaltyService(db).get_summary(current_user.id)


@router.post("/redeem", response_model=RedeemResponse)
@limiter.limit(get_rate_limit("loyalty_redeem"))
async def redeem_points(
    request: Request,
    data: RedeemRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LoyaltyService(db).redeem(current_user.id, data.points, booking_id=data.booking_id)

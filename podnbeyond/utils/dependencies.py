"""
Authentication and authorization dependencies.

Tokens are bearer JWTs issued by the accounts service with the user id in
"sub". Booking creation accepts anonymous guests; loyalty needs a user;
admin and channel routes need STAFF or ADMIN.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from .logging_config import user_id_var
from .security import verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """The authenticated user, or None when no token is sent."""
    if credentials is None:
        return None

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise _credentials_exception()

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if user is None:
        raise _credentials_exception()

    user_id_var.set(user.id)
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional)
) -> User:
    if user is None:
        raise _credentials_exception()
    return user


async def require_staff(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required"
        )
    return current_user

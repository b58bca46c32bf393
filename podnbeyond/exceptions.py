"""
Domain Errors

Every failure the booking core reports to its callers is one of these.
Routers never build error responses by hand: the handlers registered in
main.py turn a BookingCoreError into a problem+json response using the
status_code / title / detail carried here.

- ValidationError: malformed or out-of-range input (field-level detail)
- NotFound: missing entity reference
- Conflict: invalid state transition (e.g. double cancel)
- InsufficientBalance: loyalty redemption beyond the balance
- ExternalServiceError: payment gateway or OTA adapter failure
- SignatureVerificationError: webhook authenticity failure
"""

from typing import Dict, List, Optional


class BookingCoreError(Exception):
    """Base class for errors surfaced by the booking core."""

    status_code = 500
    title = "Internal Server Error"

    def __init__(self, detail: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(detail)
        self.detail = detail
        self.errors = errors or []

    def to_dict(self) -> Dict:
        data = {"title": self.title, "status": self.status_code, "detail": self.detail}
        if self.errors:
            data["errors"] = self.errors
        return data


class ValidationError(BookingCoreError):
    status_code = 400
    title = "Bad Request"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class NotFound(BookingCoreError):
    status_code = 404
    title = "Not Found"


class Conflict(BookingCoreError):
    status_code = 409
    title = "Conflict"


class InsufficientBalance(BookingCoreError):
    status_code = 400
    title = "Bad Request"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Insufficient points: requested {requested}, available {available}"
        )
        self.requested = requested
        self.available = available


class ExternalServiceError(BookingCoreError):
    status_code = 502
    title = "Bad Gateway"

    # Shown to guests instead of the raw upstream error
    public_detail = "The payment service is temporarily unavailable, please try again"

    def __init__(self, service: str, detail: str, retryable: bool = True):
        super().__init__(detail)
        self.service = service
        self.retryable = retryable

    def to_dict(self) -> Dict:
        return {"title": self.title, "status": self.status_code, "detail": self.public_detail}


class SignatureVerificationError(BookingCoreError):
    status_code = 400
    title = "Bad Request"

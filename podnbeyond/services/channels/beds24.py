"""
Beds24 Channel Provider

Wire format notes:
- Auth: Bearer API key
- Inventory: POST /inventory {"updates": [{propId, roomId, date, numRooms}]}
- Rates: POST /rates {"updates": [{propId, roomId, date, rate}]}, rate in rupees
- Bookings: GET /bookings?propId=&since=, price in rupees, status 1 = confirmed
- Rooms: GET /rooms?propId=
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import httpx

from ...utils.dates import as_naive_utc
from ..pricing_engine import round_minor_units
from .base import (
    AvailabilityUpdate,
    BaseChannelProvider,
    ExternalBooking,
    ProviderError,
    ProviderRequestError,
    PullResult,
    RateUpdate,
    SyncResult,
)

CONFIRMED_STATUS = 1


def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_naive_utc(parsed)


def _to_minor_units(price) -> int:
    return round_minor_units(Decimal(str(price or 0)) * 100)


class Beds24Provider(BaseChannelProvider):
    name = "beds24"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        hotel_code: str,
        room_mappings: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(api_url, api_key, room_mappings=room_mappings, timeout=timeout, transport=transport)
        self.hotel_code = hotel_code

    def test_connection(self) -> bool:
        try:
            self._request("GET", "/properties")
        except ProviderRequestError as e:
            self._log_operation("test_connection", False, e.error.message)
            return False
        self._log_operation("test_connection", True)
        return True

    def push_availability(self, updates: List[AvailabilityUpdate]) -> SyncResult:
        beds24_updates = [
            {
                "propId": self.hotel_code,
                "roomId": update.external_room_code,
                "date": update.date.isoformat(),
                "numRooms": update.available_count,
            }
            for update in updates
        ]

        try:
            self._request("POST", "/inventory", payload={"updates": beds24_updates})
        except ProviderRequestError as e:
            return self._failed("push_availability", e, "push availability")

        self._log_operation("push_availability", True, count=len(updates))
        return SyncResult(
            success=True,
            message="Availability pushed successfully",
            records_processed=len(updates)
        )

    def push_rates(self, updates: List[RateUpdate]) -> SyncResult:
        beds24_updates = [
            {
                "propId": self.hotel_code,
                "roomId": update.external_room_code,
                "date": update.date.isoformat(),
                "rate": update.rate_minor_units / 100,
            }
            for update in updates
        ]

        try:
            self._request("POST", "/rates", payload={"updates": beds24_updates})
        except ProviderRequestError as e:
            return self._failed("push_rates", e, "push rates")

        self._log_operation("push_rates", True, count=len(updates))
        return SyncResult(
            success=True,
            message="Rates pushed successfully",
            records_processed=len(updates)
        )

    def _parse_booking(self, raw: Dict) -> ExternalBooking:
        first_name = raw.get("guestFirstName") or ""
        last_name = raw.get("guestName") or ""
        return ExternalBooking(
            external_id=str(raw["bookId"]),
            external_room_code=str(raw["roomId"]),
            check_in=date.fromisoformat(str(raw["arrival"])[:10]),
            check_out=date.fromisoformat(str(raw["departure"])[:10]),
            guest_count=int(raw.get("numAdult") or 0) + int(raw.get("numChild") or 0),
            guest_name=f"{first_name} {last_name}".strip() or "Guest",
            guest_email=raw.get("guestEmail") or None,
            guest_phone=raw.get("guestPhone") or None,
            total_amount=_to_minor_units(raw.get("price")),
            status="confirmed" if str(raw.get("status")) == str(CONFIRMED_STATUS) else "cancelled",
            created_at=_parse_datetime(raw.get("created")),
        )

    def pull_bookings(self, since: datetime) -> PullResult:
        params = {"propId": self.hotel_code, "since": as_naive_utc(since).strftime("%Y-%m-%dT%H:%M:%SZ")}
        try:
            data = self._expect_object(self._request("GET", "/bookings", params=params), "/bookings")
            raw_bookings = data.get("bookings") or []
            if not isinstance(raw_bookings, list):
                raise ProviderRequestError(ProviderError(
                    "invalid_response", "Unexpected response from /bookings: 'bookings' is not a list", 200, True
                ))
        except ProviderRequestError as e:
            failed = self._failed("pull_bookings", e, "pull bookings")
            return PullResult(
                success=False, message=failed.message, errors=failed.errors,
                retryable=failed.retryable, bookings=[]
            )

        bookings = []
        errors = []
        for index, raw in enumerate(raw_bookings):
            if not isinstance(raw, dict):
                errors.append(f"Unreadable booking at position {index}: not an object")
                continue
            try:
                bookings.append(self._parse_booking(raw))
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                errors.append(f"Unreadable booking {raw.get('bookId', index)}: {e}")

        self._log_operation("pull_bookings", True, count=len(bookings))
        return PullResult(
            success=True,
            message=f"Pulled {len(bookings)} bookings",
            records_processed=len(bookings),
            errors=errors or None,
            bookings=bookings
        )

    def get_room_mappings(self) -> Dict[str, str]:
        try:
            data = self._expect_object(
                self._request("GET", "/rooms", params={"propId": self.hotel_code}), "/rooms"
            )
        except ProviderRequestError as e:
            self._log_operation("get_room_mappings", False, e.error.message)
            return {}

        rooms = data.get("rooms") or []
        if not isinstance(rooms, list):
            self._log_operation("get_room_mappings", False, "Unexpected response from /rooms: 'rooms' is not a list")
            return {}

        remote_codes = {str(room.get("roomId")) for room in rooms if isinstance(room, dict)}
        mappings = {
            room_type_id: code
            for room_type_id, code in self.room_mappings.items()
            if code in remote_codes
        }
        self._log_operation("get_room_mappings", True, count=len(mappings))
        return mappings

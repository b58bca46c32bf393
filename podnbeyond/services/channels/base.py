"""
Channel Provider Abstraction

A channel provider is an external distribution system (OTA or channel
manager). Every adapter speaks the same small vocabulary:

- push_availability / push_rates: send our inventory and prices out
- pull_bookings: fetch reservations made on the provider
- get_room_mappings: which of our room types the provider knows about
- test_connection

Adapters never raise past this boundary. Network and API failures come
back as SyncResult(success=False, errors=[...]), an empty PullResult,
False or {}, with the cause kept on provider.last_error. The request and
response of the latest call stay on last_request / last_response so the
caller can audit them.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityUpdate:
    external_room_code: str
    date: date
    available_count: int


@dataclass
class RateUpdate:
    external_room_code: str
    date: date
    rate_minor_units: int


@dataclass
class ExternalBooking:
    """A reservation as reported by a provider, in our units."""
    external_id: str
    external_room_code: str
    check_in: date
    check_out: date
    guest_count: int
    guest_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    total_amount: int
    status: str  # "confirmed" or "cancelled"
    created_at: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass
class SyncResult:
    success: bool
    message: str
    records_processed: Optional[int] = None
    errors: Optional[List[str]] = None
    # False when repeating the call cannot help (bad credentials, rejected data)
    retryable: bool = True


@dataclass
class PullResult(SyncResult):
    bookings: List[ExternalBooking] = field(default_factory=list)


@dataclass
class ProviderError:
    """Structured error from a provider API"""
    code: str
    message: str
    status_code: int
    retryable: bool = False


ERROR_MAP = {
    401: ProviderError("unauthorized", "Invalid or missing API key", 401, False),
    403: ProviderError("forbidden", "Access denied to this resource", 403, False),
    404: ProviderError("not_found", "Resource not found", 404, False),
    422: ProviderError("validation_error", "Invalid request data", 422, False),
    429: ProviderError("rate_limited", "Too many requests", 429, True),
    500: ProviderError("server_error", "Provider server error", 500, True),
    502: ProviderError("bad_gateway", "Provider gateway error", 502, True),
    503: ProviderError("service_unavailable", "Provider service unavailable", 503, True),
}


class ProviderRequestError(Exception):
    """Raised inside an adapter; converted to a failed result before returning."""

    def __init__(self, error: ProviderError):
        super().__init__(error.message)
        self.error = error


class ChannelProvider(ABC):
    name: str = ""

    @abstractmethod
    def test_connection(self) -> bool:
        ...

    @abstractmethod
    def push_availability(self, updates: List[AvailabilityUpdate]) -> SyncResult:
        ...

    @abstractmethod
    def push_rates(self, updates: List[RateUpdate]) -> SyncResult:
        ...

    @abstractmethod
    def pull_bookings(self, since: datetime) -> PullResult:
        ...

    @abstractmethod
    def get_room_mappings(self) -> Dict[str, str]:
        """internal room type id -> external room code"""
        ...


class BaseChannelProvider(ChannelProvider):
    """
    Shared HTTP plumbing for adapters.

    Features:
    - Bearer auth, JSON bodies, per-call timeout
    - Injectable httpx transport (tests use httpx.MockTransport)
    - Structured error mapping
    - Sensitive keys redacted from the recorded request
    """

    user_agent = "PodAndBeyond/1.0"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        room_mappings: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.room_mappings = dict(room_mappings or {})
        self.timeout = timeout
        self.transport = transport

        self.last_error: Optional[str] = None
        self.last_request: Optional[Dict] = None
        self.last_response: Optional[Any] = None

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }

    def _sanitize_payload(self, payload: Optional[Dict]) -> Optional[Dict]:
        """Remove sensitive data from payload before it is recorded"""
        if not payload:
            return payload

        sensitive_keys = ["api_key", "apikey", "password", "secret", "token", "authorization"]

        def sanitize_dict(d: Dict) -> Dict:
            result = {}
            for k, v in d.items():
                if any(sk in k.lower() for sk in sensitive_keys):
                    result[k] = "[REDACTED]"
                elif isinstance(v, dict):
                    result[k] = sanitize_dict(v)
                elif isinstance(v, list):
                    result[k] = [sanitize_dict(i) if isinstance(i, dict) else i for i in v]
                else:
                    result[k] = v
            return result

        return sanitize_dict(payload)

    def _map_error(self, status_code: int, response_data: Any) -> ProviderError:
        """Map HTTP status code to structured error"""
        if status_code in ERROR_MAP:
            error = ERROR_MAP[status_code]
            if isinstance(response_data, dict):
                msg = response_data.get("error") or response_data.get("message")
                if isinstance(msg, dict):
                    msg = msg.get("message")
                if msg:
                    return ProviderError(error.code, str(msg), status_code, error.retryable)
            return error

        if status_code >= 500:
            return ProviderError("server_error", f"Server error: {status_code}", status_code, True)

        return ProviderError("unknown", f"Unknown error: {status_code}", status_code, False)

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> Any:
        """
        Make one HTTP call and return the decoded JSON body.

        Raises:
            ProviderRequestError: transport failure or non-2xx response
        """
        self.last_request = {
            "method": method,
            "endpoint": endpoint,
            "params": params,
            "body": self._sanitize_payload(payload),
        }
        self.last_response = None

        start_time = time.time()
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(
                    method,
                    f"{self.api_url}{endpoint}",
                    headers=self._get_headers(),
                    json=payload,
                    params=params
                )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                ProviderError("network_error", f"Request failed: {e}", 0, True)
            ) from e

        duration_ms = int((time.time() - start_time) * 1000)

        try:
            data = response.json() if response.content else None
        except (json.JSONDecodeError, ValueError):
            data = {"raw": response.text[:1000]}

        self.last_response = data
        logger.debug(f"[{self.name}] {method} {endpoint} -> {response.status_code} ({duration_ms}ms)")

        if 200 <= response.status_code < 300:
            return data

        raise ProviderRequestError(self._map_error(response.status_code, data))

    def _expect_object(self, data: Any, endpoint: str) -> Dict:
        """A 2xx body that is not a JSON object is treated as a failed call."""
        if not isinstance(data, dict):
            raise ProviderRequestError(ProviderError(
                "invalid_response",
                f"Unexpected response from {endpoint}: expected an object, got {type(data).__name__}",
                200,
                True
            ))
        return data

    def _log_operation(self, operation: str, success: bool, error: Optional[str] = None, **details):
        self.last_error = None if success else error
        if success:
            suffix = f" ({', '.join(f'{k}={v}' for k, v in details.items())})" if details else ""
            logger.info(f"[{self.name}] {operation} succeeded{suffix}")
        else:
            logger.warning(f"[{self.name}] {operation} failed: {error}")

    def _failed(self, operation: str, exc: ProviderRequestError, label: str) -> SyncResult:
        self._log_operation(operation, False, exc.error.message)
        return SyncResult(
            success=False,
            message=f"Failed to {label}: {exc.error.message}",
            errors=[exc.error.message],
            retryable=exc.error.retryable
        )

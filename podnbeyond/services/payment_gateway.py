"""
Razorpay Payment Gateway Client

Handles:
- Order creation via the Razorpay Orders API (basic auth: key id / secret)
- Webhook signature verification (HMAC-SHA256 of the raw body)
- Payment signature verification for the checkout callback

When keys are not configured (local development) orders are issued
locally with an order_stub_ prefix so the booking flow can be exercised
end to end without a gateway account.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from ..config import settings
from ..exceptions import ExternalServiceError
from ..utils.security import verify_hmac_sha256

logger = logging.getLogger(__name__)

SERVICE_NAME = "razorpay"


@dataclass
class PaymentOrder:
    """An order created on the gateway"""
    external_order_id: str
    amount: int
    currency: str
    receipt: str
    status: str


class RazorpayClient:
    """
    Thin client for the parts of Razorpay the booking core needs.

    Features:
    - Basic auth with key id / key secret
    - Structured ExternalServiceError on network or API failure
    - Stub orders when keys are absent
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        currency: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.key_id = settings.razorpay_key_id if key_id is None else key_id
        self.key_secret = settings.razorpay_key_secret if key_secret is None else key_secret
        self.webhook_secret = settings.razorpay_webhook_secret if webhook_secret is None else webhook_secret
        self.base_url = (base_url or settings.razorpay_base_url).rstrip("/")
        self.currency = currency or settings.currency
        self.timeout = settings.razorpay_timeout_seconds
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self.transport,
            headers={"Content-Type": "application/json", "User-Agent": "PodAndBeyond/1.0"}
        )

    def create_order(self, amount_minor_units: int, receipt_id: str) -> PaymentOrder:
        """
        Create a payment order for the given amount.

        Raises:
            ExternalServiceError: If the gateway cannot be reached or rejects the order
        """
        if not self.is_configured:
            order_id = f"order_stub_{uuid.uuid4().hex[:16]}"
            logger.info(f"Stubbed payment order {order_id}: {amount_minor_units} for receipt {receipt_id}")
            return PaymentOrder(
                external_order_id=order_id,
                amount=amount_minor_units,
                currency=self.currency,
                receipt=receipt_id,
                status="created"
            )

        payload = {
            "amount": amount_minor_units,
            "currency": self.currency,
            "receipt": receipt_id,
            "payment_capture": 1,
        }

        start_time = time.time()
        try:
            with self._client() as client:
                response = client.post("/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Payment order request failed for receipt {receipt_id}: {e}")
            raise ExternalServiceError(SERVICE_NAME, f"Order request failed: {e}") from e

        duration_ms = int((time.time() - start_time) * 1000)

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(
                f"Payment order rejected for receipt {receipt_id} "
                f"({response.status_code}, {duration_ms}ms): {message}"
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Order creation failed ({response.status_code}): {message}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        data = response.json()
        logger.info(f"Payment order {data.get('id')} created for receipt {receipt_id} in {duration_ms}ms")
        return PaymentOrder(
            external_order_id=data["id"],
            amount=data.get("amount", amount_minor_units),
            currency=data.get("currency", self.currency),
            receipt=data.get("receipt", receipt_id),
            status=data.get("status", "created")
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text[:500]
        error = body.get("error") or {}
        return error.get("description") or error.get("code") or str(body)[:500]

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> bool:
        """
        Verify a webhook body against X-Razorpay-Signature.

        Without a webhook secret, verification only passes outside
        production so local webhooks can be replayed by hand.
        """
        if not self.webhook_secret:
            if settings.is_production:
                logger.error("Webhook secret not configured in production, rejecting webhook")
                return False
            logger.warning("Webhook secret not configured, skipping signature verification")
            return True
        return verify_hmac_sha256(self.webhook_secret, payload, signature)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Verify the signature the checkout widget returns to the browser."""
        if not self.key_secret:
            return not settings.is_production
        return verify_hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"), signature)

    def public_checkout_config(self, order: PaymentOrder) -> Dict:
        return {
            "order_id": order.external_order_id,
            "key_id": self.key_id or "rzp_test_stub_key_id",
            "amount": order.amount,
            "currency": order.currency,
        }


def get_payment_gateway() -> RazorpayClient:
    """Factory / FastAPI dependency for the payment gateway client"""
    return RazorpayClient()

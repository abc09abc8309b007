# =============================================================================
# lib/razorpay_client.py - Razorpay Payment Gateway Wrapper
# =============================================================================
# Thin wrapper over the Razorpay REST API:
# - create_order: register an amount (in paise) with the gateway
# - verify_payment_signature: check the signature returned to the browser
#   after checkout, HMAC-SHA256("<order_id>|<payment_id>", key_secret)
#
# Usage:
#   from lib.razorpay_client import RazorpayClient
#   gateway_order = RazorpayClient.create_order(amount_paise=49900, receipt="AKU-...")
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15


class RazorpayError(ApplicationError):
    """Error talking to the Razorpay API."""

    def __init__(self, message: str, code: str = "RAZORPAY_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the gateway secret."""
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


class RazorpayClient:
    """
    Class-level wrapper, mirroring SupabaseClient.

    The HTTP transport can be swapped with `set_transport` so tests can use
    httpx.MockTransport instead of the network.
    """

    _transport: httpx.BaseTransport | None = None

    @classmethod
    def set_transport(cls, transport: httpx.BaseTransport | None) -> None:
        cls._transport = transport

    @classmethod
    def _http(cls) -> httpx.Client:
        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            raise RazorpayError(
                message="Razorpay credentials are not configured",
                code="RAZORPAY_NOT_CONFIGURED",
                suggestion="Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET in your .env file",
            )
        return httpx.Client(
            base_url=settings.RAZORPAY_API_URL,
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            timeout=REQUEST_TIMEOUT,
            transport=cls._transport,
        )

    @classmethod
    def create_order(
        cls,
        amount_paise: int,
        receipt: str,
        notes: dict[str, Any] | None = None,
        currency: str | None = None,
    ) -> dict[str, Any]:
        """
        Create a gateway order.

        Args:
            amount_paise: Amount in the smallest currency unit
            receipt: Our order number, echoed back by the gateway
            notes: Free-form key/value pairs stored with the gateway order

        Returns:
            Gateway order dict (id, amount, currency, status, ...)

        Raises:
            RazorpayError: If the request fails or the gateway rejects it
        """
        payload = {
            "amount": amount_paise,
            "currency": currency or settings.RAZORPAY_CURRENCY,
            "receipt": receipt,
            "notes": notes or {},
        }

        try:
            with cls._http() as http:
                response = http.post("/orders", json=payload)
                response.raise_for_status()
                gateway_order = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Razorpay rejected order {receipt}: {e.response.text}")
            raise RazorpayError(
                message="Payment gateway rejected the order",
                code="RAZORPAY_ORDER_REJECTED",
                details={"status": e.response.status_code, "receipt": receipt},
            )
        except httpx.HTTPError as e:
            logger.error(f"Razorpay request failed for {receipt}: {e}")
            raise RazorpayError(
                message=f"Failed to reach payment gateway: {e}",
                code="RAZORPAY_UNAVAILABLE",
                suggestion="Retry the checkout in a moment",
            )

        logger.info(f"Created Razorpay order {gateway_order.get('id')} for {receipt} ({amount_paise} paise)")
        return gateway_order

    @staticmethod
    def verify_payment_signature(
        order_id: str,
        payment_id: str,
        signature: str,
        secret: str | None = None,
    ) -> bool:
        """
        Recompute the checkout signature and compare in constant time.

        Returns False for any mismatch, including an empty signature.
        """
        key = secret if secret is not None else settings.RAZORPAY_KEY_SECRET
        if not key or not signature:
            return False
        expected = compute_payment_signature(order_id, payment_id, key)
        return hmac.compare_digest(expected, signature)

# =============================================================================
# core/services/coupon_service.py - Coupon Business Logic
# =============================================================================
# Validates discount coupons against a cart and records their use.
#
# Rule order matters: the first failing rule is the one reported back to
# the shopper.
#   1. code exists
#   2. coupon is active
#   3. valid_from has passed
#   4. valid_until has not passed
#   5. uses_count below max_uses
#   6. cart meets min_purchase_amount
#   7. buyer has not used it before (when their email is known)
# =============================================================================

import logging
from datetime import datetime
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp, to_float, utc_now, utc_now_iso
from core.models.coupon import AppliedCoupon, DiscountType
from app.exceptions import BadRequestError, RecordNotFoundError

logger = logging.getLogger(__name__)

# Columns exposed by GET /coupons/validate
PUBLIC_COUPON_COLUMNS = "code, description, discount_type, discount_value, free_shipping, min_purchase_amount"


def format_amount(value: Any) -> str:
    """Render a rupee amount the way the storefront shows it (no trailing .0)."""
    amount = to_float(value)
    return str(int(amount)) if amount.is_integer() else str(amount)


def evaluate_coupon(
    coupon: dict[str, Any],
    cart_total: float,
    now: datetime | None = None,
) -> str | None:
    """
    Check a coupon row against the cart.

    Returns:
        The shopper-facing error for the first failing rule, or None if the
        coupon applies. The per-buyer usage rule needs a database lookup and
        is checked by CouponService.validate_coupon.
    """
    now = now or utc_now()

    if not coupon.get("is_active"):
        return "This coupon is no longer active"

    # A window bound that is set but unreadable closes the coupon
    if coupon.get("valid_from"):
        valid_from = parse_timestamp(coupon["valid_from"])
        if valid_from is None or valid_from > now:
            return "This coupon is not yet valid"

    if coupon.get("valid_until"):
        valid_until = parse_timestamp(coupon["valid_until"])
        if valid_until is None or valid_until < now:
            return "This coupon has expired"

    max_uses = coupon.get("max_uses")
    if max_uses and (coupon.get("uses_count") or 0) >= max_uses:
        return "This coupon has reached its maximum number of uses"

    min_purchase = coupon.get("min_purchase_amount")
    if min_purchase and cart_total < to_float(min_purchase):
        return f"Minimum purchase of ₹{format_amount(min_purchase)} required"

    return None


def calculate_discount(coupon: dict[str, Any], cart_total: float) -> float:
    """Percentage coupons take a share of the cart; anything else is a flat amount."""
    value = to_float(coupon.get("discount_value"))
    if coupon.get("discount_type") == DiscountType.PERCENTAGE.value:
        discount = cart_total * value / 100
    else:
        discount = value
    return round(discount, 2)


class CouponService:
    """
    Service for coupon validation and usage tracking.
    """

    @staticmethod
    def validate_coupon(
        code: str | None,
        cart_total: float,
        user_email: str | None = None,
    ) -> dict[str, Any]:
        """
        Validate a coupon code against a cart total.

        Args:
            code: Coupon code as typed by the shopper (case-insensitive)
            cart_total: Cart subtotal in rupees
            user_email: Buyer email, enables the one-use-per-buyer rule

        Returns:
            {"valid": False, "error": "..."} when a rule fails, otherwise
            {"valid": True, "coupon": {...discount summary...}}

        Raises:
            BadRequestError: If no code was given
        """
        if not code or not code.strip():
            raise BadRequestError("Coupon code is required", details={"valid": False})

        normalized = code.strip().upper()
        coupon = SupabaseClient.fetch_one("discount_coupons", "code", normalized)
        if not coupon:
            return {"valid": False, "error": "Invalid coupon code"}

        error = evaluate_coupon(coupon, cart_total)
        if error:
            logger.info(f"Coupon {normalized} rejected: {error}")
            return {"valid": False, "error": error}

        if user_email and CouponService.has_used(coupon["id"], user_email):
            return {"valid": False, "error": "You have already used this coupon"}

        applied = AppliedCoupon(
            id=coupon["id"],
            code=coupon["code"],
            description=coupon.get("description"),
            discount_type=coupon.get("discount_type") or DiscountType.FLAT.value,
            discount_value=to_float(coupon.get("discount_value")),
            discount_amount=calculate_discount(coupon, cart_total),
            free_shipping=bool(coupon.get("free_shipping")),
        )
        return {"valid": True, "coupon": applied.model_dump(by_alias=True)}

    @staticmethod
    def has_used(coupon_id: str | int, user_email: str) -> bool:
        client = SupabaseClient.get_client()
        response = (
            client.table("coupon_usage")
            .select("id")
            .eq("coupon_id", coupon_id)
            .eq("user_email", user_email)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    @staticmethod
    def get_public_coupon(code: str | None) -> dict[str, Any]:
        """
        Public details of an active coupon.

        Raises:
            BadRequestError: If no code was given
            RecordNotFoundError: If no active coupon has this code
        """
        if not code:
            raise BadRequestError("Coupon code is required")

        client = SupabaseClient.get_client()
        response = (
            client.table("discount_coupons")
            .select(PUBLIC_COUPON_COLUMNS)
            .eq("code", code.strip().upper())
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise RecordNotFoundError("Coupon", code)
        return response.data[0]

    @staticmethod
    def record_usage(order: dict[str, Any]) -> None:
        """
        Record that a paid order used its coupon and bump uses_count.

        Failures are logged; a paid order is never rolled back over
        coupon bookkeeping.
        """
        code = order.get("coupon_code")
        if not code:
            return

        try:
            coupon = SupabaseClient.fetch_one("discount_coupons", "code", code.upper())
            if not coupon:
                logger.warning(f"Order {order.get('order_number')} used unknown coupon {code}")
                return

            client = SupabaseClient.get_client()
            client.table("coupon_usage").insert({
                "coupon_id": coupon["id"],
                "order_id": order.get("id"),
                "user_email": order.get("customer_email"),
                "discount_amount": to_float(order.get("discount")),
                "used_at": utc_now_iso(),
            }).execute()

            client.table("discount_coupons").update({
                "uses_count": (coupon.get("uses_count") or 0) + 1,
            }).eq("id", coupon["id"]).execute()

            logger.info(f"Recorded coupon {code} for order {order.get('order_number')}")

        except Exception as e:
            logger.error(f"Failed to record coupon usage for {order.get('order_number')}: {e}")

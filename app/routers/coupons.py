# =============================================================================
# app/routers/coupons.py - Coupon Endpoints
# =============================================================================

from fastapi import APIRouter, Query

from core.models.coupon import CouponValidateRequest
from core.services.coupon_service import CouponService

router = APIRouter()


@router.post("/validate")
async def validate_coupon(request: CouponValidateRequest):
    """
    Check a code against a cart.

    Rule failures (expired, minimum purchase, ...) are 200 with
    {"valid": false, "error": "..."}.
    """
    return CouponService.validate_coupon(request.code, request.cart_total, request.user_email)


@router.get("/validate")
async def get_coupon(code: str | None = Query(default=None)):
    """Public details of an active coupon."""
    return {"coupon": CouponService.get_public_coupon(code)}

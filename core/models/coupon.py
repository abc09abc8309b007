# =============================================================================
# core/models/coupon.py - Coupon Schemas
# =============================================================================
# - DiscountType: percentage or flat rupee discount
# - CouponValidateRequest: Storefront asks whether a code applies to a cart
# - AppliedCoupon: The coupon summary returned when a code is valid
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class DiscountType(str, Enum):
    """
    How a coupon's discount_value is applied.

    - percentage: cartTotal * value / 100
    - flat: value in rupees
    """
    PERCENTAGE = "percentage"
    FLAT = "flat"


class CouponValidateRequest(BaseModel):
    """
    Schema for POST /coupons/validate.

    Example:
        {"code": "otaku10", "cartTotal": 1499, "userEmail": "asha@example.com"}
    """

    code: str | None = Field(default=None, description="Coupon code (case-insensitive)")
    cart_total: float = Field(default=0, ge=0, alias="cartTotal", description="Cart subtotal in rupees")
    user_email: str | None = Field(
        default=None,
        alias="userEmail",
        description="When given, reject codes this buyer already used"
    )

    model_config = {"populate_by_name": True}


class AppliedCoupon(BaseModel):
    """Coupon summary returned with {"valid": true}."""

    id: str | int
    code: str
    description: str | None = None
    discount_type: str = Field(..., serialization_alias="discountType")
    discount_value: float = Field(..., serialization_alias="discountValue")
    discount_amount: float = Field(..., serialization_alias="discountAmount")
    free_shipping: bool = Field(default=False, serialization_alias="freeShipping")

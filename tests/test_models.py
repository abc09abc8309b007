# =============================================================================
# tests/test_models.py - Pydantic Model Tests
# =============================================================================
# Unit tests for the request/response models to ensure:
# - The storefront's camelCase keys are accepted (and snake_case too)
# - Invalid data raises ValidationError
# - Default values work as expected
#
# Run with: pytest tests/test_models.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from core.models import (
    AppliedCoupon,
    CartItem,
    CouponValidateRequest,
    CreateOrderRequest,
    EmailType,
    OrderActionRequest,
    OrderStatus,
    PackRequest,
    PUBLIC_EMAIL_TYPES,
    RETURN_REASON_LABELS,
    ReturnReason,
    ShippingCheckRequest,
    ShiprocketWebhookPayload,
    SpotlightRequest,
    VerifyPaymentRequest,
)


# =============================================================================
# Order Model Tests
# =============================================================================

class TestCreateOrderRequest:
    """Tests for the checkout body."""

    def test_storefront_body(self):
        """camelCase keys from the storefront map onto snake_case fields."""
        # Arrange
        data = {
            "items": [{"id": 7, "name": "Zoro Figure", "price": 1999, "quantity": 2}],
            "customer": {"name": "Asha", "email": "asha@example.com", "phone": "9876543210"},
            "shippingAddress": {"address": "12 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"},
            "subtotal": 3998,
            "couponCode": "OTAKU10",
        }

        # Act
        request = CreateOrderRequest.model_validate(data)

        # Assert
        assert request.shipping_address.city == "Pune"
        assert request.shipping_address.country == "India"
        assert request.coupon_code == "OTAKU10"
        assert request.items[0].quantity == 2
        assert request.shipping is None
        assert request.discount == 0

    def test_snake_case_is_accepted(self):
        request = CreateOrderRequest(shipping_address={"city": "Pune"}, coupon_code="X")
        assert request.shipping_address.city == "Pune"
        assert request.coupon_code == "X"

    def test_empty_body_defaults(self):
        request = CreateOrderRequest()
        assert request.items == []
        assert request.customer is None

    def test_negative_subtotal_rejected(self):
        with pytest.raises(ValidationError):
            CreateOrderRequest(subtotal=-1)


class TestCartItem:

    def test_defaults(self):
        item = CartItem(id="p-1")
        assert item.price == 0
        assert item.quantity == 1

    @pytest.mark.parametrize("field,value", [("quantity", 0), ("price", -10)])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            CartItem(**{field: value})


class TestOrderRequests:

    def test_verify_payment_alias(self):
        request = VerifyPaymentRequest.model_validate({"razorpay_order_id": "order_1", "orderId": "o-1"})
        assert request.order_id == "o-1"
        assert request.razorpay_signature is None

    def test_action_new_status_alias(self):
        request = OrderActionRequest.model_validate({"action": "update_status", "newStatus": "delivered"})
        assert request.new_status == "delivered"

    def test_action_required(self):
        with pytest.raises(ValidationError):
            OrderActionRequest()

    def test_status_values(self):
        assert OrderStatus("rto_initiated") is OrderStatus.RTO_INITIATED
        with pytest.raises(ValueError):
            OrderStatus("teleported")

    def test_every_return_reason_has_label(self):
        assert set(RETURN_REASON_LABELS) == {r.value for r in ReturnReason}


# =============================================================================
# Coupon / Inventory / Catalog Model Tests
# =============================================================================

class TestCouponModels:

    def test_validate_request_aliases(self):
        request = CouponValidateRequest.model_validate({"code": "otaku10", "cartTotal": 999, "userEmail": "a@b.test"})
        assert request.cart_total == 999
        assert request.user_email == "a@b.test"

    def test_applied_coupon_serializes_camel_case(self):
        coupon = AppliedCoupon(
            id="c-1", code="OTAKU10", discount_type="percentage", discount_value=10, discount_amount=149.9,
        )

        data = coupon.model_dump(by_alias=True)

        assert data["discountType"] == "percentage"
        assert data["discountAmount"] == 149.9
        assert data["freeShipping"] is False


class TestPackRequest:

    def test_aliases(self):
        request = PackRequest.model_validate({"suborderId": "od1", "productId": 7, "quantity": 2})
        assert request.suborder_id == "od1"
        assert request.product_id == 7

    def test_missing_fields_are_none(self):
        """Missing fields are reported by the service, not by validation."""
        request = PackRequest.model_validate({})
        assert request.suborder_id is None
        assert request.quantity is None


class TestSpotlightRequest:

    def test_int_or_str_id(self):
        assert SpotlightRequest.model_validate({"productId": 7}).product_id == 7
        assert SpotlightRequest.model_validate({"productId": "7"}).product_id == "7"


# =============================================================================
# Shipping Model Tests
# =============================================================================

class TestShippingModels:

    def test_check_defaults(self):
        request = ShippingCheckRequest(pincode="411001")
        assert request.weight == 0.5
        assert request.cod is False

    def test_webhook_keeps_unknown_fields(self):
        payload = ShiprocketWebhookPayload.model_validate({
            "awb": 1234567890,
            "current_status_id": 7,
            "pod_status": "signed",
        })

        assert payload.awb == 1234567890
        assert payload.model_dump()["pod_status"] == "signed"

    def test_webhook_rejects_bad_scans(self):
        with pytest.raises(ValidationError):
            ShiprocketWebhookPayload.model_validate({"scans": "not-a-list"})


# =============================================================================
# Email Model Tests
# =============================================================================

class TestEmailTypes:

    def test_admin_emails_are_not_public(self):
        assert EmailType.ADMIN_NEW_ORDER.value not in PUBLIC_EMAIL_TYPES
        assert EmailType.ADMIN_DAILY_SUMMARY.value not in PUBLIC_EMAIL_TYPES
        assert EmailType.ORDER_SHIPPED.value in PUBLIC_EMAIL_TYPES

# =============================================================================
# tests/test_checkout.py - Checkout Flow Tests
# =============================================================================
# Tests for CheckoutService:
# - request validation messages
# - gateway order + pending orders row
# - signature verification, paid transition and its side effects
#
# The payment gateway is replaced with httpx.MockTransport.
#
# Run with: pytest tests/test_checkout.py -v
# =============================================================================

import json

import httpx
import pytest

from app.exceptions import (
    BadRequestError,
    ExternalServiceError,
    InvalidPaymentSignatureError,
    OrderNotFoundError,
    StoreException,
)
from core.models.order import CreateOrderRequest, VerifyPaymentRequest
from core.services.checkout_service import CheckoutService
from lib.razorpay_client import RazorpayClient, compute_payment_signature

GATEWAY_SECRET = "test-razorpay-secret"


@pytest.fixture
def gateway():
    """Razorpay stand-in that records order requests."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_RZP1", "amount": body["amount"], "currency": body["currency"]})

    RazorpayClient.set_transport(httpx.MockTransport(handler))
    yield requests
    RazorpayClient.set_transport(None)


def make_request(**overrides) -> CreateOrderRequest:
    body = {
        "items": [{"id": "prod-1", "name": "Gojo Satoru Figure", "price": 1499, "quantity": 1}],
        "customer": {"name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"},
        "shippingAddress": {"address": "12 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"},
        "subtotal": 1499,
        "shipping": 70,
        "discount": 0,
    }
    body.update(overrides)
    return CreateOrderRequest.model_validate(body)


# =============================================================================
# Validation
# =============================================================================

class TestValidateOrderRequest:

    def test_empty_cart(self):
        with pytest.raises(BadRequestError) as exc_info:
            CheckoutService.validate_order_request(make_request(items=[]))
        assert exc_info.value.message == "Cart is empty"

    def test_missing_customer_phone(self):
        request = make_request(customer={"name": "Asha", "email": "asha@example.com"})
        with pytest.raises(BadRequestError) as exc_info:
            CheckoutService.validate_order_request(request)
        assert exc_info.value.message == "Customer details required"

    def test_incomplete_address(self):
        request = make_request(shippingAddress={"address": "12 MG Road", "city": "Pune", "state": "MH"})
        with pytest.raises(BadRequestError) as exc_info:
            CheckoutService.validate_order_request(request)
        assert exc_info.value.message == "Complete shipping address required"

    def test_total(self):
        assert CheckoutService.calculate_total(1499, 70, 149.9) == pytest.approx(1419.1)


# =============================================================================
# Create Order
# =============================================================================

class TestCreateOrder:

    def test_creates_gateway_order_and_pending_row(self, fake_db, gateway):
        # Act
        result = CheckoutService.create_order(make_request(couponCode=" otaku10 ", discount=100))

        # Assert: response
        assert result["success"] is True
        assert result["razorpayOrderId"] == "order_RZP1"
        assert result["amount"] == 1469
        assert result["orderNumber"].startswith("AKU-")

        # Assert: gateway got the amount in paise and our order number as receipt
        sent = json.loads(gateway[0].content)
        assert sent["amount"] == 146900
        assert sent["currency"] == "INR"
        assert sent["receipt"] == result["orderNumber"]

        # Assert: pending orders row
        row = fake_db.rows("orders")[0]
        assert row["id"] == result["orderId"]
        assert row["status"] == "pending"
        assert row["payment_status"] == "pending"
        assert row["razorpay_order_id"] == "order_RZP1"
        assert row["coupon_code"] == "OTAKU10"
        assert row["total"] == row["total_amount"] == 1469
        assert row["shipping_country"] == "India"

    def test_default_shipping_charge(self, fake_db, gateway):
        result = CheckoutService.create_order(make_request(shipping=None))

        assert result["amount"] == 1499 + 70
        assert fake_db.rows("orders")[0]["shipping_cost"] == 70

    def test_gateway_rejection(self, fake_db):
        # Arrange
        RazorpayClient.set_transport(httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": {"description": "Bad amount"}})
        ))

        # Act
        try:
            with pytest.raises(ExternalServiceError) as exc_info:
                CheckoutService.create_order(make_request())
        finally:
            RazorpayClient.set_transport(None)

        # Assert: nothing stored
        assert exc_info.value.code == "RAZORPAY_ERROR"
        assert fake_db.rows("orders") == []

    def test_database_failure(self, fake_db, gateway):
        fake_db.fail("orders", "insert")

        with pytest.raises(StoreException) as exc_info:
            CheckoutService.create_order(make_request())

        assert exc_info.value.code == "ORDER_CREATE_FAILED"

    def test_validation_runs_before_gateway(self, fake_db, gateway):
        with pytest.raises(BadRequestError):
            CheckoutService.create_order(make_request(items=[]))
        assert gateway == []


# =============================================================================
# Verify Payment
# =============================================================================

class TestVerifyPayment:

    @pytest.fixture
    def pending_order(self, fake_db, sample_order, sample_coupon):
        sample_order.update({
            "status": "pending",
            "payment_status": "pending",
            "razorpay_order_id": "order_RZP1",
            "coupon_code": "OTAKU10",
        })
        fake_db.seed("orders", sample_order)
        fake_db.seed("discount_coupons", sample_coupon)
        return sample_order

    def verify_request(self, signature: str | None = None, order_id: str = "order-1") -> VerifyPaymentRequest:
        return VerifyPaymentRequest(
            razorpay_order_id="order_RZP1",
            razorpay_payment_id="pay_1",
            razorpay_signature=signature or compute_payment_signature("order_RZP1", "pay_1", GATEWAY_SECRET),
            orderId=order_id,
        )

    def test_marks_order_paid(self, fake_db, pending_order, sent_emails):
        # Act
        result = CheckoutService.verify_payment(self.verify_request())

        # Assert
        assert result == {"success": True, "orderNumber": "AKU-M5K2J9-AB12"}
        order = fake_db.rows("orders")[0]
        assert order["payment_status"] == "paid"
        assert order["status"] == "processing"
        assert order["razorpay_payment_id"] == "pay_1"
        assert order["paid_at"]

    def test_records_coupon_and_sends_emails(self, fake_db, pending_order, sent_emails):
        CheckoutService.verify_payment(self.verify_request())

        # Coupon bookkeeping
        assert fake_db.rows("coupon_usage")[0]["order_id"] == "order-1"
        assert fake_db.rows("discount_coupons")[0]["uses_count"] == 4

        # Customer confirmation + admin alert
        recipients = [c.args[0] for c in sent_emails.call_args_list]
        assert recipients == ["asha@example.com", "business.akusho@gmail.com"]
        logs = fake_db.rows("email_logs")
        assert [log["email_type"] for log in logs] == ["order_confirmation", "admin_new_order"]
        assert all(log["status"] == "sent" for log in logs)

    def test_email_failure_does_not_fail_payment(self, fake_db, pending_order, sent_emails):
        from lib.email_client import EmailError

        sent_emails.side_effect = EmailError("Resend is down")

        result = CheckoutService.verify_payment(self.verify_request())

        assert result["success"] is True
        assert fake_db.rows("orders")[0]["payment_status"] == "paid"
        assert {log["status"] for log in fake_db.rows("email_logs")} == {"failed"}

    def test_invalid_signature(self, fake_db, pending_order):
        with pytest.raises(InvalidPaymentSignatureError) as exc_info:
            CheckoutService.verify_payment(self.verify_request(signature="deadbeef"))

        assert exc_info.value.status_code == 400
        assert fake_db.rows("orders")[0]["payment_status"] == "pending"

    def test_unknown_order(self, fake_db):
        with pytest.raises(OrderNotFoundError):
            CheckoutService.verify_payment(self.verify_request(order_id="missing"))

    def test_missing_fields(self, fake_db):
        with pytest.raises(BadRequestError) as exc_info:
            CheckoutService.verify_payment(VerifyPaymentRequest(razorpay_order_id="order_RZP1"))
        assert exc_info.value.message == "Missing required fields"

    def test_signature_for_another_gateway_order(self, fake_db, pending_order, sent_emails):
        # Arrange: a valid signature, but for a different (cheaper) gateway order
        fake_db.seed("orders", {
            "id": "order-cheap",
            "order_number": "AKU-CHEAP",
            "payment_status": "pending",
            "razorpay_order_id": "order_CHEAP",
            "total": 10,
        })
        request = VerifyPaymentRequest(
            razorpay_order_id="order_CHEAP",
            razorpay_payment_id="pay_9",
            razorpay_signature=compute_payment_signature("order_CHEAP", "pay_9", GATEWAY_SECRET),
            orderId="order-1",
        )

        # Act
        with pytest.raises(InvalidPaymentSignatureError) as exc_info:
            CheckoutService.verify_payment(request)

        # Assert
        assert exc_info.value.status_code == 400
        assert {row["payment_status"] for row in fake_db.rows("orders")} == {"pending"}
        assert sent_emails.call_count == 0

    def test_replayed_verification_has_no_side_effects(self, fake_db, pending_order, sent_emails):
        # Arrange
        CheckoutService.verify_payment(self.verify_request())
        paid_at = fake_db.rows("orders")[0]["paid_at"]
        emails_sent = sent_emails.call_count

        # Act
        result = CheckoutService.verify_payment(self.verify_request())

        # Assert
        assert result == {"success": True, "orderNumber": "AKU-M5K2J9-AB12"}
        assert fake_db.rows("orders")[0]["paid_at"] == paid_at
        assert fake_db.rows("discount_coupons")[0]["uses_count"] == 4
        assert len(fake_db.rows("coupon_usage")) == 1
        assert sent_emails.call_count == emails_sent

    def test_template_error_does_not_fail_payment(self, fake_db, pending_order, sent_emails, monkeypatch):
        # Arrange: a template blowing up after the order is already paid
        def broken_render(*args, **kwargs):
            raise TypeError("must be real number, not str")

        monkeypatch.setattr("lib.email_client.render_email", broken_render)

        # Act
        result = CheckoutService.verify_payment(self.verify_request())

        # Assert
        assert result["success"] is True
        assert fake_db.rows("orders")[0]["payment_status"] == "paid"
        assert {log["status"] for log in fake_db.rows("email_logs")} == {"failed"}

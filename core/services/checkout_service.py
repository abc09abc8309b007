# =============================================================================
# core/services/checkout_service.py - Checkout Business Logic
# =============================================================================
# Order creation and payment verification.
#
# Flow:
#   1. create_order: validate cart -> gateway order -> orders row (pending)
#   2. Storefront opens the payment widget with the gateway order id
#   3. verify_payment: HMAC check -> orders row (paid, processing)
#      -> coupon bookkeeping -> confirmation + admin emails
#
# Steps after the primary write in (3) are side effects: their failures are
# logged and never fail the request.
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import (
    BadRequestError,
    ExternalServiceError,
    InvalidPaymentSignatureError,
    OrderNotFoundError,
    StoreException,
)
from lib.razorpay_client import RazorpayClient, RazorpayError
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import generate_order_number, utc_now_iso
from core.models.order import (
    CreateOrderRequest,
    OrderStatus,
    PaymentStatus,
    VerifyPaymentRequest,
)
from core.services.coupon_service import CouponService
from core.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Service for the two checkout steps.
    """

    @staticmethod
    def validate_order_request(request: CreateOrderRequest) -> None:
        """
        Raises:
            BadRequestError: Empty cart, missing customer details or incomplete address
        """
        if not request.items:
            raise BadRequestError("Cart is empty")

        customer = request.customer
        if not customer or not customer.name or not customer.email or not customer.phone:
            raise BadRequestError("Customer details required")

        address = request.shipping_address
        if not address or not all([address.address, address.city, address.state, address.pincode]):
            raise BadRequestError("Complete shipping address required")

    @staticmethod
    def calculate_total(subtotal: float, shipping: float, discount: float) -> float:
        """total = subtotal + shipping - discount"""
        return subtotal + shipping - discount

    @staticmethod
    def create_order(request: CreateOrderRequest) -> dict[str, Any]:
        """
        Create a gateway order and a pending orders row.

        Returns:
            {"success", "razorpayOrderId", "orderId", "orderNumber", "amount"}

        Raises:
            BadRequestError: Request fails validation
            ExternalServiceError: Payment gateway rejected the order
            StoreException: Database insert failed
        """
        CheckoutService.validate_order_request(request)

        customer = request.customer
        address = request.shipping_address
        shipping = request.shipping if request.shipping is not None else settings.DEFAULT_SHIPPING_COST
        total = CheckoutService.calculate_total(request.subtotal, shipping, request.discount)
        order_number = generate_order_number()

        try:
            gateway_order = RazorpayClient.create_order(
                amount_paise=round(total * 100),
                receipt=order_number,
                notes={
                    "customer_name": customer.name,
                    "customer_email": customer.email,
                    "customer_phone": customer.phone,
                },
            )
        except RazorpayError as e:
            logger.error(f"Gateway order failed for {order_number}: {e.message}")
            raise ExternalServiceError(e.message, service="razorpay")

        items = [
            {
                "id": item.id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
                "image": item.image or item.image_url,
                "image_url": item.image or item.image_url,
                "sku": item.sku,
            }
            for item in request.items
        ]

        row = {
            "user_id": request.user_id,
            "order_number": order_number,
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "razorpay_order_id": gateway_order.get("id"),
            "customer_name": customer.name,
            "customer_email": customer.email,
            "customer_phone": customer.phone,
            "shipping_address": address.address,
            "shipping_city": address.city,
            "shipping_state": address.state,
            "shipping_pincode": address.pincode,
            "shipping_country": address.country or "India",
            "items": items,
            "subtotal": request.subtotal,
            "shipping_cost": shipping,
            "shipping": shipping,
            "discount": request.discount,
            "coupon_code": request.coupon_code.strip().upper() if request.coupon_code else None,
            "total": total,
            "total_amount": total,
            "created_at": utc_now_iso(),
        }

        client = SupabaseClient.get_client()
        try:
            response = client.table("orders").insert(row).execute()
        except Exception as e:
            logger.error(f"Order creation failed for {order_number}: {e}")
            raise StoreException(
                "Failed to create order",
                code="ORDER_CREATE_FAILED",
                details={"details": str(e)},
            )

        order = response.data[0]
        logger.info(f"Created order {order_number} ({order['id']}) for {total}")

        return {
            "success": True,
            "razorpayOrderId": gateway_order.get("id"),
            "orderId": order["id"],
            "orderNumber": order_number,
            "amount": total,
        }

    @staticmethod
    def verify_payment(request: VerifyPaymentRequest) -> dict[str, Any]:
        """
        Verify the gateway signature and mark the order paid.

        Replaying a verification for an order that is already paid returns
        success without recording the coupon or sending emails again.

        Returns:
            {"success": True, "orderNumber": "..."}

        Raises:
            BadRequestError: Missing fields
            InvalidPaymentSignatureError: HMAC mismatch, or the gateway order belongs to another order
            OrderNotFoundError: orderId doesn't exist
            StoreException: Order update failed
        """
        if not all([
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
            request.order_id,
        ]):
            raise BadRequestError("Missing required fields")

        if not RazorpayClient.verify_payment_signature(
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
        ):
            logger.warning(f"Invalid payment signature for order {request.order_id}")
            raise InvalidPaymentSignatureError()

        try:
            existing = SupabaseClient.fetch_order(request.order_id)
        except SupabaseClientError as e:
            logger.error(f"Failed to load order {request.order_id}: {e.message}")
            raise StoreException("Failed to update order", code="ORDER_UPDATE_FAILED")

        if not existing:
            raise OrderNotFoundError(request.order_id)

        if existing.get("razorpay_order_id") != request.razorpay_order_id:
            logger.warning(
                f"Gateway order {request.razorpay_order_id} does not belong to order {request.order_id}"
            )
            raise InvalidPaymentSignatureError()

        if existing.get("payment_status") == PaymentStatus.PAID.value:
            logger.info(f"Order {existing.get('order_number')} already paid, skipping side effects")
            return {"success": True, "orderNumber": existing.get("order_number")}

        now = utc_now_iso()
        client = SupabaseClient.get_client()
        try:
            response = client.table("orders").update({
                "payment_status": PaymentStatus.PAID.value,
                "status": OrderStatus.PROCESSING.value,
                "razorpay_payment_id": request.razorpay_payment_id,
                "razorpay_signature": request.razorpay_signature,
                "paid_at": now,
                "updated_at": now,
            }).eq("id", request.order_id).eq("razorpay_order_id", request.razorpay_order_id).execute()
        except Exception as e:
            logger.error(f"Failed to mark order {request.order_id} paid: {e}")
            raise StoreException("Failed to update order", code="ORDER_UPDATE_FAILED")

        if not response.data:
            raise OrderNotFoundError(request.order_id)

        order = response.data[0]
        logger.info(f"Payment verified for order {order.get('order_number')}")

        CouponService.record_usage(order)
        NotificationService.send_order_placed(order)

        return {"success": True, "orderNumber": order.get("order_number")}

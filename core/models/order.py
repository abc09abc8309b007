# =============================================================================
# core/models/order.py - Order Schemas
# =============================================================================
# These models define the API contract for the order lifecycle:
# - OrderStatus / PaymentStatus: Enums for the two status columns
# - CreateOrderRequest: Checkout body (cart, customer, address, pricing)
# - VerifyPaymentRequest: Gateway callback fields after payment
# - OrderActionRequest: Admin accept / reject / dispatch / status update
# - OrderPatchRequest, BulkOrderRequest, ReturnRequest: Back-office edits
#
# Request bodies use the storefront's camelCase keys (aliases) but can
# also be populated by field name.
#
# Flow:
#   pending -> (payment) processing -> confirmed -> ready_to_dispatch
#           -> shipped -> out_for_delivery -> delivered
#   Any non-shipped state can be cancelled; couriers may move a parcel to
#   rto_initiated / rto_delivered / undelivered.
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """
    Possible states for an order.

    - pending: Created at checkout, payment not yet verified
    - pending_review: Paid (or COD) and waiting for an admin to accept
    - confirmed: Accepted by an admin
    - processing: Paid, or a courier order exists but has not been picked up
    - ready_to_dispatch: AWB assigned, label printed, pickup scheduled
    - shipped / in_transit / out_for_delivery: With the courier
    - delivered: Final happy state, starts the return window
    - cancelled: Rejected by an admin or returned to origin
    - rto_initiated / rto_delivered / undelivered: Courier exceptions
    - return_requested: Customer return recorded after delivery
    """
    PENDING = "pending"
    PENDING_REVIEW = "pending_review"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    READY_TO_DISPATCH = "ready_to_dispatch"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RTO_INITIATED = "rto_initiated"
    RTO_DELIVERED = "rto_delivered"
    UNDELIVERED = "undelivered"
    RETURN_REQUESTED = "return_requested"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COD = "cod"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderAction(str, Enum):
    """Admin actions accepted by POST /admin/orders/{id}/actions."""
    ACCEPT = "accept"
    REJECT = "reject"
    READY_TO_DISPATCH = "ready_to_dispatch"
    UPDATE_STATUS = "update_status"


class ReturnReason(str, Enum):
    """Reasons a delivered order may be returned."""
    WRONG_ITEM = "wrong_item"
    DAMAGED = "damaged"


RETURN_REASON_LABELS: dict[str, str] = {
    ReturnReason.WRONG_ITEM.value: "Wrong Item Received",
    ReturnReason.DAMAGED.value: "Damaged / Broken Item",
}


# =============================================================================
# Checkout
# =============================================================================

class CartItem(BaseModel):
    """
    One line of the storefront cart.

    Example:
        {"id": "p-1", "name": "Gojo Figure", "price": 1499, "quantity": 1}
    """

    id: str | int | None = Field(default=None, description="Product ID")
    name: str | None = Field(default=None, description="Product name at time of purchase")
    price: float = Field(default=0, ge=0, description="Unit price in rupees")
    quantity: int = Field(default=1, ge=1, description="Units ordered")
    image: str | None = Field(default=None, description="Product image URL")
    image_url: str | None = Field(default=None, description="Alternate image URL key")
    sku: str | None = Field(default=None, description="Stock keeping unit")


class CustomerDetails(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class ShippingAddress(BaseModel):
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    country: str | None = Field(default="India")


class CreateOrderRequest(BaseModel):
    """
    Schema for POST /checkout/create-order.

    Missing cart, customer or address fields are reported by the service
    with the storefront's own messages, so they are optional here.

    Example:
        {
            "items": [{"id": "p-1", "name": "Gojo Figure", "price": 1499, "quantity": 1}],
            "customer": {"name": "Asha", "email": "asha@example.com", "phone": "9876543210"},
            "shippingAddress": {"address": "12 MG Road", "city": "Pune",
                                "state": "MH", "pincode": "411001"},
            "subtotal": 1499,
            "shipping": 70,
            "discount": 0
        }
    """

    items: list[CartItem] = Field(default_factory=list, description="Cart lines")
    customer: CustomerDetails | None = Field(default=None, description="Buyer contact")
    shipping_address: ShippingAddress | None = Field(
        default=None,
        alias="shippingAddress",
        description="Delivery address"
    )
    subtotal: float = Field(default=0, ge=0, description="Sum of line totals")
    shipping: float | None = Field(default=None, ge=0, description="Shipping charge (default 70)")
    discount: float = Field(default=0, ge=0, description="Coupon discount in rupees")
    coupon_code: str | None = Field(default=None, alias="couponCode")
    user_id: str | None = Field(default=None, alias="userId", description="Logged-in buyer")

    model_config = {"populate_by_name": True}


class VerifyPaymentRequest(BaseModel):
    """
    Schema for POST /checkout/verify.

    Field names match what the payment gateway's checkout widget returns.
    """

    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None
    order_id: str | None = Field(default=None, alias="orderId")

    model_config = {"populate_by_name": True}


# =============================================================================
# Admin
# =============================================================================

class OrderActionRequest(BaseModel):
    """
    Schema for POST /admin/orders/{id}/actions.

    Example:
        {"action": "reject", "reason": "Out of stock", "notes": "Called buyer"}
        {"action": "update_status", "newStatus": "delivered"}
    """

    action: str = Field(..., description="accept | reject | ready_to_dispatch | update_status")
    reason: str | None = Field(default=None, description="Required for reject")
    notes: str | None = Field(default=None, description="Stored as admin_notes")
    new_status: str | None = Field(default=None, alias="newStatus")

    model_config = {"populate_by_name": True}


class OrderPatchRequest(BaseModel):
    """
    Schema for PATCH /admin/orders/{id}.

    Only these columns can be edited directly. Setting status to shipped or
    delivered stamps the matching timestamp when it is not supplied.
    """

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    tracking_id: str | None = None
    awb_code: str | None = None
    courier_name: str | None = None
    shiprocket_order_id: str | None = None
    shiprocket_shipment_id: str | None = None
    label_url: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None
    expected_delivery: str | None = None
    cancel_reason: str | None = None


class BulkOrderRequest(BaseModel):
    """
    Schema for POST /admin/orders.

    Example:
        {"action": "bulk_status_update", "orderIds": ["o-1", "o-2"],
         "data": {"status": "shipped"}}
    """

    action: str
    order_ids: list[str] = Field(default_factory=list, alias="orderIds")
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class ReturnRequest(BaseModel):
    """Schema for POST /admin/orders/{id}/return."""

    reason: str | None = Field(default=None, description="wrong_item | damaged")
    notes: str | None = None

# =============================================================================
# app/routers/checkout.py - Checkout Endpoints
# =============================================================================
# Guest checkout is allowed; a signed-in buyer is attached to the order.
# =============================================================================

from fastapi import APIRouter

from app.dependencies import OptionalUser
from core.models.order import CreateOrderRequest, VerifyPaymentRequest
from core.services.checkout_service import CheckoutService

router = APIRouter()


@router.post("/create-order")
async def create_order(request: CreateOrderRequest, user: OptionalUser):
    """
    Create a payment gateway order and a pending store order.

    The storefront opens the payment widget with razorpayOrderId.
    """
    if user and not request.user_id:
        request.user_id = str(user.id)
    return CheckoutService.create_order(request)


@router.post("/verify")
async def verify_payment(request: VerifyPaymentRequest):
    """Verify the widget's payment signature and mark the order paid."""
    return CheckoutService.verify_payment(request)

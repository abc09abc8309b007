# =============================================================================
# app/routers/email.py - Transactional Email Endpoint
# =============================================================================

from fastapi import APIRouter

from app.dependencies import AdminUser
from core.models.email import SendEmailRequest
from core.services.notification_service import NotificationService

router = APIRouter()


@router.post("/send")
async def send_email(request: SendEmailRequest, admin: AdminUser):
    """
    Send one of the customer emails (order_confirmation, order_shipped,
    order_delivered, order_cancelled, welcome) with a camelCase payload.

    Delivery failures are reported as 500.
    """
    return NotificationService.send_from_storefront(request.type, request.data)

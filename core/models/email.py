# =============================================================================
# core/models/email.py - Email Schemas
# =============================================================================
# - EmailType: Every transactional email the store can send
# - SendEmailRequest: POST /email/send (storefront-triggered emails)
# - WelcomeRequest: POST /auth/welcome after sign-up
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EmailType(str, Enum):
    """
    Transactional email kinds. Each has a template in lib/email_templates.py.
    """
    ORDER_CONFIRMATION = "order_confirmation"
    ADMIN_NEW_ORDER = "admin_new_order"
    ORDER_ACCEPTED = "order_accepted"
    ORDER_REJECTED = "order_rejected"
    READY_TO_DISPATCH = "ready_to_dispatch"
    ORDER_SHIPPED = "order_shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    WELCOME = "welcome"
    ADMIN_DAILY_SUMMARY = "admin_daily_summary"
    OFFLINE_INVOICE = "offline_invoice"


# Types a storefront client may trigger through POST /email/send
PUBLIC_EMAIL_TYPES: frozenset[str] = frozenset({
    EmailType.ORDER_CONFIRMATION.value,
    EmailType.ORDER_SHIPPED.value,
    EmailType.ORDER_DELIVERED.value,
    EmailType.ORDER_CANCELLED.value,
    EmailType.WELCOME.value,
})


class SendEmailRequest(BaseModel):
    """
    Schema for POST /email/send.

    data carries the recipient (customerEmail or email) plus the template
    variables, in the storefront's camelCase.

    Example:
        {"type": "order_shipped",
         "data": {"customerEmail": "asha@example.com", "customerName": "Asha",
                  "orderNumber": "AKU-LX2...", "trackingId": "1234567890"}}
    """

    type: str | None = None
    data: dict[str, Any] | None = Field(default=None)


class WelcomeRequest(BaseModel):
    name: str | None = None
    email: str | None = None

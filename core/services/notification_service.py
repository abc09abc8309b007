# =============================================================================
# core/services/notification_service.py - Email Dispatch
# =============================================================================
# Sends transactional emails and records the outcome in email_logs.
#
# Two dispatch modes (EMAIL_DISPATCH_MODE):
# - inline: render + send inside the request
# - queue: hand the email to the Celery "emails" queue
#
# Order lifecycle emails are side effects: dispatch() never raises, so a
# failed email can't undo a payment, an admin action or a webhook update.
# The explicit endpoints (/email/send, /auth/welcome, invoice emails) use
# send_or_raise() instead and report delivery failures to the caller.
# =============================================================================

import logging
import re
from datetime import date
from typing import Any

from app.config import settings
from app.exceptions import BadRequestError, ExternalServiceError
from lib.email_client import EmailClient, EmailError
from lib.email_templates import EMAIL_TEMPLATES
from lib.supabase_client import SupabaseClient
from lib.utils import ist_day_bounds, parse_items, to_float
from core.models.email import EmailType, PUBLIC_EMAIL_TYPES
from core.models.order import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

# Order status -> customer email sent when an order reaches it
STATUS_EMAILS: dict[str, str] = {
    OrderStatus.SHIPPED.value: EmailType.ORDER_SHIPPED.value,
    OrderStatus.OUT_FOR_DELIVERY.value: EmailType.OUT_FOR_DELIVERY.value,
    OrderStatus.DELIVERED.value: EmailType.ORDER_DELIVERED.value,
    OrderStatus.CANCELLED.value: EmailType.ORDER_CANCELLED.value,
}

# Storefront payload keys that don't map to a template variable by name
PAYLOAD_ALIASES: dict[str, str] = {
    "tracking_id": "awb_code",
    "name": "customer_name",
    "email": "customer_email",
    "cancel_reason": "reason",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def format_address(order: dict[str, Any]) -> str:
    """One-line delivery address from the order's shipping columns."""
    parts = [
        order.get("shipping_address"),
        order.get("shipping_city"),
        order.get("shipping_state"),
    ]
    address = ", ".join(p for p in parts if p)
    if order.get("shipping_pincode"):
        address = f"{address} - {order['shipping_pincode']}"
    return address


def order_context(order: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """Template variables for an order row."""
    context = {
        "order_id": order.get("id"),
        "order_number": order.get("order_number"),
        "customer_name": order.get("customer_name") or "there",
        "customer_email": order.get("customer_email"),
        "customer_phone": order.get("customer_phone"),
        "items": parse_items(order.get("items")),
        "subtotal": to_float(order.get("subtotal")),
        "shipping": to_float(order.get("shipping_cost", order.get("shipping"))),
        "discount": to_float(order.get("discount")),
        "total": to_float(order.get("total_amount") or order.get("total")),
        "shipping_address": format_address(order),
        "courier_name": order.get("courier_name"),
        "awb_code": order.get("awb_code"),
        "tracking_url": order.get("tracking_url"),
        "expected_delivery": order.get("expected_delivery"),
    }
    context.update({k: v for k, v in extra.items() if v is not None})
    return context


def context_from_payload(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a storefront (camelCase) email payload into template variables.

    shippingAddress may arrive as an object with line1/line2/city/state/pincode.
    """
    context: dict[str, Any] = {}
    for key, value in data.items():
        snake = _CAMEL_BOUNDARY.sub("_", key).lower()
        context[PAYLOAD_ALIASES.get(snake, snake)] = value

    address = context.get("shipping_address")
    if isinstance(address, dict):
        parts = [address.get(k) for k in ("line1", "line2", "city", "state")]
        line = ", ".join(p for p in parts if p)
        if address.get("pincode"):
            line = f"{line} - {address['pincode']}"
        context["shipping_address"] = line

    return context


class NotificationService:
    """
    Service for sending store emails.
    """

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    @staticmethod
    def send_now(
        email_type: str,
        to: str,
        data: dict[str, Any],
        order_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Render and send one email, then log it against the order.

        Returns:
            {"success": bool, "id": str | None, "subject": str | None, "error": str | None}
        """
        try:
            result = EmailClient.send_template(email_type, to, data)
            outcome = {"success": True, "id": result["id"], "subject": result["subject"], "error": None}
        except EmailError as e:
            logger.error(f"Email {email_type} to {to} failed: {e.message}")
            outcome = {"success": False, "id": None, "subject": None, "error": e.message}

        if order_id:
            NotificationService.log_email(
                order_id=order_id,
                email_type=email_type,
                recipient=to,
                subject=outcome["subject"],
                success=outcome["success"],
                error=outcome["error"],
            )
        return outcome

    @staticmethod
    def dispatch(
        email_type: str,
        to: str | None,
        data: dict[str, Any],
        order_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Send an email inline or enqueue it, depending on EMAIL_DISPATCH_MODE.

        Never raises; a missing recipient or a broken queue is logged and
        reported as {"success": False}.
        """
        if not to:
            logger.warning(f"Skipping {email_type} email for order {order_id}: no recipient")
            return {"success": False, "error": "No recipient"}

        if settings.email_queue_enabled:
            try:
                from workers.tasks import send_notification_email

                task = send_notification_email.delay(email_type, to, data, order_id)
                logger.info(f"Queued {email_type} email to {to} (task {task.id})")
                return {"success": True, "queued": True, "taskId": task.id}
            except Exception as e:
                logger.error(f"Could not queue {email_type} email, sending inline: {e}")

        return NotificationService.send_now(email_type, to, data, order_id)

    @staticmethod
    def send_or_raise(email_type: str, to: str, data: dict[str, Any], failure_message: str) -> dict[str, Any]:
        """
        Send inline and surface failure to the caller.

        Raises:
            ExternalServiceError: If the provider rejects the email
        """
        try:
            return EmailClient.send_template(email_type, to, data)
        except EmailError as e:
            raise ExternalServiceError(failure_message, service="email", details={"details": e.message})

    @staticmethod
    def log_email(
        order_id: str,
        email_type: str,
        recipient: str,
        subject: str | None,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Append an email_logs row. Logging failures are only warnings."""
        try:
            client = SupabaseClient.get_client()
            client.table("email_logs").insert({
                "order_id": order_id,
                "email_type": email_type,
                "recipient": recipient,
                "subject": subject,
                "status": "sent" if success else "failed",
                "error": error,
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to write email log for order {order_id}: {e}")

    # -------------------------------------------------------------------------
    # Order Emails
    # -------------------------------------------------------------------------

    @staticmethod
    def send_order_placed(order: dict[str, Any]) -> None:
        """Customer confirmation plus the admin new-order alert after payment."""
        context = order_context(order)
        NotificationService.dispatch(
            EmailType.ORDER_CONFIRMATION.value,
            order.get("customer_email"),
            context,
            order_id=order.get("id"),
        )
        NotificationService.dispatch(
            EmailType.ADMIN_NEW_ORDER.value,
            settings.ADMIN_NOTIFICATION_EMAIL,
            context,
            order_id=order.get("id"),
        )

    @staticmethod
    def notify_status_change(order: dict[str, Any], new_status: str, **extra: Any) -> bool:
        """
        Send the customer email for a status, if that status has one.

        Returns:
            True if an email was dispatched successfully
        """
        email_type = STATUS_EMAILS.get(new_status)
        if not email_type:
            return False

        result = NotificationService.dispatch(
            email_type,
            order.get("customer_email"),
            order_context(order, **extra),
            order_id=order.get("id"),
        )
        return bool(result.get("success"))

    # -------------------------------------------------------------------------
    # Explicit Sends
    # -------------------------------------------------------------------------

    @staticmethod
    def send_from_storefront(email_type: str | None, data: dict[str, Any] | None) -> dict[str, Any]:
        """
        Handle POST /email/send.

        Raises:
            BadRequestError: Missing type/data, unknown type, or no recipient
            ExternalServiceError: If delivery fails
        """
        if not email_type or not data:
            raise BadRequestError("Missing type or data")
        if email_type not in PUBLIC_EMAIL_TYPES or email_type not in EMAIL_TEMPLATES:
            raise BadRequestError(f"Unknown email type: {email_type}")

        context = context_from_payload(data)
        recipient = context.get("customer_email")
        if not recipient:
            raise BadRequestError("Recipient email is required")

        result = NotificationService.send_or_raise(email_type, recipient, context, "Failed to send email")
        return {"success": True, "id": result["id"]}

    @staticmethod
    def send_welcome(name: str | None, email: str | None) -> dict[str, Any]:
        if not name or not email:
            raise BadRequestError("Name and email are required")

        result = NotificationService.send_or_raise(
            EmailType.WELCOME.value,
            email,
            {"customer_name": name},
            "Failed to send welcome email",
        )
        return {"success": True, "id": result["id"]}

    # -------------------------------------------------------------------------
    # Daily Summary
    # -------------------------------------------------------------------------

    @staticmethod
    def build_daily_summary(day: date) -> dict[str, Any]:
        """
        Aggregate one day's orders for the admin summary email.

        The day is an IST calendar day, matching the 09:00 IST send time.

        Returns:
            Template variables: date, total_orders, paid_orders, revenue, pending_orders
        """
        client = SupabaseClient.get_client()
        start, end = ist_day_bounds(day)

        response = (
            client.table("orders")
            .select("status, payment_status, total, total_amount")
            .gte("created_at", start)
            .lt("created_at", end)
            .execute()
        )
        orders = response.data or []

        paid = [o for o in orders if o.get("payment_status") == PaymentStatus.PAID.value]
        pending_statuses = {OrderStatus.PENDING.value, OrderStatus.PENDING_REVIEW.value}

        return {
            "date": day.isoformat(),
            "total_orders": len(orders),
            "paid_orders": len(paid),
            "revenue": round(sum(to_float(o.get("total_amount") or o.get("total")) for o in paid), 2),
            "pending_orders": sum(1 for o in orders if o.get("status") in pending_statuses),
        }

    @staticmethod
    def send_daily_summary(day: date) -> dict[str, Any]:
        summary = NotificationService.build_daily_summary(day)
        result = NotificationService.send_now(
            EmailType.ADMIN_DAILY_SUMMARY.value,
            settings.ADMIN_NOTIFICATION_EMAIL,
            summary,
        )
        return {**summary, "sent": result["success"]}

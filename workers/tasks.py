# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background email work for the store.
#
# Tasks:
# - send_notification_email: Render + send one email, log it to email_logs
# - send_daily_summary: Yesterday's orders summarised for the admin
# =============================================================================

import logging
from datetime import date, timedelta
from typing import Any

from celery import shared_task

logger = logging.getLogger(__name__)


# =============================================================================
# Notification Emails
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_notification_email")
def send_notification_email(
    self,
    email_type: str,
    to: str,
    data: dict[str, Any],
    order_id: str | None = None,
) -> dict[str, Any]:
    """
    Send one templated email queued by NotificationService.dispatch.

    Provider failures are retried (max_retries from CeleryConfig); the
    email_logs row is written once, with the final outcome.

    Returns:
        {"success": bool, "id": str | None, "error": str | None}
    """
    from core.services.notification_service import NotificationService
    from lib.email_client import EmailClient, EmailError

    logger.info(f"Sending {email_type} email to {to} (order {order_id})")

    try:
        result = EmailClient.send_template(email_type, to, data)
    except EmailError as e:
        if self.request.retries < self.max_retries:
            logger.warning(f"Email {email_type} to {to} failed, retrying: {e.message}")
            raise self.retry(exc=e)

        logger.error(f"Email {email_type} to {to} failed after {self.request.retries} retries: {e.message}")
        if order_id:
            NotificationService.log_email(order_id, email_type, to, None, success=False, error=e.message)
        return {"success": False, "id": None, "error": e.message}

    if order_id:
        NotificationService.log_email(order_id, email_type, to, result["subject"], success=True)
    return {"success": True, "id": result["id"], "error": None}


# =============================================================================
# Daily Summary
# =============================================================================

@shared_task(name="workers.tasks.send_daily_summary")
def send_daily_summary(day: str | None = None) -> dict[str, Any]:
    """
    Email the admin a summary of one day's orders.

    Args:
        day: YYYY-MM-DD; defaults to yesterday (IST)
    """
    from core.services.notification_service import NotificationService
    from lib.utils import IST, utc_now

    target = date.fromisoformat(day) if day else utc_now().astimezone(IST).date() - timedelta(days=1)
    summary = NotificationService.send_daily_summary(target)
    logger.info(
        f"Daily summary for {summary['date']}: {summary['total_orders']} orders, "
        f"revenue {summary['revenue']}, sent={summary['sent']}"
    )
    return summary

# =============================================================================
# lib/email_client.py - Resend Email Wrapper
# =============================================================================
# Sends transactional email through the Resend SDK. Templates live in
# lib/email_templates.py; this module only renders and delivers.
#
# Usage:
#   from lib.email_client import EmailClient
#   EmailClient.send_template("order_shipped", "buyer@example.com", {...})
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import resend

from app.config import settings
from lib.email_templates import EMAIL_TEMPLATES, render_email
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)


class EmailError(ApplicationError):
    """Error rendering or delivering an email."""

    def __init__(self, message: str, code: str = "EMAIL_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class EmailClient:
    """Thin class-level wrapper around resend.Emails.send."""

    @staticmethod
    def send(
        to: str | list[str],
        subject: str,
        html: str,
        reply_to: str | None = None,
    ) -> str | None:
        """
        Send one email.

        Returns:
            The Resend message id

        Raises:
            EmailError: If Resend is not configured or rejects the message
        """
        if not settings.RESEND_API_KEY:
            raise EmailError(
                message="Resend API key is not configured",
                code="EMAIL_NOT_CONFIGURED",
                suggestion="Set RESEND_API_KEY in your .env file",
            )

        resend.api_key = settings.RESEND_API_KEY
        params: dict[str, Any] = {
            "from": settings.RESEND_FROM_EMAIL,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html,
        }
        if reply_to:
            params["reply_to"] = reply_to

        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.error(f"Failed to send email '{subject}' to {to}: {e}")
            raise EmailError(message=f"Failed to send email: {e}", details={"to": to, "subject": subject})

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Email sent: '{subject}' to {to} ({message_id})")
        return message_id

    @classmethod
    def send_template(
        cls,
        email_type: str,
        to: str | list[str],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Render an email type and send it.

        Returns:
            {"id": <resend id>, "subject": <rendered subject>}

        Raises:
            EmailError: Unknown type, template render failure or send failure
        """
        if email_type not in EMAIL_TEMPLATES:
            raise EmailError(message=f"Unknown email type: {email_type}", code="UNKNOWN_EMAIL_TYPE")

        try:
            subject, html = render_email(
                email_type,
                data,
                site_url=settings.SITE_URL,
                support_email=settings.ADMIN_NOTIFICATION_EMAIL,
            )
        except Exception as e:
            logger.error(f"Failed to render {email_type} email: {e}")
            raise EmailError(
                message=f"Failed to render {email_type} email: {e}",
                code="EMAIL_RENDER_FAILED",
                details={"to": to},
            )
        message_id = cls.send(to, subject, html)
        return {"id": message_id, "subject": subject}

# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# Background email delivery for the store API.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (notification emails, daily summary)
# - config.py: Worker-specific settings (queues, retries, beat schedule)
#
# Usage:
#   celery -A workers.celery_app worker -Q default,emails --loglevel=info
#
#   # Enqueue (done by NotificationService when EMAIL_DISPATCH_MODE=queue)
#   from workers.tasks import send_notification_email
#   send_notification_email.delay("order_shipped", "buyer@example.com", data, order_id)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]

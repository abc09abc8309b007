# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# The store's Celery instance. Broker and result backend are both Redis
# (REDIS_URL); queues, retries and the beat schedule live in
# workers/config.py.
#
# Usage:
#   # Email worker
#   celery -A workers.celery_app worker -Q default,emails --loglevel=info
#
#   # Scheduler for the admin daily summary
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

import logging

from celery import Celery
from celery.signals import task_failure, task_retry
from dotenv import load_dotenv

# Worker processes don't go through app.main, so .env is loaded here
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    """Broker URL without credentials, for logs."""
    return url.split("@")[-1] if "@" in url else url


def create_celery_app() -> Celery:
    from workers.config import CeleryConfig

    app = Celery("akusho_worker", include=["workers.tasks"])
    app.config_from_object(CeleryConfig)

    logger.info(f"Celery app using broker {_redacted(CeleryConfig.broker_url)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Signals
# =============================================================================

@task_retry.connect
def log_email_retry(sender=None, request=None, reason=None, **extra):
    logger.warning(f"Retrying {sender.name} [{request.id}] (attempt {request.retries + 1}): {reason}")


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **extra):
    logger.error(f"Task failed: {sender.name} [{task_id}] - Error: {exception}")


if __name__ == "__main__":
    celery_app.start()

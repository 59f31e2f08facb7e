"""
Email retry worker.
Retries failed emails according to the retry policy.
Runs every 5 minutes.
"""

import asyncio
import logging

from detailing.database import AsyncSessionLocal
from detailing.logging_config import setup_logging
from detailing.models.notification import EmailStatus
from detailing.services.email_service import EmailService

logger = logging.getLogger(__name__)


async def retry_failed_emails():
    """
    Main email retry job.
    Finds failed emails that are due and sends them again.
    """
    async with AsyncSessionLocal() as db:
        email_service = EmailService(db)
        failed = await email_service.get_failed_for_retry()

        total_retries = 0
        total_successes = 0

        for notification in failed:
            result = await email_service.retry(notification.id)
            total_retries += 1

            if result and result.status == EmailStatus.SENT:
                total_successes += 1
                logger.info("Retry successful: %s", notification.id)
            else:
                logger.warning("Retry failed: %s", notification.id)

        return {
            "retries_attempted": total_retries,
            "successes": total_successes,
        }


# Entry point for running as standalone script
if __name__ == "__main__":
    setup_logging()
    result = asyncio.run(retry_failed_emails())
    logger.info("Retry results: %s", result)

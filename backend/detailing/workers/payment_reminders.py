"""
Payment reminder worker.
Emails customers whose bookings are still unpaid at 24, 48 and 72 hours.
Runs every hour.
"""

import asyncio
import logging

from detailing.database import AsyncSessionLocal
from detailing.logging_config import setup_logging
from detailing.services.payment_reminder_service import PaymentReminderService

logger = logging.getLogger(__name__)


async def send_payment_reminders():
    """Main reminder job."""
    async with AsyncSessionLocal() as db:
        result = await PaymentReminderService(db).process_payment_reminders()

        for error in result.errors:
            logger.warning(error)

        return result


# Entry point for running as standalone script
if __name__ == "__main__":
    setup_logging()
    result = asyncio.run(send_payment_reminders())
    logger.info("Payment reminders: %d checked, %d sent", result.processed, result.sent)

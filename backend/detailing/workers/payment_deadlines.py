"""
Payment deadline worker.
Marks unpaid bookings past their payment deadline as payment failed.
Runs every hour.
"""

import asyncio
import logging

from detailing.database import AsyncSessionLocal
from detailing.logging_config import setup_logging
from detailing.services.payment_reminder_service import PaymentReminderService

logger = logging.getLogger(__name__)


async def check_payment_deadlines():
    """Main deadline job."""
    async with AsyncSessionLocal() as db:
        result = await PaymentReminderService(db).check_payment_deadlines()

        for failure in result.failed:
            logger.error("Booking %s: %s", failure.booking_reference, failure.error)

        return result


# Entry point for running as standalone script
if __name__ == "__main__":
    setup_logging()
    result = asyncio.run(check_payment_deadlines())
    logger.info("Deadline check: %s", result.message)

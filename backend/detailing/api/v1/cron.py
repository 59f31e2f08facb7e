"""Scheduled job endpoints, called by an external cron with the shared secret."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.api.deps import verify_cron_secret
from detailing.schemas.payment import DeadlineRunResult, ReminderRunResult
from detailing.services.payment_reminder_service import PaymentReminderService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.api_route("/check-payment-deadlines", methods=["GET", "POST"], response_model=DeadlineRunResult)
async def check_payment_deadlines(db: AsyncSession = Depends(get_db)):
    """Mark unpaid bookings past their deadline as payment failed."""
    return await PaymentReminderService(db).check_payment_deadlines()


@router.api_route("/payment-reminders", methods=["GET", "POST"], response_model=ReminderRunResult)
async def send_payment_reminders(db: AsyncSession = Depends(get_db)):
    return await PaymentReminderService(db).process_payment_reminders()

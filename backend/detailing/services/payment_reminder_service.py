"""Payment reminder service - deadline sweep and overdue payment reminders."""

import logging
from datetime import datetime, timedelta
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.models.booking import Booking, BookingStatus, BookingStatusHistory, PaymentStatus
from detailing.models.notification import EmailStatus
from detailing.schemas.payment import (
    OverduePayment,
    ReminderRunResult,
    DeadlineFailure,
    DeadlineRunResult,
)
from detailing.services.booking_service import append_admin_note
from detailing.services.email_service import EmailService
from detailing.services.payment_service import generate_payment_link
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

REMINDER_STATUSES = [BookingStatus.PROCESSING, BookingStatus.PAYMENT_FAILED]

REMINDER_SUBJECTS = {
    "gentle": "Payment Reminder - Booking {ref} | Love 4 Detailing",
    "urgent": "Urgent: Payment Required - Booking {ref} | Love 4 Detailing",
    "final": "Final Notice: Payment Overdue - Booking {ref} | Love 4 Detailing",
}


def should_send_reminder(hours_overdue: int, reminder_count: int) -> bool:
    """One reminder per threshold crossed (24h, 48h, 72h), never more than the maximum."""
    if reminder_count >= settings.MAX_PAYMENT_REMINDERS:
        return False
    for i, threshold in enumerate(settings.PAYMENT_REMINDER_THRESHOLDS_HOURS):
        if hours_overdue >= threshold and reminder_count <= i:
            return True
    return False


def thresholds_crossed(hours_overdue: int) -> int:
    return sum(1 for t in settings.PAYMENT_REMINDER_THRESHOLDS_HOURS if hours_overdue >= t)


def get_reminder_type(hours_overdue: int) -> str:
    if hours_overdue >= 72:
        return "final"
    if hours_overdue >= 48:
        return "urgent"
    return "gentle"


def get_reminder_subject(reminder_type: str, booking_reference: str) -> str:
    template = REMINDER_SUBJECTS.get(reminder_type, REMINDER_SUBJECTS["gentle"])
    return template.format(ref=booking_reference)


class PaymentReminderService:
    """Service for payment deadlines and reminders."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService(db)

    async def check_payment_deadlines(self, now: Optional[datetime] = None) -> DeadlineRunResult:
        """
        Mark unpaid pending bookings past their deadline as payment failed.
        Safe to run repeatedly: processed bookings no longer match the query.
        """
        now = now or datetime.utcnow()
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.status == BookingStatus.PENDING,
                Booking.payment_status == PaymentStatus.PENDING,
                Booking.payment_deadline < now,
            )
            .order_by(Booking.payment_deadline)
        )
        expired = list(result.scalars())

        if not expired:
            return DeadlineRunResult(
                success=True, processed=[], failed=[], message="No expired payment deadlines found"
            )

        logger.info("Found %d bookings past their payment deadline", len(expired))
        processed: List[str] = []
        failed: List[DeadlineFailure] = []

        for booking in expired:
            reference = booking.booking_reference
            try:
                booking.status = BookingStatus.PAYMENT_FAILED
                booking.payment_status = PaymentStatus.FAILED
                append_admin_note(booking, "Auto-marked as payment failed - deadline exceeded")
                self.db.add(BookingStatusHistory(
                    booking_id=booking.id,
                    from_status=BookingStatus.PENDING.value,
                    to_status=BookingStatus.PAYMENT_FAILED.value,
                    changed_by=None,
                    reason=f"Payment deadline exceeded ({settings.PAYMENT_DEADLINE_HOURS} hours)",
                ))
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.exception("Failed to mark %s as payment failed", reference)
                failed.append(DeadlineFailure(booking_reference=reference, error=str(e)))
                continue

            processed.append(reference)

            customer = booking.customer
            if customer and customer.email:
                try:
                    await self.email_service.send_payment_failed(booking, customer)
                    await self.email_service.send_admin_payment_failed(booking, customer)
                except Exception:
                    logger.exception("Failed to send payment failed emails for %s", reference)

        message = f"Processed {len(processed)} expired bookings"
        if failed:
            message += f", {len(failed)} failed"
        logger.info(message)

        return DeadlineRunResult(
            success=not failed, processed=processed, failed=failed, message=message
        )

    async def _overdue_bookings(self, now: datetime) -> List[Booking]:
        cutoff = now - timedelta(hours=settings.PAYMENT_DEADLINE_HOURS)
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.status.in_(REMINDER_STATUSES),
                Booking.payment_status != PaymentStatus.PAID,
                Booking.created_at < cutoff,
            )
            .order_by(Booking.created_at)
        )
        return [b for b in result.scalars() if b.customer and b.customer.email]

    def _to_overdue(self, booking: Booking, now: datetime) -> OverduePayment:
        hours = int((now - booking.created_at).total_seconds() // 3600)
        return OverduePayment(
            id=booking.id,
            booking_reference=booking.booking_reference,
            customer_name=booking.customer.full_name or "Customer",
            customer_email=booking.customer.email,
            total_price=float(booking.total_price),
            payment_link=generate_payment_link(float(booking.total_price), booking.booking_reference),
            created_at=booking.created_at,
            hours_overdue=hours,
            reminder_count=booking.payment_reminder_count or 0,
        )

    async def get_overdue_payments(self, now: Optional[datetime] = None) -> List[OverduePayment]:
        """Unpaid bookings older than the payment window whose customer has an email."""
        now = now or datetime.utcnow()
        return [self._to_overdue(b, now) for b in await self._overdue_bookings(now)]

    async def process_payment_reminders(self, now: Optional[datetime] = None) -> ReminderRunResult:
        """Send every reminder that is due."""
        now = now or datetime.utcnow()
        bookings = await self._overdue_bookings(now)
        sent = 0
        errors: List[str] = []

        for booking in bookings:
            payment = self._to_overdue(booking, now)
            if not should_send_reminder(payment.hours_overdue, payment.reminder_count):
                continue

            reminder_type = get_reminder_type(payment.hours_overdue)
            subject = get_reminder_subject(reminder_type, payment.booking_reference)

            notification = await self.email_service.send_payment_reminder(
                booking, booking.customer, reminder_type, subject, payment.payment_link
            )
            if notification.status != EmailStatus.SENT:
                errors.append(
                    f"Failed to send reminder for {payment.booking_reference}: {notification.error_message}"
                )
                continue

            # A late first reminder also covers the earlier thresholds it skipped
            booking.payment_reminder_count = max(
                payment.reminder_count + 1, thresholds_crossed(payment.hours_overdue)
            )
            booking.last_payment_reminder_at = now
            await self.db.commit()
            sent += 1
            logger.info(
                "Sent %s payment reminder %d for %s",
                reminder_type, booking.payment_reminder_count, payment.booking_reference,
            )

        return ReminderRunResult(success=not errors, processed=len(bookings), sent=sent, errors=errors)

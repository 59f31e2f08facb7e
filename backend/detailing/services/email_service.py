"""Email service - sends transactional email through Resend with delivery tracking."""

import logging
from datetime import datetime, timedelta
from typing import Optional, List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.models.notification import EmailNotification, EmailStatus
from detailing.models.booking import Booking, BookingRescheduleRequest
from detailing.models.user import UserProfile
from detailing.integrations.resend_client import ResendClient
from detailing.services import email_templates as templates
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

RETRY_DELAYS_MINUTES = [5, 15, 60]


class EmailService:
    """Service for sending and tracking emails."""

    def __init__(self, db: AsyncSession, client: Optional[ResendClient] = None):
        self.db = db
        self.client = client or ResendClient()

    async def send(
        self,
        template: str,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
        booking_id: Optional[UUID] = None,
    ) -> EmailNotification:
        """
        Send a single email and track it.
        Provider errors are recorded on the row, never raised.
        """
        notification = EmailNotification(
            booking_id=booking_id,
            template=template,
            recipient=to,
            reply_to=reply_to or settings.EMAIL_REPLY_TO,
            subject=subject,
            html=html,
            text=text,
            status=EmailStatus.PENDING,
            retry_count=0,
            max_retries=settings.EMAIL_MAX_RETRIES,
        )
        self.db.add(notification)
        await self.db.flush()

        await self._deliver(notification)

        await self.db.commit()
        return notification

    async def _deliver(self, notification: EmailNotification) -> None:
        try:
            result = await self.client.send_email(
                to=notification.recipient,
                subject=notification.subject,
                html=notification.html,
                text=notification.text,
                reply_to=notification.reply_to,
            )
            notification.external_id = result.get("id")
            notification.status = EmailStatus.SENT
            notification.sent_at = datetime.utcnow()
            notification.error_message = None
            notification.next_retry_at = None
        except Exception as e:
            logger.warning(
                "Email %s to %s failed: %s", notification.template, notification.recipient, e
            )
            notification.status = EmailStatus.FAILED
            notification.error_message = str(e)
            notification.failed_at = datetime.utcnow()
            delay = RETRY_DELAYS_MINUTES[min(notification.retry_count or 0, len(RETRY_DELAYS_MINUTES) - 1)]
            notification.next_retry_at = datetime.utcnow() + timedelta(minutes=delay)

    async def get_failed_for_retry(self) -> List[EmailNotification]:
        """Get failed emails that are due for another attempt."""
        result = await self.db.execute(
            select(EmailNotification).where(
                EmailNotification.status == EmailStatus.FAILED,
                EmailNotification.retry_count < EmailNotification.max_retries,
                EmailNotification.next_retry_at <= datetime.utcnow(),
            ).order_by(EmailNotification.next_retry_at)
        )
        return list(result.scalars())

    async def retry(self, notification_id: UUID) -> Optional[EmailNotification]:
        """Retry a failed email."""
        notification = await self.db.get(EmailNotification, notification_id)
        if not notification:
            return None

        notification.retry_count = (notification.retry_count or 0) + 1
        await self._deliver(notification)

        if notification.status == EmailStatus.FAILED and notification.retry_count >= notification.max_retries:
            notification.next_retry_at = None
            logger.error("Email %s gave up after %s retries", notification.id, notification.retry_count)

        await self.db.commit()
        return notification

    # Pre-built emails

    async def send_booking_confirmation(
        self,
        booking: Booking,
        customer: UserProfile,
        payment_link: Optional[str] = None,
    ) -> EmailNotification:
        subject, html, text = templates.booking_confirmation(
            booking, customer.full_name, payment_link, booking.payment_deadline
        )
        return await self.send(
            "booking_confirmation", customer.email, subject, html, text, booking_id=booking.id
        )

    async def send_admin_booking_notification(
        self, booking: Booking, customer: UserProfile
    ) -> EmailNotification:
        subject, html, text = templates.admin_new_booking(
            booking, customer.full_name, customer.email, customer.phone
        )
        return await self.send(
            "admin_new_booking", settings.ADMIN_EMAIL, subject, html, text,
            reply_to=customer.email, booking_id=booking.id,
        )

    async def send_booking_status_update(
        self,
        booking: Booking,
        customer: UserProfile,
        previous_status: Optional[str],
        reason: Optional[str] = None,
    ) -> EmailNotification:
        subject, html, text = templates.booking_status_update(
            booking, customer.full_name, previous_status, reason
        )
        return await self.send(
            "booking_status_update", customer.email, subject, html, text, booking_id=booking.id
        )

    async def send_payment_confirmation(
        self, booking: Booking, customer: UserProfile
    ) -> EmailNotification:
        subject, html, text = templates.payment_confirmation(booking, customer.full_name)
        return await self.send(
            "payment_confirmation", customer.email, subject, html, text, booking_id=booking.id
        )

    async def send_admin_payment_received(
        self, booking: Booking, customer: UserProfile
    ) -> EmailNotification:
        subject, html, text = templates.admin_payment_received(
            booking, customer.full_name, booking.payment_reference
        )
        return await self.send(
            "admin_payment_received", settings.ADMIN_EMAIL, subject, html, text,
            reply_to=customer.email, booking_id=booking.id,
        )

    async def send_payment_failed(
        self, booking: Booking, customer: UserProfile
    ) -> EmailNotification:
        subject, html, text = templates.payment_failed(booking, customer.full_name)
        return await self.send(
            "payment_failed", customer.email, subject, html, text, booking_id=booking.id
        )

    async def send_admin_payment_failed(
        self, booking: Booking, customer: UserProfile
    ) -> EmailNotification:
        subject, html, text = templates.admin_payment_failed(booking, customer.full_name, customer.email)
        return await self.send(
            "admin_payment_failed", settings.ADMIN_EMAIL, subject, html, text,
            reply_to=customer.email, booking_id=booking.id,
        )

    async def send_payment_reminder(
        self,
        booking: Booking,
        customer: UserProfile,
        reminder_type: str,
        subject: str,
        payment_link: str,
    ) -> EmailNotification:
        subject, html, text = templates.payment_reminder(
            booking.booking_reference, customer.full_name, float(booking.total_price),
            payment_link, reminder_type, subject,
        )
        return await self.send(
            f"payment_reminder_{reminder_type}", customer.email, subject, html, text,
            booking_id=booking.id,
        )

    async def send_admin_reschedule_request(
        self, booking: Booking, customer: UserProfile, request: BookingRescheduleRequest
    ) -> EmailNotification:
        subject, html, text = templates.admin_reschedule_request(booking, customer.full_name, request)
        return await self.send(
            "admin_reschedule_request", settings.ADMIN_EMAIL, subject, html, text,
            reply_to=customer.email, booking_id=booking.id,
        )

    async def send_reschedule_response(
        self, booking: Booking, customer: UserProfile, request: BookingRescheduleRequest
    ) -> EmailNotification:
        subject, html, text = templates.reschedule_response(booking, customer.full_name, request)
        return await self.send(
            "reschedule_response", customer.email, subject, html, text, booking_id=booking.id
        )

    async def send_password_reset(self, user: UserProfile, reset_link: str) -> EmailNotification:
        subject, html, text = templates.password_reset(user.full_name, reset_link)
        return await self.send("password_reset", user.email, subject, html, text)

    async def send_custom(
        self,
        customer: UserProfile,
        subject: str,
        message: str,
        booking_id: Optional[UUID] = None,
    ) -> EmailNotification:
        subject, html, text = templates.custom(customer.full_name, subject, message)
        return await self.send("custom", customer.email, subject, html, text, booking_id=booking_id)

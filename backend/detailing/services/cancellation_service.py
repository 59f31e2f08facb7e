"""Cancellation service - customer cancellations under the 24-hour notice policy."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.exceptions import NotFoundError, PolicyError
from detailing.models.booking import Booking, BookingStatus, BookingStatusHistory
from detailing.models.notification import EmailStatus
from detailing.models.user import UserProfile
from detailing.schemas.booking import CancellationPolicyResponse, CancellationResponse, BookingResponse
from detailing.services.booking_service import BookingService, append_admin_note
from detailing.services.email_service import EmailService
from detailing.utils.time_validation import hours_until
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED}

# Under this many hours the warning says "less than 2 hours"
SHORT_NOTICE_HOURS = 2


def evaluate_policy(booking: Booking, now: Optional[datetime] = None) -> CancellationPolicyResponse:
    """Work out whether a booking can be cancelled and whether a refund applies."""
    if booking.status not in CANCELLABLE_STATUSES:
        return CancellationPolicyResponse(
            can_cancel=False,
            hours_until_appointment=0,
            refund_eligible=False,
            requires_acknowledgement=False,
            warning_message=f"Cannot cancel a booking with status: {booking.status.value}",
        )

    hours = hours_until(booking.scheduled_date, booking.scheduled_start_time, now)
    within_notice = hours <= settings.CANCELLATION_NOTICE_HOURS

    warning = None
    if hours <= 0:
        warning = "This appointment has already started or passed and can no longer be cancelled."
    elif hours <= SHORT_NOTICE_HOURS:
        warning = (
            f"This appointment is in less than {SHORT_NOTICE_HOURS} hours ({hours:.1f} hours). "
            f"Cancellation within {settings.CANCELLATION_NOTICE_HOURS} hours means no refund will be provided."
        )
    elif within_notice:
        warning = (
            f"This appointment is in {int(hours)} hours. Cancellation within "
            f"{settings.CANCELLATION_NOTICE_HOURS} hours means no refund will be provided."
        )

    return CancellationPolicyResponse(
        can_cancel=hours > 0,
        hours_until_appointment=round(max(0.0, hours), 2),
        refund_eligible=not within_notice,
        requires_acknowledgement=within_notice and hours > 0,
        warning_message=warning,
    )


class CancellationService:
    """Service for booking cancellations."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService(db)
        self.bookings = BookingService(db, self.email_service)

    async def _get_owned(self, booking_id: UUID, customer_id: UUID) -> Booking:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking or booking.customer_id != customer_id:
            raise NotFoundError("Booking not found")
        return booking

    async def get_policy(self, booking_id: UUID, customer_id: UUID) -> CancellationPolicyResponse:
        booking = await self._get_owned(booking_id, customer_id)
        return evaluate_policy(booking)

    async def cancel_booking(
        self,
        booking_id: UUID,
        customer_id: UUID,
        reason: str,
        acknowledge_no_refund: bool = False,
    ) -> CancellationResponse:
        """Customer cancellation. Inside the notice window the customer must accept losing the refund."""
        booking = await self._get_owned(booking_id, customer_id)
        policy = evaluate_policy(booking)

        if not policy.can_cancel:
            raise PolicyError(policy.warning_message or "This booking cannot be cancelled", code="CANNOT_CANCEL")
        if policy.requires_acknowledgement and not acknowledge_no_refund:
            raise PolicyError(
                f"Cancellation within {settings.CANCELLATION_NOTICE_HOURS} hours requires "
                f"acknowledgment of the no refund policy",
                code="ACKNOWLEDGEMENT_REQUIRED",
            )

        refund_amount = float(booking.total_price) if policy.refund_eligible else 0.0
        return await self._cancel(
            booking,
            cancelled_by=customer_id,
            reason=reason,
            history_reason=f"Cancelled by customer: {reason}",
            policy=policy,
            refund_amount=refund_amount,
        )

    async def admin_cancel(
        self,
        booking_id: UUID,
        admin: UserProfile,
        reason: str,
        refund_amount: Optional[float] = None,
    ) -> CancellationResponse:
        """Admin cancellation - the notice policy does not apply."""
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            raise PolicyError(f"Cannot cancel a {booking.status.value} booking", code="CANNOT_CANCEL")

        policy = evaluate_policy(booking)
        if refund_amount is None:
            refund_amount = float(booking.total_price) if policy.refund_eligible else 0.0
        append_admin_note(booking, f"Cancelled by {admin.email}, refund £{refund_amount:.2f}")

        return await self._cancel(
            booking,
            cancelled_by=admin.id,
            reason=reason,
            history_reason=f"Cancelled by admin: {reason}",
            policy=policy,
            refund_amount=refund_amount,
        )

    async def _cancel(
        self,
        booking: Booking,
        cancelled_by: UUID,
        reason: str,
        history_reason: str,
        policy: CancellationPolicyResponse,
        refund_amount: float,
    ) -> CancellationResponse:
        previous_status = booking.status
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = datetime.utcnow()
        booking.cancelled_by = cancelled_by
        booking.cancellation_reason = reason

        time_slot_freed = False
        try:
            time_slot_freed = await self.bookings.release_booking_slot(booking)
        except Exception:
            logger.exception("Failed to free time slot for %s", booking.booking_reference)

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=previous_status.value,
            to_status=BookingStatus.CANCELLED.value,
            changed_by=cancelled_by,
            reason=history_reason,
        ))

        await self.db.commit()
        logger.info("Booking %s cancelled (refund £%.2f)", booking.booking_reference, refund_amount)

        email_sent = False
        if booking.customer:
            try:
                notification = await self.email_service.send_booking_status_update(
                    booking, booking.customer, previous_status.value, reason
                )
                email_sent = notification.status == EmailStatus.SENT
            except Exception:
                logger.exception("Failed to send cancellation email for %s", booking.booking_reference)

        if policy.refund_eligible:
            message = "Your booking has been cancelled. You are eligible for a full refund."
        else:
            message = "Your booking has been cancelled. No refund is due for cancellations within 24 hours."

        return CancellationResponse(
            booking=BookingResponse.model_validate(booking),
            policy=policy,
            refund_amount=refund_amount,
            time_slot_freed=time_slot_freed,
            email_sent=email_sent,
            message=message,
        )

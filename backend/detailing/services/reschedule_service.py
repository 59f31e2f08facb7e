"""Reschedule service - customer requests and admin responses."""

import logging
from datetime import datetime, date, time, timedelta
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from detailing.models.booking import (
    Booking,
    BookingStatus,
    BookingStatusHistory,
    BookingRescheduleRequest,
    RescheduleStatus,
)
from detailing.models.time_slot import TimeSlot
from detailing.models.user import UserProfile
from detailing.services.booking_service import BookingService
from detailing.services.email_service import EmailService
from detailing.utils.time_validation import is_slot_in_past, local_now, format_time

logger = logging.getLogger(__name__)

RESCHEDULABLE_STATUSES = {BookingStatus.PENDING, BookingStatus.CONFIRMED}

# Admins can move anything except finished bookings
ADMIN_NON_RESCHEDULABLE = {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.DECLINED}


class RescheduleService:
    """Service for reschedule requests."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService(db)
        self.bookings = BookingService(db, self.email_service)

    async def get_by_id(self, request_id: UUID) -> Optional[BookingRescheduleRequest]:
        result = await self.db.execute(
            select(BookingRescheduleRequest)
            .where(BookingRescheduleRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _find_slot(self, slot_date: date, start_time: time) -> Optional[TimeSlot]:
        result = await self.db.execute(
            select(TimeSlot).where(
                TimeSlot.slot_date == slot_date,
                TimeSlot.start_time == start_time,
            )
        )
        return result.scalar_one_or_none()

    async def request_reschedule(
        self,
        booking_id: UUID,
        customer_id: UUID,
        requested_date: date,
        requested_time: time,
        reason: str,
    ) -> BookingRescheduleRequest:
        """Customer asks to move a booking to another free slot."""
        if not requested_date or not requested_time or not (reason or "").strip():
            raise ValidationError("Requested date, time and reason are required")

        booking = await self.bookings.get_by_id(booking_id)
        if not booking or booking.customer_id != customer_id:
            raise NotFoundError("Booking not found")
        if booking.status not in RESCHEDULABLE_STATUSES:
            raise PolicyError(
                f"Cannot reschedule a booking with status: {booking.status.value}",
                code="CANNOT_RESCHEDULE",
            )
        if requested_date < local_now().date():
            raise ValidationError("Requested date cannot be in the past")

        pending = await self.db.execute(
            select(BookingRescheduleRequest.id).where(
                BookingRescheduleRequest.booking_id == booking_id,
                BookingRescheduleRequest.status == RescheduleStatus.PENDING,
            )
        )
        if pending.first():
            raise ConflictError(
                "A reschedule request is already pending for this booking", code="REQUEST_PENDING"
            )

        slot = await self._find_slot(requested_date, requested_time)
        if not slot or not slot.is_available or is_slot_in_past(slot.slot_date, slot.start_time):
            raise ConflictError("The requested time slot is not available", code="SLOT_UNAVAILABLE")

        request = BookingRescheduleRequest(
            booking_id=booking.id,
            customer_id=customer_id,
            original_date=booking.scheduled_date,
            original_time=booking.scheduled_start_time,
            requested_date=requested_date,
            requested_time=requested_time,
            reason=reason.strip(),
            status=RescheduleStatus.PENDING,
        )
        self.db.add(request)
        await self.db.commit()
        logger.info(
            "Reschedule requested for %s: %s %s", booking.booking_reference,
            requested_date, format_time(requested_time),
        )

        if booking.customer:
            try:
                await self.email_service.send_admin_reschedule_request(booking, booking.customer, request)
            except Exception:
                logger.exception("Failed to notify admin of reschedule for %s", booking.booking_reference)

        return request

    async def list_requests(
        self, status: Optional[RescheduleStatus] = None
    ) -> List[BookingRescheduleRequest]:
        query = select(BookingRescheduleRequest)
        if status:
            query = query.where(BookingRescheduleRequest.status == status)
        query = query.order_by(BookingRescheduleRequest.created_at.desc())
        result = await self.db.execute(query)
        return list(result.scalars())

    async def list_customer_requests(self, customer_id: UUID) -> List[BookingRescheduleRequest]:
        result = await self.db.execute(
            select(BookingRescheduleRequest)
            .where(BookingRescheduleRequest.customer_id == customer_id)
            .order_by(BookingRescheduleRequest.created_at.desc())
        )
        return list(result.scalars())

    async def respond(
        self,
        request_id: UUID,
        action: str,
        admin: Optional[UserProfile] = None,
        admin_response: Optional[str] = None,
        admin_notes: Optional[str] = None,
        proposed_date: Optional[date] = None,
        proposed_time: Optional[time] = None,
    ) -> BookingRescheduleRequest:
        """
        Approve, reject or propose another time for a pending request.
        Proposing rejects the request and tells the customer the alternative.
        """
        if action not in ("approve", "reject", "propose"):
            raise ValidationError("Valid action is required (approve, reject, propose)")

        request = await self.get_by_id(request_id)
        if not request:
            raise NotFoundError("Reschedule request not found")

        message = admin_response
        if action == "propose":
            if not proposed_date or not proposed_time:
                raise ValidationError("proposed_date and proposed_time are required to propose a new time")
            message = (
                f"Alternative time proposed: {proposed_date.isoformat()} at "
                f"{format_time(proposed_time)}. {admin_response or ''}"
            ).strip()

        new_status = RescheduleStatus.APPROVED if action == "approve" else RescheduleStatus.REJECTED

        # Only the first responder wins
        result = await self.db.execute(
            update(BookingRescheduleRequest)
            .where(and_(
                BookingRescheduleRequest.id == request_id,
                BookingRescheduleRequest.status == RescheduleStatus.PENDING,
            ))
            .values(
                status=new_status,
                admin_response=message,
                admin_notes=admin_notes,
                responded_by=admin.id if admin else None,
                responded_at=datetime.utcnow(),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError("Request has already been processed", code="ALREADY_PROCESSED")

        booking = await self.bookings.get_by_id(request.booking_id)
        if action == "approve" and booking:
            await self._apply_reschedule(booking, request, admin, admin_response)

        await self.db.commit()
        request = await self.get_by_id(request_id)
        logger.info("Reschedule request %s %sd", request_id, action)

        if booking and booking.customer:
            try:
                await self.email_service.send_reschedule_response(booking, booking.customer, request)
            except Exception:
                logger.exception("Failed to send reschedule response for %s", booking.booking_reference)

        return request

    async def _apply_reschedule(
        self,
        booking: Booking,
        request: BookingRescheduleRequest,
        admin: Optional[UserProfile],
        admin_response: Optional[str],
    ) -> None:
        previous_status = booking.status

        # Free the old slot and drop the link
        await self.bookings.release_booking_slot(booking)

        booking.scheduled_date = request.requested_date
        booking.scheduled_start_time = request.requested_time
        if booking.estimated_duration:
            end = datetime.combine(request.requested_date, request.requested_time) + timedelta(
                minutes=booking.estimated_duration
            )
            booking.scheduled_end_time = end.time()
        booking.status = BookingStatus.RESCHEDULED

        new_slot = await self._find_slot(request.requested_date, request.requested_time)
        if new_slot and await self.bookings.slots.claim_slot(new_slot.id, booking.booking_reference):
            booking.time_slot_id = new_slot.id
        else:
            logger.warning(
                "Requested slot for %s was not free when approved; booking left unlinked",
                booking.booking_reference,
            )

        notes = [
            "Customer reschedule request approved",
            f"Rescheduled from {request.original_date} {format_time(request.original_time)} "
            f"to {request.requested_date} {format_time(request.requested_time)}",
            f"Customer reason: {request.reason}",
        ]
        if admin_response:
            notes.append(f"Admin response: {admin_response}")

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=previous_status.value,
            to_status=BookingStatus.RESCHEDULED.value,
            changed_by=admin.id if admin else None,
            reason="Customer reschedule request approved",
            notes="\n".join(notes),
        ))

    async def admin_reschedule(
        self,
        booking_id: UUID,
        new_date: date,
        new_time: time,
        admin: Optional[UserProfile] = None,
        reason: Optional[str] = None,
    ) -> Tuple[Booking, date, time]:
        """
        Move a booking directly, without a customer request.

        A slot defined at the new time must be free and is claimed for the
        booking; a time with no slot is accepted and left unlinked.
        Returns (booking, old_date, old_time).
        """
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.status in ADMIN_NON_RESCHEDULABLE:
            raise PolicyError(
                f"Cannot reschedule booking with status: {booking.status.value}",
                code="CANNOT_RESCHEDULE",
            )
        if is_slot_in_past(new_date, new_time, buffer_minutes=0):
            raise ValidationError("New date and time must be in the future")

        old_date, old_time = booking.scheduled_date, booking.scheduled_start_time
        if (new_date, new_time) == (old_date, old_time):
            raise ValidationError("Booking is already scheduled for that time")

        new_slot = await self._find_slot(new_date, new_time)
        if new_slot and not await self.bookings.slots.claim_slot(new_slot.id, booking.booking_reference):
            raise ConflictError("The requested time slot is not available", code="SLOT_UNAVAILABLE")

        previous_status = booking.status
        await self.bookings.release_booking_slot(booking)
        booking.time_slot_id = new_slot.id if new_slot else None
        booking.scheduled_date = new_date
        booking.scheduled_start_time = new_time
        if booking.estimated_duration:
            end = datetime.combine(new_date, new_time) + timedelta(minutes=booking.estimated_duration)
            booking.scheduled_end_time = end.time()
        booking.status = BookingStatus.RESCHEDULED

        notes = [f"Rescheduled from {old_date} {format_time(old_time)} to {new_date} {format_time(new_time)}"]
        if reason:
            notes.append(f"Additional reason: {reason}")
        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=previous_status.value,
            to_status=BookingStatus.RESCHEDULED.value,
            changed_by=admin.id if admin else None,
            reason="Booking rescheduled by admin",
            notes="\n".join(notes),
        ))
        await self.db.commit()
        booking = await self.bookings.get_by_id(booking_id)
        logger.info(
            "Booking %s rescheduled by admin to %s %s",
            booking.booking_reference, new_date, format_time(new_time),
        )

        if booking.customer:
            message = f"Your booking has been rescheduled to {new_date.isoformat()} at {format_time(new_time)}"
            if reason:
                message += f". Reason: {reason}"
            await self.email_service.send_booking_status_update(
                booking, booking.customer, previous_status.value, message
            )

        return booking, old_date, old_time

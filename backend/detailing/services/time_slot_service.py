"""Time slot service - admin slot management and the conditional booking claim."""

import logging
from collections import OrderedDict
from datetime import date, datetime
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from detailing.exceptions import ConflictError, NotFoundError, ValidationError
from detailing.models.time_slot import TimeSlot
from detailing.models.booking import Booking, BookingStatus, BookingStatusHistory
from detailing.models.notification import EmailStatus
from detailing.models.user import UserProfile
from detailing.schemas.time_slot import (
    TimeSlotCreate,
    TimeSlotUpdate,
    DayAvailability,
    PublicSlotResponse,
    TimeSlotResponse,
    BulkCreateResult,
)
from detailing.services.email_service import EmailService
from detailing.utils.status_transitions import STATUS_CATEGORIES
from detailing.utils.time_validation import is_slot_in_past, local_now, format_time
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Booking statuses that still hold their slot
SLOT_HOLDING_STATUSES = list(STATUS_CATEGORIES["active"] | STATUS_CATEGORIES["payment_required"])


def slot_label(slot_date: date, start_time) -> str:
    return f"{slot_date.isoformat()} {format_time(start_time)}"


class TimeSlotService:
    """Service for time slot operations."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService(db)

    async def get_by_id(self, slot_id: UUID) -> Optional[TimeSlot]:
        result = await self.db.execute(
            select(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_slots(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        available_only: bool = False,
    ) -> List[TimeSlot]:
        query = select(TimeSlot)
        if date_from:
            query = query.where(TimeSlot.slot_date >= date_from)
        if date_to:
            query = query.where(TimeSlot.slot_date <= date_to)
        if available_only:
            query = query.where(TimeSlot.is_available == True)
        query = query.order_by(TimeSlot.slot_date, TimeSlot.start_time)

        result = await self.db.execute(query)
        return list(result.scalars())

    async def get_availability(self, date_from: date, date_to: date) -> List[DayAvailability]:
        """
        Slots grouped per day for the booking calendar.
        Slots inside the booking notice window are left out.
        """
        if date_to < date_from:
            raise ValidationError("date_to must be on or after date_from")

        now = local_now()
        days = OrderedDict()
        for slot in await self.list_slots(date_from, date_to):
            if is_slot_in_past(slot.slot_date, slot.start_time, now=now):
                continue
            days.setdefault(slot.slot_date, []).append(slot)

        availability = []
        for day, slots in days.items():
            free = [s for s in slots if s.is_available]
            availability.append(DayAvailability(
                date=day,
                is_available=bool(free),
                available_count=len(free),
                slots=[PublicSlotResponse.model_validate(s) for s in slots],
            ))
        return availability

    async def create_slot(self, data: TimeSlotCreate, created_by: Optional[UUID] = None) -> TimeSlot:
        if is_slot_in_past(data.slot_date, data.start_time, settings.ADMIN_SLOT_BUFFER_MINUTES):
            raise ValidationError("Cannot create a time slot in the past", code="SLOT_IN_PAST")

        slot = TimeSlot(
            slot_date=data.slot_date,
            start_time=data.start_time,
            notes=data.notes,
            is_available=True,
            created_by=created_by,
        )
        self.db.add(slot)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                f"A time slot already exists for {slot_label(data.slot_date, data.start_time)}",
                code="DUPLICATE_SLOT",
            )
        await self.db.refresh(slot)
        logger.info("Created time slot %s", slot_label(slot.slot_date, slot.start_time))
        return slot

    async def bulk_create(
        self, slots: List[TimeSlotCreate], created_by: Optional[UUID] = None
    ) -> BulkCreateResult:
        """Create many slots, skipping ones in the past or already present."""
        now = local_now()
        skipped_past = []
        candidates = OrderedDict()

        for item in slots:
            key = (item.slot_date, item.start_time)
            if is_slot_in_past(item.slot_date, item.start_time, settings.ADMIN_SLOT_BUFFER_MINUTES, now):
                skipped_past.append(slot_label(*key))
                continue
            candidates.setdefault(key, item)

        skipped_duplicates = []
        if candidates:
            dates = {d for d, _ in candidates}
            existing = await self.db.execute(
                select(TimeSlot.slot_date, TimeSlot.start_time).where(TimeSlot.slot_date.in_(dates))
            )
            for row in existing:
                key = (row.slot_date, row.start_time)
                if key in candidates:
                    del candidates[key]
                    skipped_duplicates.append(slot_label(*key))

        if not candidates:
            parts = []
            if skipped_duplicates:
                parts.append(f"{len(skipped_duplicates)} already exist")
            if skipped_past:
                parts.append(f"{len(skipped_past)} are in the past")
            raise ValidationError(
                "No time slots to create: " + (", ".join(parts) or "nothing submitted"),
                code="NO_SLOTS_CREATED",
            )

        created = [
            TimeSlot(
                slot_date=item.slot_date,
                start_time=item.start_time,
                notes=item.notes,
                is_available=True,
                created_by=created_by,
            )
            for item in candidates.values()
        ]
        self.db.add_all(created)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Time slots were created concurrently, please retry", code="DUPLICATE_SLOT")

        message = f"Created {len(created)} time slot(s)"
        if skipped_duplicates:
            message += f", skipped {len(skipped_duplicates)} duplicate(s)"
        if skipped_past:
            message += f", skipped {len(skipped_past)} in the past"
        logger.info(message)

        return BulkCreateResult(
            created=[TimeSlotResponse.model_validate(s) for s in created],
            skipped_duplicates=skipped_duplicates,
            skipped_past=skipped_past,
            message=message,
        )

    async def update_slot(self, slot_id: UUID, data: TimeSlotUpdate) -> TimeSlot:
        slot = await self.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot not found")

        updates = data.model_dump(exclude_unset=True)
        moving = "slot_date" in updates or "start_time" in updates
        if moving:
            if not slot.is_available:
                raise ConflictError("Cannot move a booked time slot", code="SLOT_BOOKED")
            new_date = updates.get("slot_date") or slot.slot_date
            new_time = updates.get("start_time") or slot.start_time
            if is_slot_in_past(new_date, new_time, settings.ADMIN_SLOT_BUFFER_MINUTES):
                raise ValidationError("Cannot move a time slot into the past", code="SLOT_IN_PAST")

        for field, value in updates.items():
            setattr(slot, field, value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("A time slot already exists at that date and time", code="DUPLICATE_SLOT")
        return slot

    async def delete_slot(self, slot_id: UUID) -> None:
        slot = await self.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot not found")
        if not slot.is_available:
            raise ConflictError(
                "Cannot delete a booked time slot. Release it first.", code="SLOT_BOOKED"
            )

        # Unlink historical bookings that still point at this slot
        await self.db.execute(
            update(Booking).where(Booking.time_slot_id == slot_id).values(time_slot_id=None)
        )
        await self.db.delete(slot)
        await self.db.commit()

    # =========================================================================
    # Claiming and freeing
    # =========================================================================

    async def claim_slot(self, slot_id: UUID, booking_reference: str, notes: Optional[str] = None) -> bool:
        """
        Flip a slot to booked if and only if it is still available.
        Does not commit; returns False when another writer got there first.
        """
        values = {"is_available": False, "booking_reference": booking_reference}
        if notes is not None:
            values["notes"] = notes
        result = await self.db.execute(
            update(TimeSlot)
            .where(and_(TimeSlot.id == slot_id, TimeSlot.is_available == True))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def free_slot(self, slot_id: UUID) -> bool:
        """Make a booked slot available again. Does not commit."""
        result = await self.db.execute(
            update(TimeSlot)
            .where(and_(TimeSlot.id == slot_id, TimeSlot.is_available == False))
            .values(is_available=True, booking_reference=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def book_slot(
        self, slot_id: UUID, booking_reference: str, notes: Optional[str] = None
    ) -> TimeSlot:
        """Mark a slot as booked. Only one caller can win a given slot."""
        slot = await self.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot not found")
        if is_slot_in_past(slot.slot_date, slot.start_time):
            raise ValidationError("Cannot book a time slot in the past", code="SLOT_IN_PAST")

        if not await self.claim_slot(slot_id, booking_reference, notes):
            await self.db.rollback()
            raise ConflictError("Time slot was just booked by another user", code="SLOT_TAKEN")

        await self.db.commit()
        return await self.get_by_id(slot_id)

    async def release_slot(
        self,
        slot_id: UUID,
        reason: str,
        admin: Optional[UserProfile] = None,
    ) -> Tuple[TimeSlot, Optional[Booking], bool]:
        """
        Make a booked slot available again and cancel the booking holding it.
        Returns (slot, cancelled booking or None, whether the customer was emailed).
        """
        slot = await self.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot not found")

        if not await self.free_slot(slot_id):
            await self.db.rollback()
            raise ConflictError("Time slot is already available", code="SLOT_AVAILABLE")

        result = await self.db.execute(
            select(Booking).where(
                Booking.time_slot_id == slot_id,
                Booking.status.in_(SLOT_HOLDING_STATUSES),
            )
        )
        booking = result.scalars().first()

        previous_status = None
        if booking:
            previous_status = booking.status.value
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = datetime.utcnow()
            booking.cancelled_by = admin.id if admin else None
            booking.cancellation_reason = reason
            booking.time_slot_id = None
            self.db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=previous_status,
                to_status=BookingStatus.CANCELLED.value,
                changed_by=admin.id if admin else None,
                reason=f"Time slot released: {reason}",
            ))

        await self.db.commit()
        logger.info(
            "Released time slot %s%s", slot_id,
            f", cancelled booking {booking.booking_reference}" if booking else "",
        )

        email_sent = False
        if booking and booking.customer:
            try:
                notification = await self.email_service.send_booking_status_update(
                    booking, booking.customer, previous_status, reason
                )
                email_sent = notification.status == EmailStatus.SENT
            except Exception:
                logger.exception("Failed to send cancellation email for %s", booking.booking_reference)

        return await self.get_by_id(slot_id), booking, email_sent

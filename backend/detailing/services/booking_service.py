"""Booking service - handles booking-related business logic."""

import logging
import secrets
import string
import time as time_module
from datetime import datetime, date, timedelta
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from detailing.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from detailing.models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    PaymentMethod,
    BookingServiceItem,
    BookingStatusHistory,
)
from detailing.models.customer import CustomerVehicle, CustomerAddress
from detailing.models.time_slot import TimeSlot
from detailing.models.user import UserProfile
from detailing.schemas.booking import BookingCreate
from detailing.services.email_service import EmailService
from detailing.services.payment_service import generate_payment_link
from detailing.services.pricing_service import PricingService
from detailing.services.time_slot_service import TimeSlotService
from detailing.utils.security import hash_password, role_for_email
from detailing.utils.status_transitions import STATUS_CATEGORIES, validate_transition
from detailing.utils.time_validation import is_slot_in_past
from detailing.utils.vehicle_size import detect_vehicle_size
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_uppercase

# Status changes the customer hears about
NOTIFY_STATUSES = {
    BookingStatus.CONFIRMED,
    BookingStatus.CANCELLED,
    BookingStatus.COMPLETED,
    BookingStatus.IN_PROGRESS,
}

MARK_PAID_STATUSES = {BookingStatus.PENDING, BookingStatus.PROCESSING, BookingStatus.PAYMENT_FAILED}


def generate_booking_reference() -> str:
    """Generate a booking reference like 'L4D-1718000000000-K3ZQ'."""
    random_part = "".join(secrets.choice(BASE36) for _ in range(4))
    return f"L4D-{int(time_module.time() * 1000)}-{random_part}"


def append_admin_note(booking: Booking, note: str) -> None:
    """Append a timestamped line to the booking's admin notes."""
    stamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
    line = f"[{stamp}] {note}"
    booking.admin_notes = f"{booking.admin_notes}\n{line}" if booking.admin_notes else line


def vehicle_snapshot(vehicle: CustomerVehicle) -> dict:
    return {
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "color": vehicle.color,
        "registration": vehicle.registration,
        "vehicle_size": vehicle.vehicle_size,
    }


def address_snapshot(address: CustomerAddress) -> dict:
    return {
        "address_line_1": address.address_line_1,
        "address_line_2": address.address_line_2,
        "city": address.city,
        "county": address.county,
        "postal_code": address.postal_code,
    }


class BookingService:
    """Service for booking operations."""

    def __init__(
        self,
        db: AsyncSession,
        email_service: Optional[EmailService] = None,
        pricing_service: Optional[PricingService] = None,
    ):
        self.db = db
        self.email_service = email_service or EmailService(db)
        self.pricing = pricing_service or PricingService(db)
        self.slots = TimeSlotService(db, self.email_service)

    async def get_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID with customer, vehicle, address and services."""
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_reference(self, reference: str) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.booking_reference == reference.strip().upper())
        )
        return result.scalar_one_or_none()

    async def get_history(self, booking_id: UUID) -> List[BookingStatusHistory]:
        result = await self.db.execute(
            select(BookingStatusHistory)
            .where(BookingStatusHistory.booking_id == booking_id)
            .order_by(BookingStatusHistory.created_at)
        )
        return list(result.scalars())

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Booking], int]:
        """List bookings with filters and pagination."""
        query = select(Booking)

        # Apply filters
        if status:
            query = query.where(Booking.status == status)
        if payment_status:
            query = query.where(Booking.payment_status == payment_status)
        if date_from:
            query = query.where(Booking.scheduled_date >= date_from)
        if date_to:
            query = query.where(Booking.scheduled_date <= date_to)
        if search:
            term = f"%{search.strip()}%"
            query = query.join(UserProfile, Booking.customer_id == UserProfile.id).where(
                or_(
                    Booking.booking_reference.ilike(term),
                    UserProfile.email.ilike(term),
                    UserProfile.first_name.ilike(term),
                    UserProfile.last_name.ilike(term),
                )
            )

        # Get total count
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar()

        # Apply pagination
        query = query.order_by(Booking.scheduled_date.desc(), Booking.scheduled_start_time.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        return list(result.scalars()), total

    async def list_customer_bookings(
        self, customer_id: UUID, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        query = select(Booking).where(Booking.customer_id == customer_id)
        if status:
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.scheduled_date.desc(), Booking.scheduled_start_time.desc())
        result = await self.db.execute(query)
        return list(result.scalars())

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_booking(
        self, data: BookingCreate, customer: Optional[UserProfile] = None
    ) -> Tuple[Booking, bool]:
        """
        Create a booking from the booking wizard.
        Returns (booking, whether a new customer account was created).
        """
        try:
            customer, is_new_customer = await self._resolve_customer(data, customer)
            slot = await self._check_slot(data.time_slot_id)
            vehicle = await self._resolve_vehicle(data, customer)
            address = await self._resolve_address(data, customer)

            quote = await self.pricing.calculate_quote(
                data.service_id, vehicle.vehicle_size, address.postal_code
            )
            if quote.distance and address.distance_miles is None:
                address.distance_miles = quote.distance.distance_miles

            start = datetime.combine(slot.slot_date, slot.start_time)
            end = start + timedelta(minutes=quote.estimated_duration)

            booking = Booking(
                booking_reference=generate_booking_reference(),
                customer=customer,
                vehicle_id=vehicle.id,
                address_id=address.id,
                time_slot_id=slot.id,
                scheduled_date=slot.slot_date,
                scheduled_start_time=slot.start_time,
                scheduled_end_time=end.time(),
                estimated_duration=quote.estimated_duration,
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                payment_deadline=datetime.utcnow() + timedelta(hours=settings.PAYMENT_DEADLINE_HOURS),
                payment_reminder_count=0,
                vehicle_size=vehicle.vehicle_size,
                base_price=quote.base_price,
                distance_surcharge=quote.distance_surcharge,
                total_price=quote.total_price,
                vehicle_details=vehicle_snapshot(vehicle),
                service_address=address_snapshot(address),
                special_instructions=data.special_instructions,
            )
            booking.services = [
                BookingServiceItem(
                    service_id=quote.service.id,
                    service_details={
                        "name": quote.service.name,
                        "category": quote.service.category.name if quote.service.category else None,
                    },
                    price=quote.base_price,
                    estimated_duration=quote.estimated_duration,
                )
            ]
            self.db.add(booking)
            await self.db.flush()

            # Record initial status
            self.db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=None,
                to_status=BookingStatus.PENDING.value,
                changed_by=customer.id,
                reason="Booking created",
            ))

            if not await self.slots.claim_slot(slot.id, booking.booking_reference):
                raise ConflictError("Time slot was just booked by another user", code="SLOT_TAKEN")

            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Time slot is no longer available", code="SLOT_UNAVAILABLE")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Booking %s created for %s on %s", booking.booking_reference, customer.email, booking.scheduled_at
        )

        try:
            link = generate_payment_link(float(booking.total_price), booking.booking_reference)
            await self.email_service.send_booking_confirmation(booking, customer, link)
            await self.email_service.send_admin_booking_notification(booking, customer)
        except Exception:
            logger.exception("Failed to send booking emails for %s", booking.booking_reference)

        return booking, is_new_customer

    async def _resolve_customer(
        self, data: BookingCreate, customer: Optional[UserProfile]
    ) -> Tuple[UserProfile, bool]:
        if customer:
            return customer, False
        if not data.customer:
            raise ValidationError("Customer details are required", code="CUSTOMER_REQUIRED")

        email = data.customer.email.lower()
        result = await self.db.execute(select(UserProfile).where(func.lower(UserProfile.email) == email))
        existing = result.scalar_one_or_none()
        if existing:
            if not existing.is_active:
                raise PolicyError("This account is disabled", code="ACCOUNT_DISABLED")
            return existing, False

        # Guest checkout - account without a password unless one was given
        profile = UserProfile(
            email=email,
            first_name=data.customer.first_name,
            last_name=data.customer.last_name,
            phone=data.customer.phone,
            password_hash=hash_password(data.customer.password) if data.customer.password else None,
            role=role_for_email(email),
            is_active=True,
        )
        self.db.add(profile)
        await self.db.flush()
        logger.info("Created customer account for %s during booking", email)
        return profile, True

    async def _check_slot(self, slot_id: UUID) -> TimeSlot:
        slot = await self.slots.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot not found")
        if not slot.is_available or is_slot_in_past(slot.slot_date, slot.start_time):
            raise ConflictError("Time slot is no longer available", code="SLOT_UNAVAILABLE")

        taken = await self.db.execute(
            select(Booking.id).where(
                Booking.time_slot_id == slot_id,
                Booking.status.notin_(list(STATUS_CATEGORIES["inactive"])),
            )
        )
        if taken.first():
            raise ConflictError("Time slot is no longer available", code="SLOT_UNAVAILABLE")
        return slot

    async def _resolve_vehicle(self, data: BookingCreate, customer: UserProfile) -> CustomerVehicle:
        if data.vehicle_id:
            vehicle = await self.db.get(CustomerVehicle, data.vehicle_id)
            if not vehicle or vehicle.user_id != customer.id or not vehicle.is_active:
                raise NotFoundError("Vehicle not found")
            return vehicle

        v = data.vehicle
        vehicle = CustomerVehicle(
            user_id=customer.id,
            make=v.make,
            model=v.model,
            year=v.year,
            color=v.color,
            registration=v.registration,
            vehicle_size=v.vehicle_size or detect_vehicle_size(v.make, v.model),
            notes=v.notes,
            is_primary=not await self._has_rows(CustomerVehicle, customer.id),
        )
        self.db.add(vehicle)
        await self.db.flush()
        return vehicle

    async def _resolve_address(self, data: BookingCreate, customer: UserProfile) -> CustomerAddress:
        if data.address_id:
            address = await self.db.get(CustomerAddress, data.address_id)
            if not address or address.user_id != customer.id:
                raise NotFoundError("Address not found")
            return address

        a = data.address
        address = CustomerAddress(
            user_id=customer.id,
            name=a.name or "Home",
            address_line_1=a.address_line_1,
            address_line_2=a.address_line_2,
            city=a.city,
            county=a.county,
            postal_code=a.postal_code,
            is_primary=not await self._has_rows(CustomerAddress, customer.id),
        )
        self.db.add(address)
        await self.db.flush()
        return address

    async def _has_rows(self, model, user_id: UUID) -> bool:
        result = await self.db.execute(select(model.id).where(model.user_id == user_id).limit(1))
        return result.first() is not None

    # =========================================================================
    # Admin lifecycle
    # =========================================================================

    async def release_booking_slot(self, booking: Booking) -> bool:
        """Free the booking's slot and unlink it. Does not commit."""
        if not booking.time_slot_id:
            return False
        freed = await self.slots.free_slot(booking.time_slot_id)
        booking.time_slot_id = None
        return freed

    async def update_status(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        changed_by: Optional[UserProfile] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        confirm: bool = False,
    ) -> Tuple[Booking, List[str]]:
        """Apply an admin status change. Returns (booking, warnings)."""
        booking = await self.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        check = validate_transition(booking.status, new_status, booking.payment_status)
        if not check.is_valid:
            raise ConflictError(check.reason, code="INVALID_TRANSITION")
        if check.requires_confirmation and not confirm:
            raise PolicyError(
                "Confirmation required: " + "; ".join(check.warnings),
                code="CONFIRMATION_REQUIRED",
            )

        previous_status = booking.status
        booking.status = new_status
        now = datetime.utcnow()

        if new_status == BookingStatus.CONFIRMED:
            booking.confirmed_at = now
        elif new_status == BookingStatus.COMPLETED:
            booking.completed_at = now
        elif new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = now
            booking.cancelled_by = changed_by.id if changed_by else None
            booking.cancellation_reason = reason

        if new_status in STATUS_CATEGORIES["inactive"]:
            await self.release_booking_slot(booking)

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=previous_status.value,
            to_status=new_status.value,
            changed_by=changed_by.id if changed_by else None,
            reason=reason,
            notes=notes,
        ))

        await self.db.commit()
        logger.info("Booking %s: %s -> %s", booking.booking_reference, previous_status.value, new_status.value)

        if new_status in NOTIFY_STATUSES and booking.customer:
            try:
                await self.email_service.send_booking_status_update(
                    booking, booking.customer, previous_status.value, reason
                )
            except Exception:
                logger.exception("Failed to send status email for %s", booking.booking_reference)

        return booking, check.warnings

    async def mark_paid(
        self,
        booking_id: UUID,
        payment_method: PaymentMethod = PaymentMethod.PAYPAL,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        admin: Optional[UserProfile] = None,
        send_email: bool = True,
    ) -> Booking:
        """Record a payment taken outside the webhook (cash, bank transfer, manual PayPal check)."""
        booking = await self.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.payment_status == PaymentStatus.PAID:
            raise ConflictError("Booking is already marked as paid", code="ALREADY_PAID")
        if booking.status not in MARK_PAID_STATUSES:
            raise ConflictError(
                f"Cannot mark a {booking.status.value} booking as paid", code="INVALID_STATUS"
            )

        previous_status = booking.status
        booking.payment_status = PaymentStatus.PAID
        booking.payment_method = payment_method
        booking.payment_reference = payment_reference or booking.booking_reference
        booking.status = BookingStatus.CONFIRMED
        booking.confirmed_at = datetime.utcnow()

        who = admin.email if admin else "admin"
        note = f"Marked as paid ({payment_method.value}) by {who}"
        if notes:
            note += f": {notes}"
        append_admin_note(booking, note)

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=previous_status.value,
            to_status=BookingStatus.CONFIRMED.value,
            changed_by=admin.id if admin else None,
            reason=f"Payment received via {payment_method.value}",
            notes=notes,
        ))

        await self.db.commit()
        logger.info("Booking %s marked as paid via %s", booking.booking_reference, payment_method.value)

        if send_email and booking.customer:
            try:
                await self.email_service.send_payment_confirmation(booking, booking.customer)
            except Exception:
                logger.exception("Failed to send payment confirmation for %s", booking.booking_reference)

        return booking

    async def update_admin_notes(self, booking_id: UUID, admin_notes: str) -> Booking:
        booking = await self.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        booking.admin_notes = admin_notes
        await self.db.commit()
        return booking

"""Tests for booking creation and the admin lifecycle."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from detailing.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from detailing.models.booking import (
    BookingStatus,
    BookingStatusHistory,
    PaymentMethod,
    PaymentStatus,
)
from detailing.models.user import UserProfile
from detailing.schemas.booking import BookingCreate
from detailing.services.booking_service import BookingService, generate_booking_reference
from detailing.config import get_settings

settings = get_settings()


def booking_payload(service, slot, **overrides) -> BookingCreate:
    data = {
        "service_id": service.id,
        "time_slot_id": slot.id,
        "customer": {
            "email": "Guest@Example.com",
            "first_name": "Guest",
            "last_name": "User",
            "phone": "07400 123456",
        },
        "vehicle": {"make": "Ford", "model": "Focus", "vehicle_size": "M"},
        "address": {
            "address_line_1": "1 Test Street",
            "city": "London",
            "postal_code": "sw98ab",
        },
    }
    data.update(overrides)
    return BookingCreate(**data)


class TestReference:

    def test_format(self):
        reference = generate_booking_reference()
        prefix, millis, suffix = reference.split("-")
        assert prefix == "L4D"
        assert millis.isdigit()
        assert len(suffix) == 4

    def test_unique(self):
        assert len({generate_booking_reference() for _ in range(50)}) == 50


class TestCreateBooking:

    async def test_guest_checkout(self, db, service, slot, sent_emails):
        booking, is_new = await BookingService(db).create_booking(booking_payload(service, slot))

        assert is_new
        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.total_price == Decimal("60.00")
        assert booking.distance_surcharge == Decimal("0.00")
        assert booking.service_address["postal_code"] == "SW9 8AB"
        assert booking.vehicle_details["make"] == "Ford"
        assert booking.payment_deadline is not None

        customer = booking.customer
        assert customer.email == "guest@example.com"
        assert customer.password_hash is None

        await db.refresh(slot)
        assert slot.is_available is False
        assert slot.booking_reference == booking.booking_reference

        assert sent_emails.to("guest@example.com")
        assert sent_emails.to(settings.ADMIN_EMAIL)

    async def test_existing_customer_reused(self, db, service, slot, customer):
        data = booking_payload(service, slot, customer={
            "email": customer.email.upper(),
            "first_name": "Someone",
            "last_name": "Else",
        })
        booking, is_new = await BookingService(db).create_booking(data)

        assert not is_new
        assert booking.customer_id == customer.id
        users = (await db.execute(select(UserProfile))).scalars().all()
        assert len(users) == 1

    async def test_logged_in_customer_with_saved_details(
        self, db, service, slot, customer, make_vehicle, make_address
    ):
        vehicle = await make_vehicle(customer, size="XL")
        address = await make_address(customer)
        data = BookingCreate(
            service_id=service.id,
            time_slot_id=slot.id,
            vehicle_id=vehicle.id,
            address_id=address.id,
        )
        booking, is_new = await BookingService(db).create_booking(data, customer)

        assert not is_new
        assert booking.vehicle_id == vehicle.id
        assert booking.total_price == Decimal("70.00")

    async def test_someone_elses_vehicle(self, db, service, slot, customer, make_user, make_vehicle):
        other = await make_user(email="other@example.com")
        vehicle = await make_vehicle(other)
        data = booking_payload(service, slot, vehicle_id=vehicle.id, vehicle=None)
        with pytest.raises(NotFoundError):
            await BookingService(db).create_booking(data, customer)

    async def test_guest_needs_details(self, db, service, slot):
        with pytest.raises(ValidationError) as exc:
            await BookingService(db).create_booking(booking_payload(service, slot, customer=None))
        assert exc.value.code == "CUSTOMER_REQUIRED"

    async def test_taken_slot(self, db, service, make_slot):
        taken = await make_slot(is_available=False, booking_reference="L4D-OTHER")
        with pytest.raises(ConflictError) as exc:
            await BookingService(db).create_booking(booking_payload(service, taken))
        assert exc.value.code == "SLOT_UNAVAILABLE"

    async def test_second_booking_for_same_slot(self, db, service, slot):
        bookings = BookingService(db)
        await bookings.create_booking(booking_payload(service, slot))

        second = booking_payload(service, slot, customer={
            "email": "late@example.com", "first_name": "Late", "last_name": "Comer",
        })
        with pytest.raises(ConflictError):
            await bookings.create_booking(second)

    async def test_initial_history(self, db, service, slot):
        booking, _ = await BookingService(db).create_booking(booking_payload(service, slot))
        history = await BookingService(db).get_history(booking.id)
        assert [(h.from_status, h.to_status) for h in history] == [(None, "pending")]


class TestUpdateStatus:

    async def test_invalid_transition(self, db, customer, make_booking):
        booking = await make_booking(customer, status=BookingStatus.COMPLETED)
        with pytest.raises(ConflictError) as exc:
            await BookingService(db).update_status(booking.id, BookingStatus.PENDING)
        assert exc.value.code == "INVALID_TRANSITION"

    async def test_cancel_needs_confirmation(self, db, customer, admin, slot, make_booking):
        booking = await make_booking(customer, slot=slot, status=BookingStatus.CONFIRMED)
        with pytest.raises(PolicyError) as exc:
            await BookingService(db).update_status(booking.id, BookingStatus.CANCELLED, admin)
        assert exc.value.code == "CONFIRMATION_REQUIRED"

        await db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED

    async def test_cancel_frees_slot(self, db, customer, admin, slot, make_booking, sent_emails):
        booking = await make_booking(customer, slot=slot, status=BookingStatus.CONFIRMED)

        updated, warnings = await BookingService(db).update_status(
            booking.id, BookingStatus.CANCELLED, admin, reason="Weather", confirm=True
        )

        assert updated.status == BookingStatus.CANCELLED
        assert updated.cancelled_by == admin.id
        assert updated.time_slot_id is None
        assert any("release the time slot" in w for w in warnings)

        await db.refresh(slot)
        assert slot.is_available is True
        assert slot.booking_reference is None
        assert sent_emails.to(customer.email)

    async def test_history_recorded(self, db, customer, admin, make_booking):
        booking = await make_booking(customer, status=BookingStatus.CONFIRMED)
        await BookingService(db).update_status(booking.id, BookingStatus.IN_PROGRESS, admin)

        rows = (await db.execute(
            select(BookingStatusHistory).where(BookingStatusHistory.booking_id == booking.id)
        )).scalars().all()
        assert [(r.from_status, r.to_status, r.changed_by) for r in rows] == [
            ("confirmed", "in_progress", admin.id)
        ]


class TestMarkPaid:

    async def test_mark_paid(self, db, customer, admin, make_booking, sent_emails):
        booking = await make_booking(customer)

        paid = await BookingService(db).mark_paid(
            booking.id, PaymentMethod.CASH, notes="Paid on the day", admin=admin
        )

        assert paid.payment_status == PaymentStatus.PAID
        assert paid.status == BookingStatus.CONFIRMED
        assert paid.payment_method == PaymentMethod.CASH
        assert paid.payment_reference == booking.booking_reference
        assert "Marked as paid (cash) by admin@love4detailing.com" in paid.admin_notes
        assert sent_emails.to(customer.email)

    async def test_already_paid(self, db, customer, make_booking):
        booking = await make_booking(
            customer, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID
        )
        with pytest.raises(ConflictError) as exc:
            await BookingService(db).mark_paid(booking.id)
        assert exc.value.code == "ALREADY_PAID"

    async def test_cancelled_booking(self, db, customer, make_booking):
        booking = await make_booking(customer, status=BookingStatus.CANCELLED)
        with pytest.raises(ConflictError) as exc:
            await BookingService(db).mark_paid(booking.id)
        assert exc.value.code == "INVALID_STATUS"

    async def test_silent(self, db, customer, make_booking, sent_emails):
        booking = await make_booking(customer)
        await BookingService(db).mark_paid(booking.id, send_email=False)
        assert not sent_emails.to(customer.email)


class TestListing:

    async def test_search_and_filter(self, db, customer, make_user, make_booking):
        other = await make_user(email="bob@example.com", first_name="Bob")
        await make_booking(customer, status=BookingStatus.CONFIRMED)
        await make_booking(other)

        results, total = await BookingService(db).list_bookings(search="bob")
        assert total == 1
        assert results[0].customer_id == other.id

        results, total = await BookingService(db).list_bookings(status=BookingStatus.CONFIRMED)
        assert total == 1
        assert results[0].customer_id == customer.id

    async def test_customer_bookings(self, db, customer, make_user, make_booking):
        other = await make_user(email="bob@example.com")
        mine = await make_booking(customer)
        await make_booking(other)

        results = await BookingService(db).list_customer_bookings(customer.id)
        assert [b.id for b in results] == [mine.id]

"""Tests for reschedule requests and admin responses."""

import uuid
from datetime import time, timedelta

import pytest
from sqlalchemy import select

from detailing.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from detailing.models.booking import BookingStatus, BookingStatusHistory, RescheduleStatus
from detailing.services.reschedule_service import RescheduleService
from detailing.utils.time_validation import local_now

from tests.conftest import future_date


@pytest.fixture
async def booked(customer, make_slot, make_booking):
    """A confirmed booking holding a slot, plus a free slot to move to."""
    current = await make_slot(slot_date=future_date(3))
    target = await make_slot(slot_date=future_date(5), start_time=time(14, 0))
    booking = await make_booking(customer, slot=current, status=BookingStatus.CONFIRMED)
    return booking, current, target


class TestRequest:

    async def test_create_request(self, db, customer, booked, sent_emails):
        booking, _, target = booked

        request = await RescheduleService(db).request_reschedule(
            booking.id, customer.id, target.slot_date, target.start_time, "  Working late  "
        )

        assert request.status == RescheduleStatus.PENDING
        assert request.original_date == booking.scheduled_date
        assert request.reason == "Working late"
        assert sent_emails.subjects()

    async def test_only_one_pending(self, db, customer, booked):
        booking, _, target = booked
        service = RescheduleService(db)
        await service.request_reschedule(booking.id, customer.id, target.slot_date, target.start_time, "Busy")

        with pytest.raises(ConflictError) as exc:
            await service.request_reschedule(booking.id, customer.id, target.slot_date, target.start_time, "Busy")
        assert exc.value.code == "REQUEST_PENDING"

    async def test_requested_slot_must_be_free(self, db, customer, booked, make_slot):
        booking, _, _ = booked
        taken = await make_slot(slot_date=future_date(6), is_available=False, booking_reference="L4D-X")
        with pytest.raises(ConflictError) as exc:
            await RescheduleService(db).request_reschedule(
                booking.id, customer.id, taken.slot_date, taken.start_time, "Busy"
            )
        assert exc.value.code == "SLOT_UNAVAILABLE"

    async def test_missing_slot(self, db, customer, booked):
        booking, _, _ = booked
        with pytest.raises(ConflictError):
            await RescheduleService(db).request_reschedule(
                booking.id, customer.id, future_date(9), time(7, 30), "Busy"
            )

    async def test_past_date(self, db, customer, booked):
        booking, _, _ = booked
        with pytest.raises(ValidationError):
            await RescheduleService(db).request_reschedule(
                booking.id, customer.id, local_now().date() - timedelta(days=1), time(10, 0), "Busy"
            )

    async def test_reason_required(self, db, customer, booked):
        booking, _, target = booked
        with pytest.raises(ValidationError):
            await RescheduleService(db).request_reschedule(
                booking.id, customer.id, target.slot_date, target.start_time, "   "
            )

    async def test_completed_booking(self, db, customer, make_booking, slot):
        booking = await make_booking(customer, status=BookingStatus.COMPLETED)
        with pytest.raises(PolicyError) as exc:
            await RescheduleService(db).request_reschedule(
                booking.id, customer.id, slot.slot_date, slot.start_time, "Busy"
            )
        assert exc.value.code == "CANNOT_RESCHEDULE"

    async def test_other_customers_booking(self, db, booked, make_user):
        booking, _, target = booked
        other = await make_user(email="other@example.com")
        with pytest.raises(NotFoundError):
            await RescheduleService(db).request_reschedule(
                booking.id, other.id, target.slot_date, target.start_time, "Busy"
            )


class TestRespond:

    async def test_approve_moves_booking(self, db, customer, admin, booked, sent_emails):
        booking, current, target = booked
        service = RescheduleService(db)
        request = await service.request_reschedule(
            booking.id, customer.id, target.slot_date, target.start_time, "Busy"
        )

        answered = await service.respond(request.id, "approve", admin, admin_response="See you then")

        assert answered.status == RescheduleStatus.APPROVED
        assert answered.responded_by == admin.id

        await db.refresh(booking)
        assert booking.status == BookingStatus.RESCHEDULED
        assert booking.scheduled_date == target.slot_date
        assert booking.scheduled_start_time == target.start_time
        assert booking.time_slot_id == target.id

        await db.refresh(current)
        await db.refresh(target)
        assert current.is_available
        assert not target.is_available
        assert target.booking_reference == booking.booking_reference
        assert sent_emails.to(customer.email)

    async def test_second_response_rejected(self, db, customer, admin, booked):
        booking, _, target = booked
        service = RescheduleService(db)
        request = await service.request_reschedule(
            booking.id, customer.id, target.slot_date, target.start_time, "Busy"
        )
        await service.respond(request.id, "reject", admin, admin_response="Fully booked")

        with pytest.raises(ConflictError) as exc:
            await service.respond(request.id, "approve", admin)
        assert exc.value.code == "ALREADY_PROCESSED"

        await db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED

    async def test_propose_alternative(self, db, customer, admin, booked):
        booking, _, target = booked
        service = RescheduleService(db)
        request = await service.request_reschedule(
            booking.id, customer.id, target.slot_date, target.start_time, "Busy"
        )

        answered = await service.respond(
            request.id, "propose", admin, proposed_date=future_date(8), proposed_time=time(9, 0)
        )

        assert answered.status == RescheduleStatus.REJECTED
        assert answered.admin_response.startswith(
            f"Alternative time proposed: {future_date(8).isoformat()} at 09:00"
        )

    async def test_propose_needs_time(self, db, customer, admin, booked):
        booking, _, target = booked
        service = RescheduleService(db)
        request = await service.request_reschedule(
            booking.id, customer.id, target.slot_date, target.start_time, "Busy"
        )
        with pytest.raises(ValidationError):
            await service.respond(request.id, "propose", admin)

    async def test_unknown_action(self, db, admin):
        with pytest.raises(ValidationError):
            await RescheduleService(db).respond(uuid.uuid4(), "maybe", admin)


class TestAdminReschedule:

    async def test_moves_to_free_slot(self, db, customer, admin, booked, sent_emails):
        booking, current, target = booked
        old_date, old_time = booking.scheduled_date, booking.scheduled_start_time

        moved, returned_date, returned_time = await RescheduleService(db).admin_reschedule(
            booking.id, target.slot_date, target.start_time, admin=admin, reason="Van in for service"
        )

        assert (returned_date, returned_time) == (old_date, old_time)
        assert moved.status == BookingStatus.RESCHEDULED
        assert moved.scheduled_date == target.slot_date
        assert moved.scheduled_start_time == target.start_time
        assert moved.time_slot_id == target.id

        await db.refresh(current)
        await db.refresh(target)
        assert current.is_available
        assert target.booking_reference == booking.booking_reference

        history = (await db.execute(
            select(BookingStatusHistory).where(BookingStatusHistory.booking_id == booking.id)
        )).scalars().all()
        assert len(history) == 1
        assert history[0].to_status == "rescheduled"
        assert history[0].changed_by == admin.id
        assert "Additional reason: Van in for service" in history[0].notes

        email = sent_emails.to(customer.email)[-1]
        assert f"rescheduled to {target.slot_date.isoformat()} at 14:00" in email["text"]

    async def test_time_without_slot_is_left_unlinked(self, db, admin, booked):
        booking, current, _ = booked

        moved, _, _ = await RescheduleService(db).admin_reschedule(
            booking.id, future_date(9), time(16, 0), admin=admin
        )

        assert moved.scheduled_date == future_date(9)
        assert moved.time_slot_id is None
        await db.refresh(current)
        assert current.is_available

    async def test_taken_slot(self, db, admin, booked, make_slot):
        booking, current, _ = booked
        taken = await make_slot(slot_date=future_date(6), is_available=False, booking_reference="L4D-X")

        with pytest.raises(ConflictError) as exc:
            await RescheduleService(db).admin_reschedule(booking.id, taken.slot_date, taken.start_time, admin=admin)
        assert exc.value.code == "SLOT_UNAVAILABLE"

        await db.refresh(booking)
        await db.refresh(current)
        assert booking.time_slot_id == current.id
        assert not current.is_available

    @pytest.mark.parametrize("status", [
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.DECLINED,
    ])
    async def test_finished_bookings_refused(self, db, customer, admin, make_booking, status):
        booking = await make_booking(customer, status=status)
        with pytest.raises(PolicyError) as exc:
            await RescheduleService(db).admin_reschedule(booking.id, future_date(7), time(10, 0), admin=admin)
        assert exc.value.code == "CANNOT_RESCHEDULE"

    async def test_past_time(self, db, admin, booked):
        booking, _, _ = booked
        yesterday = local_now().date() - timedelta(days=1)
        with pytest.raises(ValidationError):
            await RescheduleService(db).admin_reschedule(booking.id, yesterday, time(10, 0), admin=admin)

    async def test_missing_booking(self, db, admin):
        with pytest.raises(NotFoundError):
            await RescheduleService(db).admin_reschedule(uuid.uuid4(), future_date(7), time(10, 0), admin=admin)

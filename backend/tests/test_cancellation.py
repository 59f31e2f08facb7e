"""Tests for the 24-hour cancellation policy."""

from datetime import datetime, timedelta

import pytest

from detailing.exceptions import NotFoundError, PolicyError
from detailing.models.booking import Booking, BookingStatus
from detailing.services.cancellation_service import CancellationService, evaluate_policy
from detailing.utils.time_validation import local_now

NOW = datetime(2025, 6, 10, 9, 0)


def booking_at(hours_ahead: float, status=BookingStatus.CONFIRMED) -> Booking:
    at = NOW + timedelta(hours=hours_ahead)
    return Booking(status=status, scheduled_date=at.date(), scheduled_start_time=at.time())


def schedule_in(hours: float) -> dict:
    at = (local_now() + timedelta(hours=hours)).replace(second=0, microsecond=0)
    return {"scheduled_date": at.date(), "start_time": at.time()}


class TestPolicy:

    def test_outside_notice_window(self):
        policy = evaluate_policy(booking_at(48), NOW)
        assert policy.can_cancel
        assert policy.refund_eligible
        assert not policy.requires_acknowledgement
        assert policy.warning_message is None
        assert policy.hours_until_appointment == 48

    def test_inside_notice_window(self):
        policy = evaluate_policy(booking_at(10), NOW)
        assert policy.can_cancel
        assert not policy.refund_eligible
        assert policy.requires_acknowledgement
        assert policy.warning_message.startswith("This appointment is in 10 hours")

    def test_exactly_24_hours_is_inside(self):
        policy = evaluate_policy(booking_at(24), NOW)
        assert not policy.refund_eligible

    def test_short_notice_warning(self):
        policy = evaluate_policy(booking_at(1.5), NOW)
        assert "less than 2 hours" in policy.warning_message

    def test_already_started(self):
        policy = evaluate_policy(booking_at(-1), NOW)
        assert not policy.can_cancel
        assert policy.hours_until_appointment == 0
        assert not policy.requires_acknowledgement

    @pytest.mark.parametrize("status", [
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.PROCESSING,
    ])
    def test_status_not_cancellable(self, status):
        policy = evaluate_policy(booking_at(72, status), NOW)
        assert not policy.can_cancel
        assert status.value in policy.warning_message


class TestCustomerCancel:

    async def test_full_refund(self, db, customer, slot, make_booking, sent_emails):
        booking = await make_booking(customer, slot=slot, status=BookingStatus.CONFIRMED)

        result = await CancellationService(db).cancel_booking(booking.id, customer.id, "Plans changed")

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.refund_amount == 60.0
        assert result.time_slot_freed
        assert result.email_sent
        assert "full refund" in result.message

        await db.refresh(slot)
        assert slot.is_available

    async def test_failed_email_reported(self, db, customer, make_booking, failing_resend):
        booking = await make_booking(customer, status=BookingStatus.CONFIRMED, **schedule_in(48))

        result = await CancellationService(db).cancel_booking(booking.id, customer.id, "Plans changed")

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.email_sent is False

    async def test_acknowledgement_required(self, db, customer, make_booking):
        booking = await make_booking(customer, status=BookingStatus.CONFIRMED, **schedule_in(6))

        with pytest.raises(PolicyError) as exc:
            await CancellationService(db).cancel_booking(booking.id, customer.id, "Ill")
        assert exc.value.code == "ACKNOWLEDGEMENT_REQUIRED"

        result = await CancellationService(db).cancel_booking(
            booking.id, customer.id, "Ill", acknowledge_no_refund=True
        )
        assert result.refund_amount == 0.0
        assert not result.policy.refund_eligible

    async def test_completed_booking(self, db, customer, make_booking):
        booking = await make_booking(customer, status=BookingStatus.COMPLETED)
        with pytest.raises(PolicyError) as exc:
            await CancellationService(db).cancel_booking(booking.id, customer.id, "Too late")
        assert exc.value.code == "CANNOT_CANCEL"

    async def test_other_customers_booking(self, db, customer, make_user, make_booking):
        other = await make_user(email="other@example.com")
        booking = await make_booking(other)
        with pytest.raises(NotFoundError):
            await CancellationService(db).get_policy(booking.id, customer.id)


class TestAdminCancel:

    async def test_ignores_notice_window(self, db, customer, admin, make_booking):
        booking = await make_booking(customer, status=BookingStatus.CONFIRMED, **schedule_in(3))

        result = await CancellationService(db).admin_cancel(booking.id, admin, "Van broke down", refund_amount=60)

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.refund_amount == 60
        await db.refresh(booking)
        assert "Cancelled by admin@love4detailing.com" in booking.admin_notes

    async def test_completed_booking(self, db, customer, admin, make_booking):
        booking = await make_booking(customer, status=BookingStatus.COMPLETED)
        with pytest.raises(PolicyError):
            await CancellationService(db).admin_cancel(booking.id, admin, "Mistake")

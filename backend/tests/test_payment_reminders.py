"""Tests for the payment deadline sweep and overdue reminders."""

from datetime import datetime, timedelta

import pytest

from detailing.models.booking import BookingStatus, PaymentStatus
from detailing.services.payment_reminder_service import (
    PaymentReminderService,
    get_reminder_subject,
    get_reminder_type,
    should_send_reminder,
    thresholds_crossed,
)


class TestReminderRules:

    @pytest.mark.parametrize("hours, count, expected", [
        (10, 0, False),
        (24, 0, True),
        (30, 1, False),
        (48, 1, True),
        (72, 2, True),
        (100, 3, False),
        (100, 0, True),
    ])
    def test_should_send(self, hours, count, expected):
        assert should_send_reminder(hours, count) is expected

    @pytest.mark.parametrize("hours, expected", [
        (24, "gentle"),
        (47, "gentle"),
        (48, "urgent"),
        (72, "final"),
        (200, "final"),
    ])
    def test_reminder_type(self, hours, expected):
        assert get_reminder_type(hours) == expected

    @pytest.mark.parametrize("hours, expected", [(10, 0), (24, 1), (50, 2), (80, 3)])
    def test_thresholds_crossed(self, hours, expected):
        assert thresholds_crossed(hours) == expected

    def test_subject(self):
        assert get_reminder_subject("final", "L4D-1").startswith("Final Notice: Payment Overdue - Booking L4D-1")
        assert get_reminder_subject("unknown", "L4D-1").startswith("Payment Reminder")


class TestDeadlineSweep:

    async def test_nothing_expired(self, db):
        result = await PaymentReminderService(db).check_payment_deadlines()
        assert result.success
        assert result.processed == []
        assert result.message == "No expired payment deadlines found"

    async def test_marks_expired_as_failed(self, db, customer, slot, make_booking, sent_emails):
        expired = await make_booking(
            customer, slot=slot, payment_deadline=datetime.utcnow() - timedelta(hours=1)
        )
        current = await make_booking(customer)

        result = await PaymentReminderService(db).check_payment_deadlines()

        assert result.processed == [expired.booking_reference]
        await db.refresh(expired)
        await db.refresh(current)
        assert expired.status == BookingStatus.PAYMENT_FAILED
        assert expired.payment_status == PaymentStatus.FAILED
        assert "deadline exceeded" in expired.admin_notes
        assert current.status == BookingStatus.PENDING

        # The slot stays held so a late payment can still confirm
        await db.refresh(slot)
        assert not slot.is_available

        assert sent_emails.to(customer.email)

    async def test_repeat_run_is_noop(self, db, customer, make_booking):
        await make_booking(customer, payment_deadline=datetime.utcnow() - timedelta(hours=1))
        service = PaymentReminderService(db)
        await service.check_payment_deadlines()
        second = await service.check_payment_deadlines()
        assert second.processed == []

    async def test_paid_booking_ignored(self, db, customer, make_booking):
        await make_booking(
            customer,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PAID,
            payment_deadline=datetime.utcnow() - timedelta(hours=1),
        )
        result = await PaymentReminderService(db).check_payment_deadlines()
        assert result.processed == []


class TestReminders:

    async def test_overdue_listing(self, db, customer, make_booking):
        now = datetime.utcnow()
        old = await make_booking(
            customer, status=BookingStatus.PAYMENT_FAILED, created_at=now - timedelta(hours=50)
        )
        await make_booking(customer, status=BookingStatus.PAYMENT_FAILED, created_at=now - timedelta(hours=10))
        await make_booking(customer, status=BookingStatus.CONFIRMED, created_at=now - timedelta(hours=80))

        overdue = await PaymentReminderService(db).get_overdue_payments(now)

        assert [p.booking_reference for p in overdue] == [old.booking_reference]
        assert overdue[0].hours_overdue == 50
        assert overdue[0].customer_email == customer.email

    async def test_sends_and_counts(self, db, customer, make_booking, sent_emails):
        now = datetime.utcnow()
        booking = await make_booking(
            customer, status=BookingStatus.PROCESSING, created_at=now - timedelta(hours=50)
        )

        service = PaymentReminderService(db)
        first = await service.process_payment_reminders(now)
        assert first.sent == 1
        assert first.processed == 1

        await db.refresh(booking)
        # The 24h and 48h thresholds are both covered by the one reminder
        assert booking.payment_reminder_count == 2
        assert booking.last_payment_reminder_at == now
        assert sent_emails.subjects()[-1].startswith("Urgent: Payment Required")

        second = await service.process_payment_reminders(now + timedelta(minutes=5))
        assert second.sent == 0

        # 72h threshold
        third = await service.process_payment_reminders(now + timedelta(hours=23))
        assert third.sent == 1
        await db.refresh(booking)
        assert booking.payment_reminder_count == 3
        assert sent_emails.subjects()[-1].startswith("Final Notice")

    async def test_long_overdue_gets_one_final_notice(self, db, customer, make_booking, sent_emails):
        now = datetime.utcnow()
        booking = await make_booking(
            customer, status=BookingStatus.PAYMENT_FAILED, created_at=now - timedelta(hours=80)
        )
        service = PaymentReminderService(db)

        runs = [
            await service.process_payment_reminders(now + timedelta(minutes=offset))
            for offset in (0, 5, 10)
        ]

        assert [r.sent for r in runs] == [1, 0, 0]
        final_notices = [s for s in sent_emails.subjects() if s.startswith("Final Notice")]
        assert final_notices == [
            f"Final Notice: Payment Overdue - Booking {booking.booking_reference} | Love 4 Detailing"
        ]

    async def test_stops_at_maximum(self, db, customer, make_booking):
        now = datetime.utcnow()
        await make_booking(
            customer,
            status=BookingStatus.PAYMENT_FAILED,
            created_at=now - timedelta(hours=200),
            payment_reminder_count=3,
        )
        result = await PaymentReminderService(db).process_payment_reminders(now)
        assert result.sent == 0
        assert result.success

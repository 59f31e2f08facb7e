"""Tests for email delivery tracking, retries and templates."""

from datetime import datetime, timedelta

from detailing.integrations.resend_client import ResendClient
from detailing.models.notification import EmailStatus
from detailing.services import email_templates as templates
from detailing.services.email_service import EmailService

# Captured before the autouse fixture swaps it out
REAL_SEND_EMAIL = ResendClient.send_email


class FlakyClient:
    """Fails a set number of times, then succeeds."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def send_email(self, to, subject, html, text=None, reply_to=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("Resend is down")
        return {"id": f"re_{self.calls}"}


class TestDelivery:

    async def test_sent_is_tracked(self, db):
        notification = await EmailService(db, FlakyClient(0)).send(
            "custom", "jane@example.com", "Hello", "<p>Hi</p>", "Hi"
        )
        assert notification.status == EmailStatus.SENT
        assert notification.external_id == "re_1"
        assert notification.sent_at is not None
        assert notification.reply_to == "info@love4detailing.com"

    async def test_failure_is_recorded_not_raised(self, db):
        notification = await EmailService(db, FlakyClient(1)).send(
            "custom", "jane@example.com", "Hello", "<p>Hi</p>"
        )
        assert notification.status == EmailStatus.FAILED
        assert notification.error_message == "Resend is down"
        assert notification.next_retry_at > datetime.utcnow()

    async def test_retry_succeeds(self, db):
        client = FlakyClient(1)
        service = EmailService(db, client)
        notification = await service.send("custom", "jane@example.com", "Hello", "<p>Hi</p>")

        notification.next_retry_at = datetime.utcnow() - timedelta(minutes=1)
        await db.commit()
        due = await service.get_failed_for_retry()
        assert [n.id for n in due] == [notification.id]

        retried = await service.retry(notification.id)
        assert retried.status == EmailStatus.SENT
        assert retried.retry_count == 1
        assert await service.get_failed_for_retry() == []

    async def test_gives_up_after_max_retries(self, db):
        service = EmailService(db, FlakyClient(100))
        notification = await service.send("custom", "jane@example.com", "Hello", "<p>Hi</p>")

        for _ in range(notification.max_retries):
            await service.retry(notification.id)

        assert notification.status == EmailStatus.FAILED
        assert notification.retry_count == notification.max_retries
        assert notification.next_retry_at is None

    async def test_dev_mode_without_api_key(self):
        result = await REAL_SEND_EMAIL(ResendClient(), "jane@example.com", "Hello", "<p>Hi</p>")
        assert result == {"id": "dev_mode"}


class TestTemplates:

    def test_custom_escapes_html(self):
        subject, html, text = templates.custom("Jane <b>", "Your visit", "Line one\n\n<script>x</script>")
        assert subject == "Your visit"
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "Jane &lt;b&gt;" in html
        assert text.startswith("Hi Jane <b>,")

    def test_password_reset_contains_link(self):
        _, html, text = templates.password_reset("Jane", "https://example.com/reset?token=abc")
        assert "https://example.com/reset?token=abc" in html
        assert "https://example.com/reset?token=abc" in text


class TestCustomEmailEndpoint:

    async def test_admin_emails_customer(self, client, admin_headers, customer, make_booking, sent_emails):
        booking = await make_booking(customer)
        response = await client.post(
            f"/api/v1/admin/bookings/{booking.id}/email",
            headers=admin_headers,
            json={"subject": "Running late", "message": "We will be 20 minutes late."},
        )
        assert response.status_code == 200
        assert response.json()["sent"] is True
        assert sent_emails.to(customer.email)[-1]["subject"] == "Running late"

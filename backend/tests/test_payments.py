"""Tests for PayPal webhooks and payment links."""

import base64
import json

import httpx
import pytest

from detailing.integrations.paypal_client import PAYPAL_LIVE_URL, PAYPAL_SANDBOX_URL, PayPalClient
from detailing.models.booking import BookingStatus, PaymentMethod, PaymentStatus
from detailing.services.payment_service import (
    extract_references,
    generate_payment_instructions,
    generate_payment_link,
)
from detailing.config import get_settings

settings = get_settings()

WEBHOOK_URL = "/api/v1/webhooks/paypal"


def capture_event(reference: str, event_type: str = "PAYMENT.CAPTURE.COMPLETED") -> dict:
    return {
        "id": "WH-1",
        "event_type": event_type,
        "resource": {"id": "CAPTURE-123", "invoice_id": reference},
    }


class TestPaymentLinks:

    def test_link_format(self, monkeypatch):
        monkeypatch.setattr(settings, "PAYPAL_RETURN_URL", "")
        monkeypatch.setattr(settings, "PAYPAL_CANCEL_URL", "")
        link = generate_payment_link(45, "L4D-1")
        assert link == f"https://paypal.me/{settings.PAYPAL_ME_USERNAME}/45.00GBP"

    def test_return_urls_appended(self, monkeypatch):
        monkeypatch.setattr(settings, "PAYPAL_RETURN_URL", "https://example.com/paid")
        monkeypatch.setattr(settings, "PAYPAL_CANCEL_URL", "")
        link = generate_payment_link(45, "L4D-1")
        assert "?return_url=" in link
        assert "L4D-1" in link

    def test_instructions(self):
        instructions = generate_payment_instructions(59.999, "L4D-1")
        assert instructions.amount == 60.0
        assert instructions.reference == "L4D-1"
        assert any("L4D-1" in line for line in instructions.instructions)


class TestExtractReferences:

    def test_invoice_id(self):
        assert extract_references(capture_event("L4D-1")) == ("L4D-1", "CAPTURE-123")

    def test_order_purchase_units(self):
        event = {"resource": {"id": "ORDER-1", "purchase_units": [{"reference_id": "L4D-2"}]}}
        assert extract_references(event) == ("L4D-2", "ORDER-1")

    def test_missing(self):
        assert extract_references({}) == (None, None)


class TestWebhook:

    async def test_skipped_when_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "PAYPAL_CLIENT_ID", "")
        response = await client.post(WEBHOOK_URL, json=capture_event("L4D-1"))
        assert response.status_code == 200
        assert response.json()["skipped"] is True

    async def test_invalid_json(self, client, paypal):
        response = await client.post(
            WEBHOOK_URL, content=b"not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_JSON"

    async def test_bad_signature(self, client, paypal, customer, make_booking):
        booking = await make_booking(customer)
        paypal["valid"] = False

        response = await client.post(WEBHOOK_URL, json=capture_event(booking.booking_reference))

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_SIGNATURE"
        assert paypal["calls"] == 1

    async def test_ignored_event(self, client, paypal):
        response = await client.post(
            WEBHOOK_URL, json=capture_event("L4D-1", event_type="PAYMENT.CAPTURE.REFUNDED")
        )
        body = response.json()
        assert response.status_code == 200
        assert body["ignored"] is True
        assert body["event_type"] == "PAYMENT.CAPTURE.REFUNDED"

    async def test_unknown_booking(self, client, paypal):
        response = await client.post(WEBHOOK_URL, json=capture_event("L4D-NOPE"))
        assert response.json()["reason"] == "not_found"

    async def test_payment_confirms_booking(self, db, client, paypal, customer, make_booking, sent_emails):
        booking = await make_booking(customer)

        response = await client.post(WEBHOOK_URL, json=capture_event(booking.booking_reference))

        assert response.status_code == 200
        assert response.json()["processed"] is True

        await db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.payment_method == PaymentMethod.PAYPAL
        assert booking.payment_reference == "CAPTURE-123"
        assert sent_emails.to(customer.email)
        assert sent_emails.to(settings.ADMIN_EMAIL)

    async def test_redelivery_is_idempotent(self, db, client, paypal, customer, make_booking, sent_emails):
        booking = await make_booking(customer)
        payload = capture_event(booking.booking_reference)

        await client.post(WEBHOOK_URL, json=payload)
        emails_after_first = len(sent_emails)
        response = await client.post(WEBHOOK_URL, json=payload)

        assert response.status_code == 200
        assert response.json()["already_paid"] is True
        assert len(sent_emails) == emails_after_first

    async def test_payment_after_deadline_failure(self, db, client, paypal, customer, make_booking):
        booking = await make_booking(
            customer, status=BookingStatus.PAYMENT_FAILED, payment_status=PaymentStatus.FAILED
        )
        await client.post(WEBHOOK_URL, json=capture_event(booking.booking_reference))

        await db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID


SIGNED_HEADERS = {
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-cert-url": "https://api.paypal.com/cert.pem",
    "paypal-transmission-id": "T-1",
    "paypal-transmission-sig": "sig",
    "paypal-transmission-time": "2024-06-01T10:00:00Z",
}


class FakePayPal:
    """Answers the OAuth and verify-signature endpoints and records requests."""

    def __init__(self, verify_status: int = 200, verification_status: str = "SUCCESS", token_status: int = 200):
        self.verify_status = verify_status
        self.verification_status = verification_status
        self.token_status = token_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/oauth2/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": "tok-1"})
        if request.url.path == "/v1/notifications/verify-webhook-signature":
            if self.verify_status != 200:
                return httpx.Response(self.verify_status, json={"name": "VALIDATION_ERROR"})
            return httpx.Response(200, json={"verification_status": self.verification_status})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def paypal_settings(monkeypatch):
    monkeypatch.setattr(settings, "PAYPAL_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "PAYPAL_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(settings, "PAYPAL_WEBHOOK_ID", "WH-ID")
    monkeypatch.setattr(settings, "PAYPAL_ENVIRONMENT", "sandbox")


class TestPayPalClient:

    async def test_missing_header_skips_paypal(self, paypal_settings):
        fake = FakePayPal()
        headers = {k: v for k, v in SIGNED_HEADERS.items() if k != "paypal-transmission-sig"}

        assert await PayPalClient(transport=fake.transport).verify_webhook_signature(headers, {}) is False
        assert fake.requests == []

    async def test_success(self, paypal_settings):
        fake = FakePayPal()
        event = capture_event("L4D-1")

        valid = await PayPalClient(transport=fake.transport).verify_webhook_signature(SIGNED_HEADERS, event)

        assert valid is True
        token_request, verify_request = fake.requests
        assert token_request.url.host == httpx.URL(PAYPAL_SANDBOX_URL).host
        expected_auth = base64.b64encode(b"client-id:client-secret").decode()
        assert token_request.headers["authorization"] == f"Basic {expected_auth}"
        assert token_request.content == b"grant_type=client_credentials"

        assert verify_request.headers["authorization"] == "Bearer tok-1"
        payload = json.loads(verify_request.content)
        assert payload["webhook_id"] == "WH-ID"
        assert payload["webhook_event"] == event
        assert payload["transmission_id"] == "T-1"
        assert payload["auth_algo"] == "SHA256withRSA"

    async def test_failed_verification(self, paypal_settings):
        fake = FakePayPal(verification_status="FAILURE")
        client = PayPalClient(transport=fake.transport)
        assert await client.verify_webhook_signature(SIGNED_HEADERS, {}) is False

    async def test_rejected_request_is_not_valid(self, paypal_settings):
        fake = FakePayPal(verify_status=400)
        client = PayPalClient(transport=fake.transport)
        assert await client.verify_webhook_signature(SIGNED_HEADERS, {}) is False

    async def test_token_error_raises(self, paypal_settings):
        fake = FakePayPal(token_status=401)
        with pytest.raises(httpx.HTTPStatusError):
            await PayPalClient(transport=fake.transport).verify_webhook_signature(SIGNED_HEADERS, {})

    def test_base_url(self, paypal_settings, monkeypatch):
        assert PayPalClient().base_url == PAYPAL_SANDBOX_URL
        monkeypatch.setattr(settings, "PAYPAL_ENVIRONMENT", "live")
        assert PayPalClient().base_url == PAYPAL_LIVE_URL

    async def test_rejected_verification_returns_401(
        self, db, client, paypal_settings, monkeypatch, customer, make_booking
    ):
        booking = await make_booking(customer)
        fake = FakePayPal(verify_status=400)
        monkeypatch.setattr(
            PayPalClient,
            "_client",
            lambda self: httpx.AsyncClient(base_url=self.base_url, transport=fake.transport),
        )

        response = await client.post(
            WEBHOOK_URL, json=capture_event(booking.booking_reference), headers=SIGNED_HEADERS
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_SIGNATURE"
        await db.refresh(booking)
        assert booking.payment_status == PaymentStatus.PENDING

"""Payment service - PayPal.me links and PayPal webhook handling."""

import json
import logging
from datetime import datetime, timedelta
from typing import Mapping, Optional, Tuple
from urllib.parse import urlencode
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.exceptions import AuthenticationError, ValidationError
from detailing.integrations.paypal_client import PayPalClient
from detailing.models.booking import (
    Booking, BookingStatus, BookingStatusHistory, PaymentMethod, PaymentStatus,
)
from detailing.schemas.booking import PaymentInstructions
from detailing.schemas.payment import WebhookResult
from detailing.services.email_service import EmailService
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

PAYPAL_ME_URL = "https://paypal.me"

ACTIONABLE_EVENTS = ("PAYMENT.CAPTURE.COMPLETED", "CHECKOUT.ORDER.APPROVED")


def generate_payment_link(amount: float, booking_reference: str) -> str:
    """
    PayPal.me link for the amount, e.g. https://paypal.me/love4detailing/45.00GBP.
    Return/cancel URLs ride along as query parameters for our own tracking.
    """
    link = f"{PAYPAL_ME_URL}/{settings.PAYPAL_ME_USERNAME}/{float(amount):.2f}{settings.PAYMENT_CURRENCY}"

    params = {}
    if settings.PAYPAL_RETURN_URL:
        params["return_url"] = f"{settings.PAYPAL_RETURN_URL}?ref={booking_reference}&status=success"
    if settings.PAYPAL_CANCEL_URL:
        params["cancel_url"] = f"{settings.PAYPAL_CANCEL_URL}?ref={booking_reference}"
    if params:
        link += "?" + urlencode(params)
    return link


def generate_payment_instructions(
    amount: float, booking_reference: str, deadline: Optional[datetime] = None
) -> PaymentInstructions:
    deadline = deadline or datetime.utcnow() + timedelta(hours=settings.PAYMENT_DEADLINE_HOURS)
    return PaymentInstructions(
        payment_link=generate_payment_link(amount, booking_reference),
        amount=round(float(amount), 2),
        currency=settings.PAYMENT_CURRENCY,
        reference=booking_reference,
        deadline=deadline,
        instructions=[
            "Click the PayPal link to pay",
            "Log in to your PayPal account or pay as a guest",
            f"Enter booking reference: {booking_reference}",
            f"Complete payment of £{float(amount):.2f}",
            f"Pay within {settings.PAYMENT_DEADLINE_HOURS} hours or your booking may be cancelled",
        ],
    )


def extract_references(event: dict) -> Tuple[Optional[str], Optional[str]]:
    """(booking reference, PayPal payment id) from a webhook event."""
    resource = event.get("resource") or {}
    booking_reference = resource.get("invoice_id") or resource.get("custom_id")

    if not booking_reference:
        # Orders carry the reference on their purchase units
        for unit in resource.get("purchase_units") or []:
            booking_reference = unit.get("invoice_id") or unit.get("custom_id") or unit.get("reference_id")
            if booking_reference:
                break

    return booking_reference, resource.get("id")


class PaymentService:
    """Service for online payments."""

    def __init__(
        self,
        db: AsyncSession,
        paypal: Optional[PayPalClient] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.paypal = paypal or PayPalClient()
        self.email_service = email_service or EmailService(db)

    async def handle_webhook(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookResult:
        """Verify and apply a PayPal webhook delivery."""
        if not self.paypal.is_configured:
            # Accept and drop until credentials are configured, so PayPal stops retrying
            logger.warning("PayPal webhook received but PayPal is not configured")
            return WebhookResult(skipped=True)

        try:
            event = json.loads(raw_body)
        except (ValueError, TypeError):
            raise ValidationError("Invalid JSON", code="INVALID_JSON")
        if not isinstance(event, dict):
            raise ValidationError("Invalid JSON", code="INVALID_JSON")

        if not await self.paypal.verify_webhook_signature(headers, event):
            raise AuthenticationError("Invalid webhook signature", code="INVALID_SIGNATURE")

        event_type = event.get("event_type")
        if event_type not in ACTIONABLE_EVENTS:
            logger.info("Ignoring PayPal event %s", event_type)
            return WebhookResult(ignored=True, event_type=event_type)

        booking_reference, payment_reference = extract_references(event)
        if not booking_reference:
            logger.warning("PayPal event %s has no booking reference", event.get("id"))
            return WebhookResult(ignored=True, reason="missing_reference", event_type=event_type)

        result = await self.mark_paid_by_reference(booking_reference, payment_reference)
        result.event_type = event_type
        return result

    async def mark_paid_by_reference(
        self, booking_reference: str, payment_reference: Optional[str]
    ) -> WebhookResult:
        result = await self.db.execute(
            select(Booking).where(Booking.booking_reference == booking_reference)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            logger.warning("PayPal payment for unknown booking %s", booking_reference)
            return WebhookResult(ignored=True, reason="not_found", booking_reference=booking_reference)

        if booking.payment_status == PaymentStatus.PAID:
            return WebhookResult(already_paid=True, booking_reference=booking_reference)

        previous_status = booking.status
        booking.payment_status = PaymentStatus.PAID
        booking.payment_method = PaymentMethod.PAYPAL
        booking.payment_reference = payment_reference or booking.booking_reference
        booking.status = BookingStatus.CONFIRMED
        booking.confirmed_at = booking.confirmed_at or datetime.utcnow()

        if previous_status != BookingStatus.CONFIRMED:
            self.db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=previous_status.value,
                to_status=BookingStatus.CONFIRMED.value,
                changed_by=None,
                reason="Payment confirmed via PayPal webhook",
            ))

        await self.db.commit()
        logger.info("Booking %s paid via PayPal (%s)", booking_reference, booking.payment_reference)

        customer = booking.customer
        if customer and customer.email:
            try:
                await self.email_service.send_payment_confirmation(booking, customer)
                await self.email_service.send_admin_payment_received(booking, customer)
            except Exception:
                logger.exception("Failed to send payment emails for %s", booking_reference)

        return WebhookResult(processed=True, booking_reference=booking_reference)

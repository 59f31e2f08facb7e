"""Webhook endpoints for external services (PayPal)."""

import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.schemas.payment import WebhookResult
from detailing.services.payment_service import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/paypal", response_model=WebhookResult)
async def paypal_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    PayPal payment notifications.
    The raw body is verified with PayPal before anything is trusted.
    Repeated deliveries for an already paid booking are acknowledged without changes.
    """
    raw_body = await request.body()
    result = await PaymentService(db).handle_webhook(request.headers, raw_body)
    logger.info(
        "PayPal webhook %s: processed=%s ignored=%s reason=%s",
        result.event_type, result.processed, result.ignored, result.reason,
    )
    return result

"""Resend integration for transactional email."""

import asyncio
import logging
from typing import Optional

import resend
from tenacity import retry, stop_after_attempt, wait_exponential

from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ResendClient:
    """Client for the Resend email API."""

    def __init__(self):
        self.enabled = bool(settings.RESEND_API_KEY)
        if self.enabled:
            resend.api_key = settings.RESEND_API_KEY
        self.sender = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> dict:
        """
        Send one email.
        Returns dict with 'id'.
        """
        if not self.enabled:
            # Dev mode - just log
            logger.info("[DEV] Email to %s: %s", to, subject)
            return {"id": "dev_mode"}

        params = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text
        if reply_to:
            params["reply_to"] = reply_to

        # Resend SDK is synchronous, run in executor
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: resend.Emails.send(params))

        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info("Email sent via Resend to %s (id=%s)", to, email_id)
        return {"id": email_id}

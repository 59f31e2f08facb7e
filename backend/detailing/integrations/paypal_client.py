"""PayPal REST integration for webhook signature verification."""

import logging
from typing import Mapping, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"
PAYPAL_LIVE_URL = "https://api-m.paypal.com"

# Transmission headers PayPal attaches to every webhook delivery
SIGNATURE_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


class PayPalClient:
    """Client for the PayPal REST API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = settings.PAYPAL_CLIENT_ID
        self.client_secret = settings.PAYPAL_CLIENT_SECRET
        self.webhook_id = settings.PAYPAL_WEBHOOK_ID
        self.base_url = PAYPAL_LIVE_URL if settings.PAYPAL_ENVIRONMENT == "live" else PAYPAL_SANDBOX_URL
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=15.0, transport=self._transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.webhook_id)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def get_access_token(self) -> str:
        """OAuth2 client-credentials token."""
        async with self._client() as client:
            response = await client.post(
                "/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            return response.json()["access_token"]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def verify_webhook_signature(self, headers: Mapping[str, str], event: dict) -> bool:
        """
        Ask PayPal whether a webhook delivery is genuine.
        Returns False when a transmission header is missing or PayPal
        rejects the verification request.
        """
        payload = {}
        for field, header in SIGNATURE_HEADERS.items():
            value = headers.get(header)
            if not value:
                logger.warning("PayPal webhook missing header %s", header)
                return False
            payload[field] = value
        payload["webhook_id"] = self.webhook_id
        payload["webhook_event"] = event

        token = await self.get_access_token()

        async with self._client() as client:
            response = await client.post(
                "/v1/notifications/verify-webhook-signature",
                json=payload,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )
            if response.is_error:
                logger.warning(
                    "PayPal signature verification returned HTTP %s", response.status_code
                )
                return False
            status = response.json().get("verification_status")

        if status != "SUCCESS":
            logger.warning("PayPal webhook verification failed: %s", status)
        return status == "SUCCESS"

"""postcodes.io lookup for UK postcode coordinates."""

import logging
from typing import Optional, Tuple

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class PostcodesClient:
    """Client for the public postcodes.io API."""

    def __init__(self):
        self.base_url = settings.POSTCODES_IO_URL
        self.enabled = settings.POSTCODES_IO_ENABLED

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, postcode: str) -> Optional[dict]:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=5.0) as client:
            response = await client.get(f"/postcodes/{postcode}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json().get("result")

    async def get_coordinates(self, postcode: str) -> Optional[Tuple[float, float]]:
        """(latitude, longitude) or None if unknown or the lookup fails."""
        if not self.enabled:
            return None
        try:
            result = await self._get(postcode)
        except httpx.HTTPError as e:
            logger.warning("postcodes.io lookup failed for %s: %s", postcode, e)
            return None
        if not result or result.get("latitude") is None:
            return None
        return float(result["latitude"]), float(result["longitude"])

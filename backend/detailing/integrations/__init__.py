"""External service integrations."""

from detailing.integrations.resend_client import ResendClient
from detailing.integrations.paypal_client import PayPalClient
from detailing.integrations.postcodes_client import PostcodesClient

__all__ = ["ResendClient", "PayPalClient", "PostcodesClient"]

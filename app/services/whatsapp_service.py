"""
Outbound WhatsApp messaging through Twilio.

Delivery is best-effort: the orchestrator logs send failures and never rolls
back persisted conversation state because of them. Retries, if any, are the
provider client's business.
"""

import logging

import requests
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from app.core.config import settings
from app.core.logging_config import mask_phone

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


class MessageDeliveryError(Exception):
    """The provider rejected or failed to accept an outbound message."""
    pass


def to_whatsapp_address(phone: str) -> str:
    return phone if phone.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{phone}"


class WhatsAppClient:
    """Send WhatsApp messages with one organization's Twilio credentials."""

    def __init__(self, credentials):
        self.credentials = credentials
        try:
            self._client = Client(
                credentials.twilio_account_sid,
                credentials.twilio_auth_token,
                http_client=TwilioHttpClient(timeout=settings.MEDIA_DOWNLOAD_TIMEOUT_SECONDS),
            )
        except TwilioException as e:
            raise MessageDeliveryError(f"WhatsApp client unavailable: {e}") from e

    def send_message(self, to: str, body: str) -> str:
        """
        Send a text message.

        Args:
            to: Recipient phone number (with or without the whatsapp: prefix)
            body: Message text

        Returns:
            Provider message id

        Raises:
            MessageDeliveryError: provider error
        """
        try:
            message = self._client.messages.create(
                from_=to_whatsapp_address(self.credentials.twilio_whatsapp_number),
                to=to_whatsapp_address(to),
                body=body,
            )
        except TwilioException as e:
            raise MessageDeliveryError(f"WhatsApp send failed: {e}") from e
        except requests.RequestException as e:
            # Twilio's HTTP client lets transport errors through unwrapped
            raise MessageDeliveryError(f"WhatsApp send failed: {e}") from e

        logger.info(f"WhatsApp message {message.sid} sent to {mask_phone(to)}")
        return message.sid

"""
Tests for outbound WhatsApp delivery through the Twilio client.
"""

import pytest
import requests
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.http.response import Response

from app.services.credentials import ProviderCredentials
from app.services.whatsapp_service import MessageDeliveryError, WhatsAppClient, to_whatsapp_address

CREDENTIALS = ProviderCredentials(
    twilio_account_sid="AC00000000000000000000000000000000",
    twilio_auth_token="secret",
    twilio_whatsapp_number="+14155238886",
)


class TestWhatsAppClient:
    def test_address_prefix(self):
        assert to_whatsapp_address("+33612345678") == "whatsapp:+33612345678"
        assert to_whatsapp_address("whatsapp:+33612345678") == "whatsapp:+33612345678"

    def test_network_error_becomes_delivery_error(self, monkeypatch):
        def unreachable(self, *args, **kwargs):
            raise requests.ConnectionError("network down")

        monkeypatch.setattr(TwilioHttpClient, "request", unreachable)

        with pytest.raises(MessageDeliveryError):
            WhatsAppClient(CREDENTIALS).send_message("+33612345678", "Bonjour")

    def test_timeout_becomes_delivery_error(self, monkeypatch):
        def slow(self, *args, **kwargs):
            raise requests.Timeout("read timed out")

        monkeypatch.setattr(TwilioHttpClient, "request", slow)

        with pytest.raises(MessageDeliveryError):
            WhatsAppClient(CREDENTIALS).send_message("+33612345678", "Bonjour")

    def test_provider_rejection_becomes_delivery_error(self, monkeypatch):
        def rejected(self, *args, **kwargs):
            return Response(400, '{"code": 21211, "message": "Invalid To number", "status": 400}')

        monkeypatch.setattr(TwilioHttpClient, "request", rejected)

        with pytest.raises(MessageDeliveryError) as excinfo:
            WhatsAppClient(CREDENTIALS).send_message("+33612345678", "Bonjour")
        assert isinstance(excinfo.value.__cause__, TwilioRestException)

from __future__ import annotations

import logging

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from domain.exceptions import DeliveryError, FetchError

logger = logging.getLogger(__name__)

DEFAULT_FROM_NUMBER = "+14155238886"


class TwilioWhatsAppSender:
    """Sends WhatsApp messages through Twilio's Messages API."""

    def __init__(self, client: Client, from_number: str = DEFAULT_FROM_NUMBER) -> None:
        self._client = client
        self._from = f"whatsapp:{from_number}"

    def send(self, recipient_id: str, text: str) -> None:
        to = recipient_id if recipient_id.startswith("+") else f"+{recipient_id}"
        try:
            message = self._client.messages.create(body=text, from_=self._from, to=f"whatsapp:{to}")
        except (TwilioException, requests.RequestException) as exc:
            raise DeliveryError(f"Could not deliver WhatsApp message to {recipient_id}: {exc}") from exc
        logger.debug("WhatsApp message %s sent to %s", message.sid, recipient_id)


class TwilioMediaFetcher:
    """
    Downloads media referenced by a Twilio webhook.

    Twilio media URLs require HTTP basic auth with the account credentials.
    """

    def __init__(self, account_sid: str, auth_token: str, timeout: float = 30.0) -> None:
        self._auth = (account_sid, auth_token)
        self._timeout = timeout

    def fetch_bytes(self, ref: str) -> bytes:
        try:
            response = requests.get(ref, auth=self._auth, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Could not download {ref}: {exc}") from exc
        return response.content

"""WhatsApp notifications through the Twilio REST API."""

from __future__ import annotations

import logging

import httpx

from .base import Notifier

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


class WhatsAppNotifier(Notifier):
    """Sends WhatsApp messages via Twilio. The target is a phone number."""

    name = "whatsapp"

    def __init__(
        self,
        account_sid: str = "",
        auth_token: str = "",
        from_number: str = "",
        *,
        base_url: str = TWILIO_API_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send_notification(self, target: str, subject: str | None, body: str) -> bool:
        if not self.is_configured:
            logger.info("No WhatsApp configured. Would send to %s: %s", target, subject or body)
            return False

        text = f"{subject}\n\n{body}" if subject else body
        url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    data={
                        "To": f"whatsapp:{target}",
                        "From": f"whatsapp:{self.from_number}",
                        "Body": text,
                    },
                )
                response.raise_for_status()
            return True
        except httpx.HTTPStatusError as e:
            logger.error("Twilio API error: %s %s", e.response.status_code, e.response.text)
            return False
        except httpx.HTTPError as e:
            logger.error("Failed to send WhatsApp message: %s", e)
            return False

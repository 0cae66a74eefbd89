"""Slack notifications through an incoming webhook."""

from __future__ import annotations

import logging

import httpx

from .base import Notifier

logger = logging.getLogger(__name__)


class SlackNotifier(Notifier):
    """Posts to a Slack incoming webhook. The target is the webhook URL."""

    name = "slack"

    def __init__(
        self,
        default_webhook_url: str = "",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.default_webhook_url = default_webhook_url
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.default_webhook_url)

    async def send_notification(self, target: str, subject: str | None, body: str) -> bool:
        url = target or self.default_webhook_url
        if not url:
            logger.info("No Slack webhook configured. Would send: %s", subject or body)
            return False

        text = f"*{subject}*\n\n{body}" if subject else body
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json={"text": text})
                response.raise_for_status()
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                "Slack webhook error: %s %s", e.response.status_code, e.response.text
            )
            return False
        except httpx.HTTPError as e:
            logger.error("Failed to send Slack message: %s", e)
            return False

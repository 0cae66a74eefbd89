"""NotificationHub - fans a message out to every configured transport.

Delivery runs in background tasks so callers (the scheduler tick, process
event handlers) never wait on SMTP or HTTP.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .base import Notifier
from .mail import EmailNotifier
from .slack import SlackNotifier
from .whatsapp import WhatsAppNotifier

if TYPE_CHECKING:
    from ..config import ForemanConfig

logger = logging.getLogger(__name__)


@dataclass
class NotificationTargets:
    email: str | None = None
    whatsapp_phone: str | None = None
    slack_webhook: str | None = None


class NotificationHub:
    """Dispatches notifications to email, WhatsApp and Slack."""

    def __init__(
        self,
        email: Notifier | None = None,
        whatsapp: Notifier | None = None,
        slack: Notifier | None = None,
    ):
        self.email = email
        self.whatsapp = whatsapp
        self.slack = slack
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(cls, config: ForemanConfig) -> NotificationHub:
        return cls(
            email=EmailNotifier(
                config.smtp_host,
                config.smtp_port,
                secure=config.smtp_secure,
                user=config.smtp_user,
                password=config.smtp_password,
                sender=config.smtp_from,
            ),
            whatsapp=WhatsAppNotifier(
                config.twilio_account_sid,
                config.twilio_auth_token,
                config.twilio_whatsapp_from,
            ),
            slack=SlackNotifier(config.slack_webhook_url),
        )

    def deliveries(
        self, targets: NotificationTargets
    ) -> list[tuple[Notifier, str]]:
        """(notifier, target) pairs a message to these targets would go to."""
        pairs: list[tuple[Notifier, str]] = []
        if targets.email and self.email is not None:
            pairs.append((self.email, targets.email))
        if targets.whatsapp_phone and self.whatsapp is not None:
            pairs.append((self.whatsapp, targets.whatsapp_phone))
        if self.slack is not None and (targets.slack_webhook or self.slack.is_configured):
            pairs.append((self.slack, targets.slack_webhook or ""))
        return pairs

    def dispatch(
        self, targets: NotificationTargets, subject: str, body: str
    ) -> asyncio.Task[None] | None:
        """Send in the background. Returns the delivery task, if any."""
        pairs = self.deliveries(targets)
        if not pairs:
            logger.debug("No notification targets for: %s", subject)
            return None

        task = asyncio.create_task(self._deliver(pairs, subject, body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(
        self, pairs: list[tuple[Notifier, str]], subject: str, body: str
    ) -> None:
        for notifier, target in pairs:
            try:
                ok = await notifier.send_notification(target, subject, body)
            except Exception:
                logger.exception("%s notifier raised", notifier.name)
                continue
            if not ok:
                logger.warning("%s notification not delivered: %s", notifier.name, subject)

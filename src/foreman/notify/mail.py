"""Email notifications over SMTP."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from .base import Notifier

logger = logging.getLogger(__name__)


class EmailNotifier(Notifier):
    name = "email"

    def __init__(
        self,
        host: str = "",
        port: int = 587,
        *,
        secure: bool = False,
        user: str = "",
        password: str = "",
        sender: str = "agent-monitor@localhost",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    async def send_notification(self, target: str, subject: str | None, body: str) -> bool:
        if not self.is_configured:
            logger.info("No SMTP configured. Would send to %s: %s", target, subject)
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = target
        message["Subject"] = subject or "[Agent Monitor] Notification"
        message.set_content(body)

        try:
            await asyncio.to_thread(self._send, message)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", target, e)
            return False

    def _send(self, message: EmailMessage) -> None:
        smtp_cls = smtplib.SMTP_SSL if self.secure else smtplib.SMTP
        with smtp_cls(self.host, self.port, timeout=self.timeout) as smtp:
            if not self.secure and smtp.has_extn("starttls"):
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)

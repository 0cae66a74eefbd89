"""Notifier interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Best-effort delivery of one message to one target.

    Implementations log failures and return False instead of raising.
    """

    name: str = "notifier"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the transport has the credentials it needs."""

    @abstractmethod
    async def send_notification(self, target: str, subject: str | None, body: str) -> bool:
        """Deliver a message. Returns True on success."""

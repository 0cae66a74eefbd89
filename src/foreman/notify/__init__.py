"""Best-effort notification transports."""

from .base import Notifier
from .hub import NotificationHub, NotificationTargets
from .mail import EmailNotifier
from .slack import SlackNotifier
from .whatsapp import WhatsAppNotifier

__all__ = [
    "EmailNotifier",
    "NotificationHub",
    "NotificationTargets",
    "Notifier",
    "SlackNotifier",
    "WhatsAppNotifier",
]

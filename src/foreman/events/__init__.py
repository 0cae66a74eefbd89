"""Core event bus."""

from .manager import EventBus
from .models import Event, EventType

__all__ = ["EventBus", "Event", "EventType"]

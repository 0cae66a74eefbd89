"""EventBus - in-memory pub/sub for core events."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from .models import Event

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class EventBus:
    """In-memory pub/sub for core events.

    Queue subscribers get every event until their queue fills up; after that
    events are dropped for that subscriber. Listeners are called inline.
    """

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue] = set()
        self._listeners: list[Listener] = []

    def subscribe(self, maxsize: int = 100) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def publish(self, event: Event) -> None:
        for queue in list(self._queues):
            with contextlib.suppress(asyncio.QueueFull):
                queue.put_nowait(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.event_type)

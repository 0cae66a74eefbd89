"""Event models published by the core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    # Agent events
    AGENT_MESSAGE = "agent:message"
    AGENT_STATUS = "agent:status"
    # Pipeline events
    TASK_UPDATE = "task:update"
    PIPELINE_COMPLETE = "pipeline:complete"
    SCHEDULER_STATUS = "scheduler:status"


@dataclass
class Event:
    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)

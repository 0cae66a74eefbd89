"""Pipeline Pydantic models."""

from __future__ import annotations

import os
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from ..runtime.models import new_id, utcnow
from ..supervisor.providers import ProviderKind

DEFAULT_INSTRUCTIONS = """# Agent Manager Instructions

You are an AI agent created by the Agent Manager to complete a specific task.
Follow the prompt instructions carefully and complete the task.
When done, ensure all changes are saved.
"""

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_STUCK_TIMEOUT = 5 * 60.0


class TaskStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskFlags(BaseModel):
    skip_permissions: bool = True
    full_auto: bool = False


class PipelineTask(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    prompt: str
    directory: str | None = None
    provider: ProviderKind | None = None
    model: str | None = None
    instructions: str | None = None
    flags: TaskFlags = Field(default_factory=TaskFlags)
    status: TaskStatus = TaskStatus.PENDING
    agent_id: str | None = None
    # Same order runs in parallel; a higher order waits for every lower one
    order: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    error: str | None = None
    # Last stuck-agent notification
    notified_at: datetime | None = None


class SchedulerConfig(BaseModel):
    running: bool = False
    instructions: str = DEFAULT_INSTRUCTIONS
    default_directory: str = Field(default_factory=os.getcwd)
    default_provider: ProviderKind = ProviderKind.CLAUDE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    stuck_timeout: float = DEFAULT_STUCK_TIMEOUT
    admin_email: str | None = None
    whatsapp_phone: str | None = None
    slack_webhook: str | None = None

"""Agent Pydantic models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field

from ..supervisor.providers import ProviderKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class AgentStatus(StrEnum):
    RUNNING = "running"
    WAITING_INPUT = "waiting_input"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStatus.STOPPED, AgentStatus.ERROR)


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class AgentMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class AgentFlags(BaseModel):
    skip_permissions: bool = False
    resume: str | None = None
    model: str | None = None
    full_auto: bool = False
    interactive: bool = False


class AgentConfig(BaseModel):
    provider: ProviderKind = ProviderKind.CLAUDE
    directory: str
    prompt: str
    instructions: str | None = None
    admin_email: str | None = None
    flags: AgentFlags = Field(default_factory=AgentFlags)


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0


class Agent(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    status: AgentStatus = AgentStatus.RUNNING
    config: AgentConfig
    worktree_path: str | None = None
    worktree_branch: str | None = None
    messages: list[AgentMessage] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    cost_usd: float | None = None
    token_usage: TokenUsage | None = None
    pid: int | None = None

    @property
    def working_directory(self) -> str:
        return self.worktree_path or self.config.directory

    def add_message(self, role: MessageRole, content: str) -> AgentMessage:
        message = AgentMessage(role=role, content=content)
        self.messages.append(message)
        self.touch()
        return message

    def touch(self) -> None:
        self.last_activity = utcnow()

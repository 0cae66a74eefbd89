"""Agent runtime: persisted agent state driven by process events."""

from .manager import AgentManager
from .models import (
    Agent,
    AgentConfig,
    AgentFlags,
    AgentMessage,
    AgentStatus,
    MessageRole,
    TokenUsage,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentFlags",
    "AgentManager",
    "AgentMessage",
    "AgentStatus",
    "MessageRole",
    "TokenUsage",
]

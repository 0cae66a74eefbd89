"""Exceptions raised by foreman."""

from __future__ import annotations


class ForemanError(Exception):
    """Base class for foreman errors."""

    def __init__(self, message: str, detail: str = ""):
        self.message = message
        self.detail = detail
        super().__init__(message)


class AgentCreateError(ForemanError):
    """Raised when an agent cannot be created (bad provider, missing directory)."""


class AgentNotFoundError(ForemanError):
    """Raised when an agent id does not exist in the store."""


class TaskNotFoundError(ForemanError):
    """Raised when a pipeline task id does not exist in the store."""


class TaskStateError(ForemanError):
    """Raised when an operation is not allowed in the task's current status."""


class WorktreeError(ForemanError):
    """Raised when an isolated working copy cannot be created."""

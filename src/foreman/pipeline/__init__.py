"""Pipeline scheduling: ordered stages of agent runs."""

from .models import PipelineTask, SchedulerConfig, TaskFlags, TaskStatus
from .scheduler import PipelineScheduler

__all__ = [
    "PipelineScheduler",
    "PipelineTask",
    "SchedulerConfig",
    "TaskFlags",
    "TaskStatus",
]

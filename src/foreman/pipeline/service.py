"""Pipeline task operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..errors import TaskNotFoundError, TaskStateError
from .models import PipelineTask, TaskFlags, TaskStatus

if TYPE_CHECKING:
    from ..store import Store

# Fields an operator may change on a pending task
EDITABLE_FIELDS = (
    "name",
    "prompt",
    "directory",
    "provider",
    "model",
    "instructions",
    "flags",
    "order",
)


def list_tasks(store: Store) -> list[PipelineTask]:
    return store.list_tasks()


def get_task(store: Store, task_id: str) -> PipelineTask:
    task = store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(f"Task not found: {task_id}")
    return task


def add_task(
    store: Store,
    name: str,
    prompt: str,
    *,
    order: int | None = None,
    directory: str | None = None,
    provider: str | None = None,
    model: str | None = None,
    instructions: str | None = None,
    flags: TaskFlags | None = None,
) -> PipelineTask:
    """Create a pending task.

    Without an explicit order the task goes after every existing task.
    """
    if not name or not prompt:
        raise ValueError("name and prompt are required")

    if order is None:
        tasks = store.list_tasks()
        order = max(t.order for t in tasks) + 1 if tasks else 0

    task = PipelineTask.model_validate(
        {
            "name": name,
            "prompt": prompt,
            "order": order,
            "directory": directory,
            "provider": provider,
            "model": model,
            "instructions": instructions,
            "flags": flags or TaskFlags(),
        }
    )
    store.save_task(task)
    return task


def update_task(store: Store, task_id: str, **changes: Any) -> PipelineTask:
    """Edit a pending task.

    Raises:
        TaskNotFoundError: If the task does not exist.
        TaskStateError: If the task is not pending.
        ValueError: If a field cannot be edited.
    """
    task = get_task(store, task_id)
    if task.status != TaskStatus.PENDING:
        raise TaskStateError("Can only update pending tasks")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    data = task.model_dump()
    data.update({k: v for k, v in changes.items() if v is not None})
    task = PipelineTask.model_validate(data)
    store.save_task(task)
    return task


def reset_task(store: Store, task_id: str) -> PipelineTask:
    """Return a completed or failed task to pending so it runs again."""
    task = get_task(store, task_id)
    if task.status not in (TaskStatus.COMPLETED, TaskStatus.FAILED):
        raise TaskStateError("Can only reset completed or failed tasks")

    task.status = TaskStatus.PENDING
    task.agent_id = None
    task.error = None
    task.completed_at = None
    task.notified_at = None
    store.save_task(task)
    return task


def delete_task(store: Store, task_id: str) -> None:
    if not store.delete_task(task_id):
        raise TaskNotFoundError(f"Task not found: {task_id}")


def clear_finished_tasks(store: Store) -> int:
    return store.clear_finished_tasks()

"""PipelineScheduler - reconciliation loop over pipeline tasks.

Every tick reads the current task and agent state and applies only the
changes needed to move the pipeline forward:

  1. Reconcile running tasks against their agents (complete, fail, or
     notify about agents stuck waiting for input).
  2. If nothing is pending or running, clean up and finish the pipeline.
  3. If anything is running, wait.
  4. Otherwise start the next stage (all pending tasks sharing the lowest
     order), unless an earlier stage has a failed task.

Ticks never overlap: the poll loop awaits each tick before sleeping again,
and a tick requested while another one is in progress is skipped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..events import Event, EventBus, EventType
from ..notify import NotificationHub, NotificationTargets
from ..runtime import AgentConfig, AgentFlags, AgentManager, AgentStatus
from ..runtime.models import utcnow
from .models import PipelineTask, SchedulerConfig, TaskStatus

if TYPE_CHECKING:
    from ..store import Store

logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class PipelineScheduler:
    """Turns pipeline tasks into a sequence of agent runs."""

    def __init__(
        self,
        store: Store,
        agents: AgentManager,
        *,
        notifier: NotificationHub | None = None,
        events: EventBus | None = None,
    ):
        self.store = store
        self.agents = agents
        self.notifier = notifier or agents.notifier
        self.events = events or agents.events
        self._running = False
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_lock = asyncio.Lock()
        self._stopped = asyncio.Event()
        self._wake = asyncio.Event()

    # --- Config ---

    def get_config(self) -> SchedulerConfig:
        config = self.store.get_scheduler_config() or SchedulerConfig()
        config.running = self._running
        return config

    def update_config(self, **changes: Any) -> SchedulerConfig:
        """Apply config changes. The running flag is owned by start()/stop()."""
        unknown = set(changes) - set(SchedulerConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")

        data = self.get_config().model_dump()
        data.update(changes)
        data["running"] = self._running
        config = SchedulerConfig.model_validate(data)
        self.store.save_scheduler_config(config)
        return config

    # --- Lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Tick once immediately, then keep ticking every poll interval."""
        if self._running:
            return
        self._running = True
        self._stopped.clear()
        self._wake = asyncio.Event()

        config = self.get_config()
        self.store.save_scheduler_config(config)
        self._publish_status()
        logger.info("Scheduler started, polling every %.2fs", config.poll_interval)

        await self.tick()

        # The first tick may already have finished the pipeline
        if self._running:
            self._loop_task = asyncio.create_task(
                self._poll_loop(self._wake), name="pipeline-scheduler"
            )

    def stop(self) -> None:
        """Stop polling. A tick already in progress runs to completion."""
        if not self._running:
            return
        self._running = False
        self._wake.set()

        self.store.save_scheduler_config(self.get_config())
        self._publish_status()
        self._stopped.set()
        logger.info("Scheduler stopped")

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    async def wait_closed(self) -> None:
        """Wait for the poll loop to finish its current tick and exit."""
        loop_task = self._loop_task
        if loop_task is None or loop_task is _current_task():
            return
        await loop_task
        if self._loop_task is loop_task:
            self._loop_task = None

    async def _poll_loop(self, wake: asyncio.Event) -> None:
        while not wake.is_set():
            # Re-read every cycle so interval changes apply on the next tick
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(wake.wait(), timeout=self.get_config().poll_interval)
            if wake.is_set():
                break
            await self.tick()

    def _publish_status(self) -> None:
        self.events.publish(
            Event(EventType.SCHEDULER_STATUS, {"running": self._running})
        )

    # --- Reconciliation ---

    async def tick(self) -> None:
        if not self._running:
            return
        if self._tick_lock.locked():
            logger.debug("Previous tick still in progress, skipping")
            return
        async with self._tick_lock:
            try:
                await self._reconcile()
            except Exception:
                logger.exception("Scheduler tick failed")

    async def _reconcile(self) -> None:
        tasks = self.store.list_tasks()
        if not tasks:
            return

        config = self.get_config()
        await self._check_running_tasks(tasks, config)

        tasks = self.store.list_tasks()
        pending = [t for t in tasks if t.status == TaskStatus.PENDING]
        running = [t for t in tasks if t.status == TaskStatus.RUNNING]
        failed = [t for t in tasks if t.status == TaskStatus.FAILED]

        if not pending and not running:
            await self._complete_pipeline(tasks, config)
            return

        if running:
            return

        next_order = min(t.order for t in pending)
        if any(t.order < next_order for t in failed):
            logger.info("Pipeline blocked: a task before order %d has failed", next_order)
            return

        stage = [t for t in pending if t.order == next_order]
        logger.info("Starting %d task(s) at order %d", len(stage), next_order)
        for task in stage:
            await self._start_task(task, config)

    async def _check_running_tasks(
        self, tasks: list[PipelineTask], config: SchedulerConfig
    ) -> None:
        stuck_timeout = timedelta(seconds=config.stuck_timeout)

        for task in tasks:
            if task.status != TaskStatus.RUNNING or not task.agent_id:
                continue

            agent = self.agents.get_agent(task.agent_id)
            if agent is None:
                self._fail_task(task, "Agent was deleted", config)
                continue

            if agent.status == AgentStatus.STOPPED:
                task.status = TaskStatus.COMPLETED
                task.completed_at = utcnow()
                self._save_task(task)
                logger.info('Task "%s" completed', task.name)

            elif agent.status == AgentStatus.ERROR:
                self._fail_task(task, "Agent exited with error", config)

            elif agent.status == AgentStatus.WAITING_INPUT:
                now = utcnow()
                waiting = now - agent.last_activity
                if waiting <= stuck_timeout:
                    continue
                if task.notified_at is not None and now - task.notified_at <= stuck_timeout:
                    continue
                logger.info(
                    'Task "%s" agent stuck in waiting_input for %ds',
                    task.name,
                    waiting.total_seconds(),
                )
                self._notify_stuck_agent(task, agent.name, waiting, config)
                task.notified_at = now
                self._save_task(task)

    async def _complete_pipeline(
        self, tasks: list[PipelineTask], config: SchedulerConfig
    ) -> None:
        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        failed = [t for t in tasks if t.status == TaskStatus.FAILED]
        logger.info(
            "All tasks done: %d completed, %d failed", len(completed), len(failed)
        )

        for task in tasks:
            if not task.agent_id:
                continue
            try:
                await self.agents.delete_agent(task.agent_id)
                logger.info('Cleaned up agent %s for task "%s"', task.agent_id, task.name)
            except Exception:
                logger.exception("Failed to clean up agent %s", task.agent_id)

        self._notify_pipeline_complete(len(completed), len(failed), config)
        self.events.publish(
            Event(
                EventType.PIPELINE_COMPLETE,
                {"completed": len(completed), "failed": len(failed)},
            )
        )
        self.stop()

    async def _start_task(self, task: PipelineTask, config: SchedulerConfig) -> None:
        provider = task.provider or config.default_provider
        directory = task.directory or config.default_directory
        instructions = task.instructions or config.instructions

        try:
            agent = await self.agents.create_agent(
                f"[Pipeline] {task.name}",
                AgentConfig(
                    provider=provider,
                    directory=directory,
                    prompt=task.prompt,
                    instructions=instructions,
                    flags=AgentFlags(
                        skip_permissions=task.flags.skip_permissions,
                        model=task.model,
                        full_auto=task.flags.full_auto,
                    ),
                ),
            )
        except Exception as e:
            logger.error('Failed to start task "%s": %s', task.name, e)
            self._fail_task(task, str(e), config)
            return

        task.status = TaskStatus.RUNNING
        task.agent_id = agent.id
        self._save_task(task)
        logger.info('Started task "%s" -> agent %s', task.name, agent.id)

    def _fail_task(self, task: PipelineTask, error: str, config: SchedulerConfig) -> None:
        task.status = TaskStatus.FAILED
        task.error = error
        task.completed_at = utcnow()
        self._save_task(task)
        logger.info('Task "%s" failed: %s', task.name, error)
        self._notify_task_failed(task, config)

    def _save_task(self, task: PipelineTask) -> None:
        self.store.save_task(task)
        self.events.publish(Event(EventType.TASK_UPDATE, {"task": task.model_dump(mode="json")}))

    # --- Notifications ---

    def _notify(self, config: SchedulerConfig, subject: str, body: str) -> None:
        self.notifier.dispatch(
            NotificationTargets(
                email=config.admin_email,
                whatsapp_phone=config.whatsapp_phone,
                slack_webhook=config.slack_webhook,
            ),
            subject,
            body,
        )

    def _notify_task_failed(self, task: PipelineTask, config: SchedulerConfig) -> None:
        self._notify(
            config,
            f'[Agent Manager] Task "{task.name}" failed',
            f'Task "{task.name}" has failed.\n\n'
            f"Error: {task.error or 'Unknown error'}\nTask ID: {task.id}",
        )

    def _notify_stuck_agent(
        self,
        task: PipelineTask,
        agent_name: str,
        waiting: timedelta,
        config: SchedulerConfig,
    ) -> None:
        minutes = round(waiting.total_seconds() / 60)
        self._notify(
            config,
            f'[Agent Manager] Agent "{agent_name}" is stuck (waiting {minutes}m)',
            f'Agent "{agent_name}" for task "{task.name}" has been waiting for human '
            f"input for {minutes} minute(s).\n\n"
            "Please check the agent and provide the required input.\n"
            f"Task ID: {task.id}\nAgent ID: {task.agent_id}",
        )

    def _notify_pipeline_complete(
        self, completed: int, failed: int, config: SchedulerConfig
    ) -> None:
        status = "completed with failures" if failed else "completed successfully"
        self._notify(
            config,
            f"[Agent Manager] Pipeline {status}",
            f"The pipeline has {status}.\n\n"
            f"Completed: {completed} task(s)\nFailed: {failed} task(s)",
        )

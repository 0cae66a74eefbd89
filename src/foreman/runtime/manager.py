"""AgentManager - owns agent records and the processes behind them.

Process events are translated into status changes and messages on the
persisted Agent record. Status only ever moves forward:

    running -> waiting_input -> stopped | error
    running -> stopped | error

stopped and error are terminal. Once a provider has reported a clean
result the agent stays stopped even if the process later exits non-zero.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import AgentCreateError, AgentNotFoundError, WorktreeError
from ..events import Event, EventBus, EventType
from ..notify import NotificationHub, NotificationTargets
from ..supervisor import (
    STOP_GRACE_PERIOD,
    AgentProcess,
    ErrorEvent,
    ExitEvent,
    MessageEvent,
    ProcessEvent,
    RawEvent,
    SignalKind,
    StartOptions,
    StderrEvent,
    get_provider,
)
from ..supervisor.providers import Provider, Signal
from ..worktree import WorktreeManager
from .models import Agent, AgentConfig, AgentStatus, MessageRole, TokenUsage, utcnow

if TYPE_CHECKING:
    from ..store import Store

logger = logging.getLogger(__name__)

SIGNAL_ROLES = {
    SignalKind.ASSISTANT_TEXT: MessageRole.ASSISTANT,
    SignalKind.TOOL_USE: MessageRole.TOOL,
    SignalKind.REASONING: MessageRole.SYSTEM,
}


class AgentManager:
    """Creates agents, supervises their processes and persists their state."""

    def __init__(
        self,
        store: Store,
        *,
        worktrees: WorktreeManager | None = None,
        notifier: NotificationHub | None = None,
        events: EventBus | None = None,
        binaries: dict[str, str] | None = None,
        grace_period: float = STOP_GRACE_PERIOD,
    ):
        self.store = store
        self.worktrees = worktrees or WorktreeManager()
        self.notifier = notifier or NotificationHub()
        self.events = events or EventBus()
        self.binaries = binaries or {}
        self.grace_period = grace_period
        self._processes: dict[str, AgentProcess] = {}

    # --- Creation ---

    async def create_agent(self, name: str, config: AgentConfig) -> Agent:
        """Create an agent record, isolate its working copy and spawn it.

        Raises:
            AgentCreateError: If the provider is unknown or the directory is missing.
        """
        try:
            provider = get_provider(config.provider)
        except ValueError as e:
            raise AgentCreateError(str(e)) from e

        if not Path(config.directory).is_dir():
            raise AgentCreateError(f"Directory does not exist: {config.directory}")

        agent = Agent(name=name, config=config)
        label = f"agent-{agent.id[:8]}"

        try:
            copy = await self.worktrees.create_isolated_copy(
                config.directory,
                label,
                config.instructions,
                provider.seed_filename,
            )
            agent.worktree_path = copy.path
            agent.worktree_branch = copy.label
        except (WorktreeError, OSError) as e:
            logger.warning(
                "Worktree creation failed, using %s directly: %s", config.directory, e
            )
            agent.worktree_path = config.directory

        self.store.save_agent(agent)
        self._publish_status(agent.id, agent.status)
        await self._start_process(agent, provider)

        logger.info("Created agent %s (%s, provider=%s)", agent.id, name, provider.kind)
        return self.store.get_agent(agent.id) or agent

    async def _start_process(self, agent: Agent, provider: Provider) -> None:
        proc = AgentProcess(
            provider,
            binary=self.binaries.get(provider.kind),
            on_event=partial(self._handle_process_event, agent.id),
            grace_period=self.grace_period,
        )
        self._processes[agent.id] = proc

        flags = agent.config.flags
        started = await proc.start(
            StartOptions(
                directory=agent.working_directory,
                prompt=agent.config.prompt,
                skip_permissions=flags.skip_permissions,
                resume=flags.resume,
                model=flags.model,
                full_auto=flags.full_auto,
                interactive=flags.interactive,
            )
        )
        if started:
            current = self.store.get_agent(agent.id)
            if current is not None:
                current.pid = proc.pid
                self.store.save_agent(current)

    # --- Process events ---

    def _handle_process_event(self, agent_id: str, event: ProcessEvent) -> None:
        if isinstance(event, MessageEvent):
            self._handle_message(agent_id, event)
        elif isinstance(event, StderrEvent):
            self._handle_stderr(agent_id, event.text)
        elif isinstance(event, RawEvent):
            logger.debug("Agent %s non-JSON output: %s", agent_id, event.text)
        elif isinstance(event, ExitEvent):
            self._handle_exit(agent_id, event.code)
        elif isinstance(event, ErrorEvent):
            logger.error("Agent %s process error: %s", agent_id, event.error)
            self._processes.pop(agent_id, None)
            self._set_status(agent_id, AgentStatus.ERROR)

    def _handle_message(self, agent_id: str, event: MessageEvent) -> None:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return

        changed = False
        completed = False
        prompt: Signal | None = None

        for signal in event.signals:
            if signal.kind in SIGNAL_ROLES:
                agent.add_message(SIGNAL_ROLES[signal.kind], signal.text)
                changed = True
            elif signal.kind == SignalKind.USAGE:
                self._apply_usage(agent, signal)
                changed = True
            elif signal.kind == SignalKind.RESULT:
                completed = True
            elif signal.kind == SignalKind.PERMISSION_PROMPT:
                prompt = signal

        if changed:
            self.store.save_agent(agent)

        self.events.publish(
            Event(EventType.AGENT_MESSAGE, {"agent_id": agent_id, "message": event.payload})
        )

        if completed:
            self._set_status(agent_id, AgentStatus.STOPPED)
            provider = get_provider(agent.config.provider)
            proc = self._processes.get(agent_id)
            if proc is not None and provider.capabilities.lingers_after_result:
                proc.stop()
        elif prompt is not None:
            self._enter_waiting_input(agent_id, prompt)

    @staticmethod
    def _apply_usage(agent: Agent, signal: Signal) -> None:
        if signal.cost_usd:
            agent.cost_usd = max(agent.cost_usd or 0.0, signal.cost_usd)
        if signal.input_tokens or signal.output_tokens:
            usage = agent.token_usage or TokenUsage()
            agent.token_usage = TokenUsage(
                input=usage.input + signal.input_tokens,
                output=usage.output + signal.output_tokens,
            )
        agent.touch()

    def _handle_stderr(self, agent_id: str, text: str) -> None:
        logger.info("Agent %s stderr: %s", agent_id, text.rstrip())
        agent = self.store.get_agent(agent_id)
        if agent is not None:
            agent.add_message(MessageRole.SYSTEM, f"[stderr] {text}")
            self.store.save_agent(agent)

    def _handle_exit(self, agent_id: str, code: int | None) -> None:
        self._processes.pop(agent_id, None)
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return

        if agent.pid is not None:
            agent.pid = None
            self.store.save_agent(agent)

        if agent.status.is_terminal:
            return

        if code == 0:
            self._set_status(agent_id, AgentStatus.STOPPED)
        else:
            logger.warning("Agent %s exited without a result (code=%s)", agent_id, code)
            self._set_status(agent_id, AgentStatus.ERROR)

    def _enter_waiting_input(self, agent_id: str, prompt: Signal) -> None:
        if not self._set_status(agent_id, AgentStatus.WAITING_INPUT):
            return
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return
        logger.info("Agent %s is waiting for input", agent_id)
        self.notifier.dispatch(
            NotificationTargets(email=agent.config.admin_email),
            f"[Agent Monitor] {agent.name} needs your attention",
            f'Agent "{agent.name}" requires human interaction:\n\n'
            f"Agent is waiting for permission/input.\nLast message: {prompt.text}",
        )

    def _set_status(self, agent_id: str, status: AgentStatus) -> bool:
        """Move an agent to a new status. Terminal statuses are never left."""
        agent = self.store.get_agent(agent_id)
        if agent is None or agent.status == status:
            return False
        if agent.status.is_terminal:
            logger.debug(
                "Ignoring %s for agent %s, already %s", status, agent_id, agent.status
            )
            return False

        agent.status = status
        agent.touch()
        self.store.save_agent(agent)
        self._publish_status(agent_id, status)
        return True

    def _publish_status(self, agent_id: str, status: str) -> None:
        self.events.publish(
            Event(EventType.AGENT_STATUS, {"agent_id": agent_id, "status": str(status)})
        )

    # --- Operations ---

    def get_agent(self, agent_id: str) -> Agent | None:
        return self.store.get_agent(agent_id)

    def list_agents(self) -> list[Agent]:
        return self.store.list_agents()

    def has_process(self, agent_id: str) -> bool:
        return agent_id in self._processes

    def send_message(self, agent_id: str, text: str) -> bool:
        """Send follow-up input to a live agent.

        Returns:
            True if the text reached the process's stdin. Providers that only
            take an upfront task silently drop it.
        """
        proc = self._processes.get(agent_id)
        if proc is None:
            return False

        agent = self.store.get_agent(agent_id)
        if agent is not None:
            agent.add_message(MessageRole.USER, text)
            self.store.save_agent(agent)

        delivered = proc.send_message(text)
        self.events.publish(
            Event(
                EventType.AGENT_MESSAGE,
                {"agent_id": agent_id, "message": {"type": "user", "text": text}},
            )
        )
        return delivered

    def interrupt_agent(self, agent_id: str) -> None:
        proc = self._processes.get(agent_id)
        if proc is not None:
            proc.interrupt()

    def stop_agent(self, agent_id: str) -> None:
        proc = self._processes.get(agent_id)
        if proc is not None:
            proc.stop()
        self._set_status(agent_id, AgentStatus.STOPPED)

    def rename_agent(self, agent_id: str, name: str) -> Agent:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent not found: {agent_id}")
        agent.name = name
        agent.touch()
        self.store.save_agent(agent)
        self._publish_status(agent_id, agent.status)
        return agent

    def update_instructions(self, agent_id: str, content: str) -> None:
        """Rewrite the seed document in the agent's working copy."""
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent not found: {agent_id}")
        if agent.worktree_path:
            provider = get_provider(agent.config.provider)
            self.worktrees.update_seed_document(
                agent.worktree_path, content, provider.seed_filename
            )
        agent.config.instructions = content
        agent.touch()
        self.store.save_agent(agent)

    async def delete_agent(self, agent_id: str) -> bool:
        """Stop the agent, remove its working copy and delete the record."""
        self.stop_agent(agent_id)
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return False

        if agent.worktree_path and agent.worktree_branch:
            try:
                await self.worktrees.remove_isolated_copy(
                    agent.config.directory,
                    agent.worktree_path,
                    agent.worktree_branch,
                )
            except WorktreeError as e:
                logger.warning("Worktree cleanup failed for agent %s: %s", agent_id, e.message)

        self.store.delete_agent(agent_id)
        self._publish_status(agent_id, "deleted")
        logger.info("Deleted agent %s", agent_id)
        return True

    async def stop_all_agents(self, wait: bool = True) -> None:
        """Stop every live agent, optionally waiting for the processes to exit."""
        for agent in self.store.list_agents():
            if not agent.status.is_terminal:
                self.stop_agent(agent.id)
        if wait and self._processes:
            await asyncio.gather(
                *(proc.wait() for proc in list(self._processes.values())),
                return_exceptions=True,
            )

    async def wait_for_exit(self, agent_id: str) -> int | None:
        proc = self._processes.get(agent_id)
        if proc is None:
            return None
        return await proc.wait()

    async def cleanup_expired_agents(self, retention: float) -> int:
        """Delete finished agents idle for longer than retention seconds."""
        cutoff = utcnow() - timedelta(seconds=retention)
        count = 0
        for agent in self.store.list_agents():
            if agent.status.is_terminal and agent.last_activity < cutoff:
                await self.delete_agent(agent.id)
                count += 1
        return count

    def mark_orphaned_agents(self) -> int:
        """Mark agents left live by a previous foreman process as errored.

        Their processes are gone, so no exit event will ever arrive for them.
        """
        count = 0
        for agent in self.store.list_agents():
            if agent.status.is_terminal or agent.id in self._processes:
                continue
            agent.add_message(MessageRole.SYSTEM, "Process lost: foreman restarted")
            agent.pid = None
            self.store.save_agent(agent)
            self._set_status(agent.id, AgentStatus.ERROR)
            count += 1
        return count

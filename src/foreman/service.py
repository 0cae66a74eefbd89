"""ForemanService - wires the store, agents and scheduler into one process."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from .config import ForemanConfig
from .events import EventBus
from .notify import NotificationHub
from .pipeline import PipelineScheduler
from .runtime import Agent, AgentConfig, AgentManager
from .store import Store
from .supervisor import ProviderKind

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


class ForemanService:
    """Foreground service that runs the pipeline until it completes."""

    def __init__(
        self,
        config: ForemanConfig | None = None,
        *,
        store: Store | None = None,
        notifier: NotificationHub | None = None,
    ):
        self.config = config or ForemanConfig.load()
        self.store = store or Store(self.config.db_path)
        self.events = EventBus()
        self.notifier = notifier or NotificationHub.from_config(self.config)
        self.agents = AgentManager(
            self.store,
            notifier=self.notifier,
            events=self.events,
            binaries={kind.value: self.config.binary_for(kind) for kind in ProviderKind},
        )
        self.scheduler = PipelineScheduler(self.store, self.agents)
        self._cleanup_task: asyncio.Task[None] | None = None

    def recover(self) -> int:
        """Fail agents whose processes died with a previous foreman run."""
        count = self.agents.mark_orphaned_agents()
        if count:
            logger.warning("Marked %d orphaned agent(s) as errored", count)
        return count

    async def run(self) -> None:
        """Run the scheduler until the pipeline completes or SIGINT/SIGTERM."""
        self.recover()

        loop = asyncio.get_running_loop()
        shutdown = asyncio.Event()
        for sig in (signal.SIGTERM, signal.SIGINT):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, shutdown.set)

        self.start_cleanup()
        try:
            await self.scheduler.start()
            waiters = [
                asyncio.create_task(self.scheduler.wait_stopped()),
                asyncio.create_task(shutdown.wait()),
            ]
            _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if shutdown.is_set():
                logger.info("Shutdown requested")
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(sig)
            await self.shutdown()

    async def run_agent(self, name: str, config: AgentConfig) -> Agent:
        """Run a single agent in the foreground until its process exits."""
        self.recover()
        agent = await self.agents.create_agent(name, config)
        try:
            await self.agents.wait_for_exit(agent.id)
        finally:
            await self.agents.stop_all_agents()
            await self.notifier.drain()
        return self.agents.get_agent(agent.id) or agent

    async def shutdown(self) -> None:
        self.scheduler.stop()
        await self.scheduler.wait_closed()
        await self.stop_cleanup()
        await self.agents.stop_all_agents()
        await self.notifier.drain()
        logger.info("Foreman stopped")

    # --- Expired agent cleanup ---

    def start_cleanup(self) -> None:
        if self.config.agent_retention <= 0 or self._cleanup_task is not None:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="agent-cleanup")

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._cleanup_task
        self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            try:
                count = await self.agents.cleanup_expired_agents(self.config.agent_retention)
            except Exception:
                logger.exception("Expired agent cleanup failed")
                continue
            if count:
                logger.info("Cleaned up %d expired agent(s)", count)

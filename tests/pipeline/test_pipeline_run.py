"""End-to-end pipeline runs against fake agent CLIs."""

from __future__ import annotations

import asyncio
import json
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

from foreman.errors import WorktreeError
from foreman.events import EventBus, EventType
from foreman.notify import NotificationHub
from foreman.pipeline import PipelineScheduler, TaskStatus
from foreman.pipeline import service as tasks
from foreman.runtime import AgentManager
from foreman.store import Store
from foreman.worktree import WorktreeManager


def write_fake_claude(path, *, exit_code: int = 0, result: bool = True):
    """A fake Claude CLI that records its start and prints stream-json."""
    lines = [
        {"type": "system", "subtype": "init"},
        {"type": "assistant", "message": {"content": [{"type": "text", "text": "working"}]}},
    ]
    if result:
        lines.append({"type": "result", "subtype": "success", "total_cost_usd": 0.01})
    output = "".join(json.dumps(line) + "\n" for line in lines)
    path.write_text(
        f"#!{sys.executable}\n"
        "import sys, time\n"
        "time.sleep(0.05)\n"
        f"sys.stdout.write({json.dumps(output)})\n"
        f"raise SystemExit({exit_code})\n"
    )
    path.chmod(0o755)
    return path


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def store(tmp_path):
    return Store(tmp_path / "foreman.db")


@pytest.fixture
def worktrees():
    wt = MagicMock(spec=WorktreeManager)
    wt.create_isolated_copy = AsyncMock(side_effect=WorktreeError("not a repository"))
    wt.remove_isolated_copy = AsyncMock()
    return wt


def make_scheduler(store, worktrees, binary, events, project):
    notifier = MagicMock(spec=NotificationHub)
    agents = AgentManager(
        store,
        worktrees=worktrees,
        notifier=notifier,
        events=events,
        binaries={"claude": str(binary)},
    )
    scheduler = PipelineScheduler(store, agents)
    scheduler.update_config(default_directory=str(project), poll_interval=0.05)
    return scheduler, notifier


class TestPipelineRun:
    @pytest.mark.asyncio
    async def test_stages_run_to_completion(self, tmp_path, store, worktrees, project):
        events = EventBus()
        started: list[str] = []

        def on_event(event):
            if event.event_type == EventType.TASK_UPDATE and event.data["task"]["status"] == "running":
                started.append(event.data["task"]["name"])

        events.add_listener(on_event)
        binary = write_fake_claude(tmp_path / "claude")
        scheduler, notifier = make_scheduler(store, worktrees, binary, events, project)

        tasks.add_task(store, "a", "do a", order=0)
        tasks.add_task(store, "b", "do b", order=0)
        tasks.add_task(store, "c", "do c", order=1)

        await scheduler.start()
        await asyncio.wait_for(scheduler.wait_stopped(), timeout=20)

        assert {t.name: t.status for t in store.list_tasks()} == {
            "a": TaskStatus.COMPLETED,
            "b": TaskStatus.COMPLETED,
            "c": TaskStatus.COMPLETED,
        }
        assert sorted(started[:2]) == ["a", "b"]
        assert started[2] == "c"
        # Bound agents are cleaned up when the pipeline completes
        assert store.list_agents() == []
        subject = notifier.dispatch.call_args.args[1]
        assert subject == "[Agent Manager] Pipeline completed successfully"

    @pytest.mark.asyncio
    async def test_single_task_auto_stops_once(self, tmp_path, store, worktrees, project):
        events = EventBus()
        published = []
        events.add_listener(published.append)
        binary = write_fake_claude(tmp_path / "claude")
        scheduler, _ = make_scheduler(store, worktrees, binary, events, project)
        scheduler.update_config(stuck_timeout=0.2)
        task = tasks.add_task(store, "only", "do it")

        await scheduler.start()
        assert store.get_task(task.id).status == TaskStatus.RUNNING

        await asyncio.wait_for(scheduler.wait_stopped(), timeout=20)
        await asyncio.sleep(0.2)

        assert store.get_task(task.id).status == TaskStatus.COMPLETED
        complete = [e for e in published if e.event_type == EventType.PIPELINE_COMPLETE]
        assert len(complete) == 1
        assert complete[0].data == {"completed": 1, "failed": 0}
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_failure_blocks_next_stage(self, tmp_path, store, worktrees, project):
        binary = write_fake_claude(tmp_path / "claude", exit_code=1, result=False)
        scheduler, _ = make_scheduler(store, worktrees, binary, EventBus(), project)

        a = tasks.add_task(store, "a", "do a", order=0)
        b = tasks.add_task(store, "b", "do b", order=1)

        await scheduler.start()
        for _ in range(200):
            if store.get_task(a.id).status == TaskStatus.FAILED:
                break
            await asyncio.sleep(0.05)
        await asyncio.sleep(0.2)
        scheduler.stop()

        assert store.get_task(a.id).status == TaskStatus.FAILED
        assert store.get_task(a.id).error == "Agent exited with error"
        assert store.get_task(b.id).status == TaskStatus.PENDING
        assert store.get_task(b.id).agent_id is None

"""SQLite storage for agents, pipeline tasks and scheduler config.

Records are stored as JSON documents next to the few columns that are
queried on (ordering, status).
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .pipeline.models import PipelineTask, SchedulerConfig, TaskStatus
from .runtime.models import Agent

SCHEDULER_CONFIG_KEY = "scheduler"


class Store:
    """Store for foreman state using SQLite."""

    def __init__(self, db_path: Path | None = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.foreman/data/foreman.db
        """
        if db_path is None:
            from .config import ForemanConfig

            db_path = ForemanConfig.load().db_path

        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    sort_order INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_order ON tasks(sort_order, created_at)
            """)

    # --- Agents ---

    def get_agent(self, agent_id: str) -> Agent | None:
        with self._connect() as conn:
            row = conn.execute("SELECT data FROM agents WHERE id = ?", (agent_id,)).fetchone()
        return Agent.model_validate_json(row[0]) if row else None

    def list_agents(self) -> list[Agent]:
        with self._connect() as conn:
            rows = conn.execute("SELECT data FROM agents ORDER BY created_at, rowid").fetchall()
        return [Agent.model_validate_json(row[0]) for row in rows]

    def save_agent(self, agent: Agent) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO agents (id, created_at, data) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
                """,
                (agent.id, agent.created_at.isoformat(), agent.model_dump_json()),
            )

    def delete_agent(self, agent_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
            return cursor.rowcount > 0

    # --- Pipeline tasks ---

    def get_task(self, task_id: str) -> PipelineTask | None:
        with self._connect() as conn:
            row = conn.execute("SELECT data FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return PipelineTask.model_validate_json(row[0]) if row else None

    def list_tasks(self) -> list[PipelineTask]:
        """All tasks sorted by (order, creation time)."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM tasks ORDER BY sort_order, created_at, rowid"
            ).fetchall()
        return [PipelineTask.model_validate_json(row[0]) for row in rows]

    def save_task(self, task: PipelineTask) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks (id, sort_order, status, created_at, data)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    sort_order = excluded.sort_order,
                    status = excluded.status,
                    data = excluded.data
                """,
                (
                    task.id,
                    task.order,
                    task.status.value,
                    task.created_at.isoformat(),
                    task.model_dump_json(),
                ),
            )

    def delete_task(self, task_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cursor.rowcount > 0

    def clear_finished_tasks(self) -> int:
        """Delete completed and failed tasks. Returns the number removed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE status IN (?, ?)",
                (TaskStatus.COMPLETED.value, TaskStatus.FAILED.value),
            )
            return cursor.rowcount

    # --- Scheduler config ---

    def get_scheduler_config(self) -> SchedulerConfig | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM settings WHERE key = ?", (SCHEDULER_CONFIG_KEY,)
            ).fetchone()
        return SchedulerConfig.model_validate_json(row[0]) if row else None

    def save_scheduler_config(self, config: SchedulerConfig) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO settings (key, data) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET data = excluded.data
                """,
                (SCHEDULER_CONFIG_KEY, config.model_dump_json()),
            )

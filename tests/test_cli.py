"""Tests for the foreman CLI commands."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from foreman.cli.app import app
from foreman.config import ForemanConfig
from foreman.pipeline import TaskStatus
from foreman.store import Store

runner = CliRunner()


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("FOREMAN_DATA_DIR", str(tmp_path / "data"))
    return Store(ForemanConfig.load().db_path)


class TestTaskCommands:
    def test_add_and_list(self, store):
        result = runner.invoke(app, ["tasks", "add", "lint", "fix lint errors", "--order", "2"])
        assert result.exit_code == 0, result.output

        task = store.list_tasks()[0]
        assert task.name == "lint"
        assert task.order == 2
        assert task.flags.skip_permissions is True

        result = runner.invoke(app, ["tasks", "list"])
        assert result.exit_code == 0
        assert "lint" in result.output

    def test_add_safe_codex_task(self, store):
        result = runner.invoke(
            app, ["tasks", "add", "tests", "add tests", "--provider", "codex", "--safe"]
        )
        assert result.exit_code == 0, result.output

        task = store.list_tasks()[0]
        assert task.provider == "codex"
        assert task.flags.skip_permissions is False

    def test_show_by_prefix(self, store):
        runner.invoke(app, ["tasks", "add", "lint", "fix lint errors"])
        task = store.list_tasks()[0]

        result = runner.invoke(app, ["tasks", "show", task.id[:6]])

        assert result.exit_code == 0, result.output
        assert task.id in result.output
        assert "fix lint errors" in result.output

    def test_reset_pending_task_fails(self, store):
        runner.invoke(app, ["tasks", "add", "lint", "fix lint errors"])
        task = store.list_tasks()[0]

        result = runner.invoke(app, ["tasks", "reset", task.id])

        assert result.exit_code == 1

    def test_reset_failed_task(self, store):
        runner.invoke(app, ["tasks", "add", "lint", "fix lint errors"])
        task = store.list_tasks()[0]
        task.status = TaskStatus.FAILED
        task.error = "Agent exited with error"
        store.save_task(task)

        result = runner.invoke(app, ["tasks", "reset", task.id])

        assert result.exit_code == 0, result.output
        assert store.get_task(task.id).status == TaskStatus.PENDING

    def test_update_and_delete(self, store):
        runner.invoke(app, ["tasks", "add", "lint", "fix lint errors"])
        task = store.list_tasks()[0]

        result = runner.invoke(app, ["tasks", "update", task.id, "--model", "opus"])
        assert result.exit_code == 0, result.output
        assert store.get_task(task.id).model == "opus"

        result = runner.invoke(app, ["tasks", "delete", task.id])
        assert result.exit_code == 0
        assert store.list_tasks() == []

    def test_unknown_task(self, store):
        result = runner.invoke(app, ["tasks", "show", "nope"])
        assert result.exit_code == 1

    def test_clear(self, store):
        runner.invoke(app, ["tasks", "add", "a", "x"])
        runner.invoke(app, ["tasks", "add", "b", "x"])
        task = store.list_tasks()[0]
        task.status = TaskStatus.COMPLETED
        store.save_task(task)

        result = runner.invoke(app, ["tasks", "clear"])

        assert result.exit_code == 0
        assert [t.name for t in store.list_tasks()] == ["b"]


class TestConfigCommands:
    def test_set_and_show(self, store):
        result = runner.invoke(app, ["config", "set", "poll_interval", "2.5"])
        assert result.exit_code == 0, result.output
        assert store.get_scheduler_config().poll_interval == 2.5

        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "poll_interval: 2.5s" in result.output

    def test_clear_optional_value(self, store):
        runner.invoke(app, ["config", "set", "admin_email", "ops@example.com"])
        runner.invoke(app, ["config", "set", "admin_email", "none"])

        assert store.get_scheduler_config().admin_email is None

    def test_running_is_not_settable(self, store):
        result = runner.invoke(app, ["config", "set", "running", "true"])
        assert result.exit_code == 1

    def test_invalid_value(self, store):
        result = runner.invoke(app, ["config", "set", "stuck_timeout", "soon"])
        assert result.exit_code == 1


class TestMisc:
    def test_run_without_tasks(self, store):
        result = runner.invoke(app, ["run"])
        assert result.exit_code == 0
        assert "No tasks" in result.output

    def test_agents_list_empty(self, store):
        result = runner.invoke(app, ["agents", "list"])
        assert result.exit_code == 0
        assert "No agents" in result.output

    def test_version(self, store):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "foreman version" in result.output

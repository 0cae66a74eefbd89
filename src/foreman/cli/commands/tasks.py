"""Pipeline task commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from ...config import ForemanConfig
from ...errors import ForemanError
from ...pipeline import service
from ...pipeline.models import TaskFlags
from ...store import Store
from ...supervisor import ProviderKind
from ..output import console, print_error, print_info, print_panel, print_success, print_task_table

app = typer.Typer(help="Manage pipeline tasks")


def get_store() -> Store:
    """Get the store for the configured data directory."""
    return Store(ForemanConfig.load().db_path)


def read_instructions(path: Path | None) -> str | None:
    if path is None:
        return None
    try:
        return path.read_text()
    except OSError as e:
        raise typer.BadParameter(f"Cannot read instructions file: {e}")


@app.command("add")
def add_task(
    name: Annotated[str, typer.Argument(help="Task name")],
    prompt: Annotated[str, typer.Argument(help="Prompt given to the agent")],
    order: Annotated[
        int | None,
        typer.Option("--order", "-o", help="Stage; equal orders run in parallel (default: last)"),
    ] = None,
    directory: Annotated[
        str | None,
        typer.Option("--dir", "-d", help="Working directory (default: scheduler default)"),
    ] = None,
    provider: Annotated[
        ProviderKind | None,
        typer.Option("--provider", "-p", help="Agent CLI to run"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model override"),
    ] = None,
    instructions: Annotated[
        Path | None,
        typer.Option("--instructions", "-i", help="File with seed instructions"),
    ] = None,
    safe: Annotated[
        bool,
        typer.Option("--safe", help="Do not skip permission prompts"),
    ] = False,
    full_auto: Annotated[
        bool,
        typer.Option("--full-auto", help="Run codex in full-auto mode"),
    ] = False,
):
    """Add a task to the pipeline."""
    store = get_store()
    try:
        task = service.add_task(
            store,
            name,
            prompt,
            order=order,
            directory=directory,
            provider=provider,
            model=model,
            instructions=read_instructions(instructions),
            flags=TaskFlags(skip_permissions=not safe, full_auto=full_auto),
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added task {task.id[:8]} at order {task.order}")


@app.command("list")
def list_tasks():
    """List pipeline tasks in run order."""
    tasks = service.list_tasks(get_store())
    if not tasks:
        print_info("No tasks")
        return
    print_task_table(tasks)


def resolve_task_id(store: Store, prefix: str) -> str:
    """Accept a full id or a unique id prefix."""
    matches = [t.id for t in store.list_tasks() if t.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        print_error(f"Task not found: {prefix}")
    else:
        print_error(f"Ambiguous task id: {prefix}")
    raise typer.Exit(1)


@app.command("show")
def show_task(task_id: Annotated[str, typer.Argument(help="Task id or prefix")]):
    """Show a task."""
    store = get_store()
    task = service.get_task(store, resolve_task_id(store, task_id))

    console.print(f"[bold]{escape(task.name)}[/bold] [dim]{task.id}[/dim]")
    console.print(f"  status:    {task.status}")
    console.print(f"  order:     {task.order}")
    console.print(f"  provider:  {task.provider or '(default)'}")
    console.print(f"  model:     {task.model or '(default)'}")
    console.print(f"  directory: {task.directory or '(default)'}")
    console.print(f"  agent:     {task.agent_id or '-'}")
    if task.error:
        console.print(f"  error:     [red]{escape(task.error)}[/red]")
    print_panel(escape(task.prompt), title="Prompt")
    if task.instructions:
        print_panel(escape(task.instructions), title="Instructions")


@app.command("update")
def update_task(
    task_id: Annotated[str, typer.Argument(help="Task id or prefix")],
    name: Annotated[str | None, typer.Option("--name", help="New name")] = None,
    prompt: Annotated[str | None, typer.Option("--prompt", help="New prompt")] = None,
    order: Annotated[int | None, typer.Option("--order", "-o", help="New order")] = None,
    directory: Annotated[str | None, typer.Option("--dir", "-d", help="New directory")] = None,
    provider: Annotated[
        ProviderKind | None, typer.Option("--provider", "-p", help="New provider")
    ] = None,
    model: Annotated[str | None, typer.Option("--model", "-m", help="New model")] = None,
):
    """Edit a pending task."""
    store = get_store()
    try:
        task = service.update_task(
            store,
            resolve_task_id(store, task_id),
            name=name,
            prompt=prompt,
            order=order,
            directory=directory,
            provider=provider,
            model=model,
        )
    except ForemanError as e:
        print_error(e.message)
        raise typer.Exit(1)
    print_success(f"Updated task {task.id[:8]}")


@app.command("reset")
def reset_task(task_id: Annotated[str, typer.Argument(help="Task id or prefix")]):
    """Return a completed or failed task to pending."""
    store = get_store()
    try:
        task = service.reset_task(store, resolve_task_id(store, task_id))
    except ForemanError as e:
        print_error(e.message)
        raise typer.Exit(1)
    print_success(f"Task {task.id[:8]} is pending again")


@app.command("delete")
def delete_task(task_id: Annotated[str, typer.Argument(help="Task id or prefix")]):
    """Delete a task."""
    store = get_store()
    service.delete_task(store, resolve_task_id(store, task_id))
    print_success("Task deleted")


@app.command("clear")
def clear_tasks():
    """Delete every completed or failed task."""
    count = service.clear_finished_tasks(get_store())
    print_success(f"Cleared {count} finished task(s)")

"""Rich console output helpers."""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..events import Event, EventType
from ..pipeline.models import PipelineTask, TaskStatus
from ..runtime.models import Agent, AgentStatus

# Shared console instance
console = Console()
error_console = Console(stderr=True)

STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    AgentStatus.WAITING_INPUT: "yellow",
    AgentStatus.STOPPED: "green",
    AgentStatus.ERROR: "red",
}


def print_error(message: str) -> None:
    """Print an error message."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Create a styled table.

    Args:
        title: Table title
        columns: List of (name, style) tuples
    """
    table = Table(title=title, show_header=True, header_style="bold")
    for name, style in columns:
        table.add_column(name, style=style)
    return table


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "")
    return f"[{style}]{status}[/{style}]" if style else str(status)


def _when(value: datetime | None) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M") if value else "-"


def print_task_table(tasks: list[PipelineTask], title: str = "Pipeline") -> None:
    """Print pipeline tasks in run order."""
    table = create_table(
        title,
        [
            ("Order", "magenta"),
            ("ID", "dim"),
            ("Name", "cyan"),
            ("Status", ""),
            ("Provider", ""),
            ("Agent", "dim"),
            ("Finished", "dim"),
        ],
    )
    for task in tasks:
        table.add_row(
            str(task.order),
            task.id[:8],
            escape(task.name),
            styled_status(task.status),
            task.provider or "(default)",
            task.agent_id[:8] if task.agent_id else "-",
            _when(task.completed_at),
        )
    console.print(table)


def print_agent_table(agents: list[Agent], title: str = "Agents") -> None:
    table = create_table(
        title,
        [
            ("ID", "dim"),
            ("Name", "cyan"),
            ("Status", ""),
            ("Provider", ""),
            ("Cost", "yellow"),
            ("Last activity", "dim"),
        ],
    )
    for agent in agents:
        cost = f"${agent.cost_usd:.4f}" if agent.cost_usd is not None else "-"
        table.add_row(
            agent.id[:8],
            escape(agent.name),
            styled_status(agent.status),
            agent.config.provider,
            cost,
            _when(agent.last_activity),
        )
    console.print(table)


def print_panel(content: str, title: str | None = None) -> None:
    """Print content in a panel."""
    console.print(Panel(content, title=title))


def print_event(event: Event, verbose: bool = False) -> None:
    """Print a one-line summary of a core event."""
    data = event.data
    if event.event_type == EventType.TASK_UPDATE:
        task = data.get("task", {})
        name = escape(str(task.get("name", "")))
        line = f"Task [cyan]{name}[/cyan] -> {styled_status(task.get('status', ''))}"
        if task.get("error"):
            line += f" [dim]({escape(task['error'])})[/dim]"
        console.print(line)
    elif event.event_type == EventType.AGENT_STATUS:
        console.print(
            f"Agent [dim]{data.get('agent_id', '')[:8]}[/dim] -> "
            f"{styled_status(data.get('status', ''))}"
        )
    elif event.event_type == EventType.PIPELINE_COMPLETE:
        failed = data.get("failed", 0)
        style = "yellow" if failed else "green"
        console.print(
            f"[{style}]Pipeline complete:[/{style}] "
            f"{data.get('completed', 0)} completed, {failed} failed"
        )
    elif event.event_type == EventType.SCHEDULER_STATUS:
        print_info("Scheduler running" if data.get("running") else "Scheduler stopped")
    elif event.event_type == EventType.AGENT_MESSAGE and verbose:
        message = data.get("message")
        kind = message.get("type", "?") if isinstance(message, dict) else "?"
        print_info(f"{data.get('agent_id', '')[:8]}: {kind}")

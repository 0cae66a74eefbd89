"""Agent commands."""

from __future__ import annotations

import asyncio
import os
from typing import Annotated

import typer
from rich.markup import escape

from ...config import ForemanConfig
from ...errors import ForemanError
from ...events import Event, EventType
from ...runtime import AgentConfig, AgentFlags, AgentManager, AgentStatus
from ...service import ForemanService, configure_logging
from ...store import Store
from ...supervisor import ProviderKind
from ..output import (
    console,
    print_agent_table,
    print_error,
    print_info,
    print_success,
    styled_status,
)

app = typer.Typer(help="Inspect and run agents")

ROLE_STYLES = {
    "user": "bold",
    "assistant": "",
    "tool": "magenta",
    "system": "dim",
}


def get_store() -> Store:
    return Store(ForemanConfig.load().db_path)


def resolve_agent_id(store: Store, prefix: str) -> str:
    """Accept a full id or a unique id prefix."""
    matches = [a.id for a in store.list_agents() if a.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        print_error(f"Agent not found: {prefix}")
    else:
        print_error(f"Ambiguous agent id: {prefix}")
    raise typer.Exit(1)


@app.command("list")
def list_agents():
    """List agents."""
    agents = get_store().list_agents()
    if not agents:
        print_info("No agents")
        return
    print_agent_table(agents)


@app.command("show")
def show_agent(
    agent_id: Annotated[str, typer.Argument(help="Agent id or prefix")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of recent messages to show"),
    ] = 20,
):
    """Show an agent and its recent messages."""
    store = get_store()
    agent = store.get_agent(resolve_agent_id(store, agent_id))
    assert agent is not None

    console.print(f"[bold]{escape(agent.name)}[/bold] [dim]{agent.id}[/dim]")
    console.print(f"  status:    {styled_status(agent.status)}")
    console.print(f"  provider:  {agent.config.provider}")
    console.print(f"  directory: {agent.working_directory}")
    if agent.worktree_branch:
        console.print(f"  branch:    {agent.worktree_branch}")
    if agent.cost_usd is not None:
        console.print(f"  cost:      ${agent.cost_usd:.4f}")
    if agent.token_usage is not None:
        console.print(
            f"  tokens:    {agent.token_usage.input} in / {agent.token_usage.output} out"
        )

    messages = agent.messages[-limit:] if limit > 0 else []
    if messages:
        console.print()
    for message in messages:
        style = ROLE_STYLES.get(message.role, "")
        text = escape(message.content.rstrip())
        label = f"[{style}]{message.role}[/{style}]" if style else str(message.role)
        console.print(f"{label}: {text}")


@app.command("delete")
def delete_agent(agent_id: Annotated[str, typer.Argument(help="Agent id or prefix")]):
    """Delete an agent and its working copy."""
    store = get_store()
    full_id = resolve_agent_id(store, agent_id)
    asyncio.run(AgentManager(store).delete_agent(full_id))
    print_success("Agent deleted")


def print_agent_message(event: Event) -> None:
    if event.event_type != EventType.AGENT_MESSAGE:
        return
    message = event.data.get("message")
    if not isinstance(message, dict):
        return
    if message.get("type") == "assistant":
        for block in message.get("message", {}).get("content", []) or []:
            if isinstance(block, dict) and block.get("type") == "text":
                console.print(escape(block.get("text", "")))
    elif message.get("type") == "item.completed":
        item = message.get("item") or {}
        if item.get("type") in ("agent_message", "assistant_message") and item.get("text"):
            console.print(escape(item["text"]))


@app.command("spawn")
def spawn_agent(
    prompt: Annotated[str, typer.Argument(help="Prompt given to the agent")],
    name: Annotated[str | None, typer.Option("--name", help="Agent name")] = None,
    directory: Annotated[
        str | None,
        typer.Option("--dir", "-d", help="Working directory (default: current)"),
    ] = None,
    provider: Annotated[
        ProviderKind,
        typer.Option("--provider", "-p", help="Agent CLI to run"),
    ] = ProviderKind.CLAUDE,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model override")] = None,
    skip_permissions: Annotated[
        bool,
        typer.Option("--skip-permissions", help="Bypass permission prompts"),
    ] = False,
    full_auto: Annotated[
        bool,
        typer.Option("--full-auto", help="Run codex in full-auto mode"),
    ] = False,
    resume: Annotated[
        str | None,
        typer.Option("--resume", help="Resume a previous provider session"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Run a single agent in the foreground until it finishes."""
    configure_logging(verbose)
    foreman = ForemanService()
    foreman.events.add_listener(print_agent_message)

    config = AgentConfig(
        provider=provider,
        directory=directory or os.getcwd(),
        prompt=prompt,
        flags=AgentFlags(
            skip_permissions=skip_permissions,
            resume=resume,
            model=model,
            full_auto=full_auto,
        ),
    )
    try:
        agent = asyncio.run(foreman.run_agent(name or prompt[:40], config))
    except ForemanError as e:
        print_error(e.message)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        print_info("Interrupted")
        raise typer.Exit(130)

    console.print(f"Agent {agent.id[:8]} finished: {styled_status(agent.status)}")
    if agent.status == AgentStatus.ERROR:
        raise typer.Exit(1)

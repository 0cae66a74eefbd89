"""Main CLI application using Typer."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from .commands import agents, config, tasks
from .output import console, print_info, print_task_table

app = typer.Typer(
    name="foreman",
    help="Run coding-agent CLIs as a staged pipeline",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(tasks.app, name="tasks")
app.add_typer(agents.app, name="agents")
app.add_typer(config.app, name="config")


@app.command("run")
def run(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging and agent message events"),
    ] = False,
):
    """Run the pipeline until every task has finished.

    Tasks with the same order run in parallel; a higher order starts only
    after every lower one has finished without failures. Ctrl+C stops
    the scheduler and all running agents.
    """
    from ..service import ForemanService, configure_logging
    from .output import print_event

    configure_logging(verbose)
    foreman = ForemanService()

    if not foreman.store.list_tasks():
        print_info("No tasks. Add one with: foreman tasks add NAME PROMPT")
        raise typer.Exit(0)

    foreman.events.add_listener(lambda event: print_event(event, verbose))
    try:
        asyncio.run(foreman.run())
    except KeyboardInterrupt:
        print_info("Interrupted")

    console.print()
    print_task_table(foreman.store.list_tasks())


@app.command("version")
def version():
    """Show version information."""
    from .. import __version__

    console.print(f"foreman version: {__version__}")

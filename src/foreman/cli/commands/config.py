"""Scheduler configuration commands."""

from __future__ import annotations

from typing import Annotated

import typer
from pydantic import ValidationError
from rich.markup import escape

from ...config import ForemanConfig
from ...pipeline.models import SchedulerConfig
from ...store import Store
from ..output import console, print_error, print_info, print_success

app = typer.Typer(help="Manage scheduler configuration")

# running is owned by `foreman run`
SETTABLE_KEYS = tuple(k for k in SchedulerConfig.model_fields if k != "running")
OPTIONAL_KEYS = ("admin_email", "whatsapp_phone", "slack_webhook")


@app.command("show")
def show_config():
    """Show scheduler configuration."""
    config = ForemanConfig.load()
    scheduler = Store(config.db_path).get_scheduler_config() or SchedulerConfig()

    console.print("[cyan]Scheduler Configuration[/cyan]\n")
    console.print(f"  running: {scheduler.running}")
    console.print(f"  default_provider: {scheduler.default_provider}")
    console.print(f"  default_directory: {scheduler.default_directory}")
    console.print(f"  poll_interval: {scheduler.poll_interval}s")
    console.print(f"  stuck_timeout: {scheduler.stuck_timeout}s")
    console.print(f"  admin_email: {scheduler.admin_email or '-'}")
    console.print(f"  whatsapp_phone: {scheduler.whatsapp_phone or '-'}")
    console.print(f"  slack_webhook: {'(set)' if scheduler.slack_webhook else '-'}")
    first_line = scheduler.instructions.strip().splitlines()[0] if scheduler.instructions.strip() else ""
    console.print(f"  instructions: {escape(first_line)}...")

    console.print("\n[bold]Paths:[/bold]")
    console.print(f"  config file: {config.CONFIG_FILE}")
    console.print(f"  database: {config.db_path}")


@app.command("set")
def set_config(
    key: Annotated[str, typer.Argument(help="Config key (e.g., 'poll_interval')")],
    value: Annotated[str, typer.Argument(help="Config value ('none' clears optional keys)")],
):
    """Set a scheduler configuration value.

    Available keys:
    - instructions: Default seed instructions for pipeline agents
    - default_directory: Directory used by tasks without one
    - default_provider: claude or codex
    - poll_interval: Seconds between scheduler ticks
    - stuck_timeout: Seconds before a waiting agent is reported as stuck
    - admin_email, whatsapp_phone, slack_webhook: Notification targets
    """
    key_lower = key.lower()
    if key_lower not in SETTABLE_KEYS:
        print_error(f"Unknown config key: {key}")
        console.print(f"Available: {', '.join(SETTABLE_KEYS)}")
        raise typer.Exit(1)

    new_value: str | None = value
    if key_lower in OPTIONAL_KEYS and value.lower() in ("none", ""):
        new_value = None

    store = Store(ForemanConfig.load().db_path)
    current = store.get_scheduler_config() or SchedulerConfig()
    data = current.model_dump()
    data[key_lower] = new_value
    try:
        updated = SchedulerConfig.model_validate(data)
    except ValidationError as e:
        print_error(f"Invalid value for {key_lower}: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    store.save_scheduler_config(updated)
    print_success(f"Set {key_lower} = {new_value}")
    if current.running:
        print_info("A running scheduler picks this up on its next tick")

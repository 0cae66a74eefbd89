"""Application configuration.

Loads from ~/.foreman/config.yaml with environment variable overrides.
Scheduler policy (poll interval, stuck timeout, notification targets) is
not here: it lives in the store so it can change while the loop runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ForemanConfig:
    """Configuration for the foreman process."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".foreman" / "data")
    claude_bin: str = "claude"
    codex_bin: str = "codex"

    # SMTP (email notifications)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_password: str = ""  # env only, never saved
    smtp_from: str = "agent-monitor@localhost"

    # Twilio (WhatsApp notifications)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""  # env only, never saved
    twilio_whatsapp_from: str = ""

    slack_webhook_url: str = ""

    agent_retention: float = 0.0  # seconds a finished agent is kept; 0 keeps forever
    cleanup_interval: float = 60.0

    CONFIG_FILE: Path = field(
        default_factory=lambda: Path.home() / ".foreman" / "config.yaml",
        repr=False,
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / "foreman.db"

    @classmethod
    def load(cls, config_path: Path | None = None) -> ForemanConfig:
        """Load config from file and environment variables.

        Priority (highest wins):
          1. Environment variables (FOREMAN_DATA_DIR, CLAUDE_BIN, SMTP_HOST, etc.)
          2. Config file (~/.foreman/config.yaml or custom path)
          3. Defaults

        Args:
            config_path: Optional path to a YAML config file.

        Returns:
            Populated ForemanConfig instance.
        """
        config = cls()
        file_path = config_path or config.CONFIG_FILE

        if file_path.exists():
            try:
                with open(file_path) as f:
                    data = yaml.safe_load(f) or {}

                if "data_dir" in data:
                    config.data_dir = Path(data["data_dir"]).expanduser()
                config.claude_bin = data.get("claude_bin", config.claude_bin)
                config.codex_bin = data.get("codex_bin", config.codex_bin)
                config.smtp_host = data.get("smtp_host", config.smtp_host)
                config.smtp_port = int(data.get("smtp_port", config.smtp_port))
                config.smtp_secure = bool(data.get("smtp_secure", config.smtp_secure))
                config.smtp_user = data.get("smtp_user", config.smtp_user)
                config.smtp_from = data.get("smtp_from", config.smtp_from)
                config.twilio_account_sid = data.get(
                    "twilio_account_sid", config.twilio_account_sid
                )
                config.twilio_whatsapp_from = data.get(
                    "twilio_whatsapp_from", config.twilio_whatsapp_from
                )
                config.slack_webhook_url = data.get("slack_webhook_url", config.slack_webhook_url)
                config.agent_retention = float(data.get("agent_retention", config.agent_retention))
                config.cleanup_interval = float(
                    data.get("cleanup_interval", config.cleanup_interval)
                )
            except (yaml.YAMLError, OSError, ValueError, TypeError, AttributeError):
                # Ignore the whole file rather than apply part of it
                config = cls()

        if env_data := os.environ.get("FOREMAN_DATA_DIR"):
            config.data_dir = Path(env_data).expanduser()
        config.claude_bin = os.environ.get("CLAUDE_BIN", config.claude_bin)
        config.codex_bin = os.environ.get("CODEX_BIN", config.codex_bin)

        config.smtp_host = os.environ.get("SMTP_HOST", config.smtp_host)
        if env_port := os.environ.get("SMTP_PORT"):
            config.smtp_port = int(env_port)
        if env_secure := os.environ.get("SMTP_SECURE"):
            config.smtp_secure = env_secure == "true"
        config.smtp_user = os.environ.get("SMTP_USER", config.smtp_user)
        config.smtp_password = os.environ.get("SMTP_PASS", config.smtp_password)
        config.smtp_from = os.environ.get("SMTP_FROM", config.smtp_from)

        config.twilio_account_sid = os.environ.get("TWILIO_ACCOUNT_SID", config.twilio_account_sid)
        config.twilio_auth_token = os.environ.get("TWILIO_AUTH_TOKEN", config.twilio_auth_token)
        config.twilio_whatsapp_from = os.environ.get(
            "TWILIO_WHATSAPP_FROM", config.twilio_whatsapp_from
        )
        config.slack_webhook_url = os.environ.get("SLACK_WEBHOOK_URL", config.slack_webhook_url)

        if env_retention := os.environ.get("FOREMAN_AGENT_RETENTION"):
            config.agent_retention = float(env_retention)

        return config

    def save(self, config_path: Path | None = None) -> None:
        """Save current config to file. Secrets are not written.

        Args:
            config_path: Optional path override.
        """
        file_path = config_path or self.CONFIG_FILE
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "data_dir": str(self.data_dir),
            "claude_bin": self.claude_bin,
            "codex_bin": self.codex_bin,
            "smtp_host": self.smtp_host,
            "smtp_port": self.smtp_port,
            "smtp_secure": self.smtp_secure,
            "smtp_user": self.smtp_user,
            "smtp_from": self.smtp_from,
            "twilio_account_sid": self.twilio_account_sid,
            "twilio_whatsapp_from": self.twilio_whatsapp_from,
            "slack_webhook_url": self.slack_webhook_url,
            "agent_retention": self.agent_retention,
            "cleanup_interval": self.cleanup_interval,
        }

        with open(file_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)

    def binary_for(self, provider: str) -> str:
        """Executable name for a provider kind."""
        if provider == "codex":
            return self.codex_bin
        return self.claude_bin

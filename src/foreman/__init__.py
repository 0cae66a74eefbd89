"""Foreman: run coding-agent CLIs as supervised processes and staged pipelines.

Foreman launches external agent CLIs (Claude Code, Codex), tracks their
progress from the JSON they stream, and drives an ordered pipeline of
tasks to completion:
- Process supervision with graceful stop and kill escalation
- Persisted agent state with a forward-only status machine
- Staged pipeline scheduling with failure blocking
- Email, WhatsApp and Slack notifications

Usage:
    # CLI
    $ foreman tasks add lint "fix all lint errors" --order 0
    $ foreman run

    # Python API
    from foreman import ForemanService

    service = ForemanService()
    await service.run()
"""

try:
    from importlib.metadata import version as _get_version

    __version__ = _get_version("foreman")
except Exception:
    __version__ = "0.0.0-dev"


# Core exports (lazy imports for faster startup)
def __getattr__(name: str):
    """Lazy import for main classes."""
    if name == "ForemanService":
        from .service import ForemanService

        return ForemanService
    if name == "AgentManager":
        from .runtime import AgentManager

        return AgentManager
    if name == "PipelineScheduler":
        from .pipeline import PipelineScheduler

        return PipelineScheduler
    if name == "ForemanConfig":
        from .config import ForemanConfig

        return ForemanConfig
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "ForemanService",
    "AgentManager",
    "PipelineScheduler",
    "ForemanConfig",
]

"""Process supervision for external agent CLIs."""

from .decoder import DecodedLine, LineDecoder
from .process import (
    STOP_GRACE_PERIOD,
    AgentProcess,
    ErrorEvent,
    ExitEvent,
    MessageEvent,
    ProcessEvent,
    RawEvent,
    StderrEvent,
)
from .providers import (
    Capabilities,
    ClaudeProvider,
    CodexProvider,
    Provider,
    ProviderKind,
    Signal,
    SignalKind,
    StartOptions,
    get_provider,
)

__all__ = [
    "STOP_GRACE_PERIOD",
    "AgentProcess",
    "Capabilities",
    "ClaudeProvider",
    "CodexProvider",
    "DecodedLine",
    "ErrorEvent",
    "ExitEvent",
    "LineDecoder",
    "MessageEvent",
    "ProcessEvent",
    "Provider",
    "ProviderKind",
    "RawEvent",
    "Signal",
    "SignalKind",
    "StartOptions",
    "StderrEvent",
    "get_provider",
]

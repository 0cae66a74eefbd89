"""Agent CLI providers.

Each provider knows how to build its command line and how to turn the JSON
objects it prints into canonical signals. Adding a backend means adding a
Provider subclass and registering it in PROVIDERS.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ProviderKind(StrEnum):
    CLAUDE = "claude"
    CODEX = "codex"


class SignalKind(StrEnum):
    ASSISTANT_TEXT = "assistant_text"
    TOOL_USE = "tool_use"
    REASONING = "reasoning"
    USAGE = "usage"
    RESULT = "result"
    PERMISSION_PROMPT = "permission_prompt"


@dataclass
class Signal:
    """Canonical meaning extracted from one provider payload."""

    kind: SignalKind
    text: str = ""
    cost_usd: float | None = None
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class Capabilities:
    assistant_text: bool = True
    tool_use: bool = True
    usage_totals: bool = True
    permission_prompt: bool = False
    follow_up_input: bool = False
    # Process keeps running after its result event and must be stopped
    lingers_after_result: bool = False


@dataclass
class StartOptions:
    """Options for launching one agent process."""

    directory: str
    prompt: str
    skip_permissions: bool = False
    resume: str | None = None
    model: str | None = None
    full_auto: bool = False
    interactive: bool = False


class Provider(ABC):
    """One agent CLI backend."""

    kind: ProviderKind
    capabilities: Capabilities
    seed_filename: str = "CLAUDE.md"

    @abstractmethod
    def build_args(self, options: StartOptions) -> list[str]:
        """Arguments after the executable name."""

    @abstractmethod
    def normalize(self, payload: Any) -> list[Signal]:
        """Translate one decoded JSON line into canonical signals."""

    def keeps_stdin_open(self, options: StartOptions) -> bool:
        return False

    def initial_input(self, options: StartOptions) -> bytes | None:
        """Bytes written to stdin right after spawn, if any."""
        return None

    def encode_user_message(self, text: str) -> bytes | None:
        """Follow-up message for stdin, or None if the provider cannot be steered."""
        return None


class ClaudeProvider(Provider):
    """Claude Code CLI in print mode with stream-json output."""

    kind = ProviderKind.CLAUDE
    capabilities = Capabilities(
        permission_prompt=True,
        follow_up_input=True,
        lingers_after_result=True,
    )
    seed_filename = "CLAUDE.md"

    def build_args(self, options: StartOptions) -> list[str]:
        if options.interactive:
            args = ["-p", "--input-format", "stream-json"]
        else:
            args = ["-p", options.prompt]
        args.extend(["--output-format", "stream-json", "--verbose"])

        if options.skip_permissions:
            args.append("--dangerously-skip-permissions")
        if options.resume:
            args.extend(["--resume", options.resume])
        if options.model:
            args.extend(["--model", options.model])
        return args

    def keeps_stdin_open(self, options: StartOptions) -> bool:
        return options.interactive

    def initial_input(self, options: StartOptions) -> bytes | None:
        if options.interactive:
            return self.encode_user_message(options.prompt)
        return None

    def encode_user_message(self, text: str) -> bytes | None:
        msg = {
            "type": "user",
            "message": {"role": "user", "content": [{"type": "text", "text": text}]},
        }
        return (json.dumps(msg) + "\n").encode("utf-8")

    def normalize(self, payload: Any) -> list[Signal]:
        if not isinstance(payload, dict):
            return []

        signals: list[Signal] = []
        msg_type = payload.get("type")

        if msg_type == "assistant":
            message = payload.get("message")
            if isinstance(message, dict):
                for block in message.get("content") or []:
                    if not isinstance(block, dict):
                        continue
                    if block.get("type") == "text" and block.get("text"):
                        signals.append(Signal(SignalKind.ASSISTANT_TEXT, text=block["text"]))
                    elif block.get("type") == "tool_use":
                        name = block.get("name") or "unknown"
                        signals.append(Signal(SignalKind.TOOL_USE, text=f"Using tool: {name}"))

            # Older CLIs flattened the content into subtype/text fields
            if payload.get("subtype") == "text" and payload.get("text"):
                signals.append(Signal(SignalKind.ASSISTANT_TEXT, text=payload["text"]))
            if payload.get("subtype") == "tool_use":
                name = payload.get("tool_name") or "unknown"
                signals.append(Signal(SignalKind.TOOL_USE, text=f"Using tool: {name}"))

        if msg_type == "result":
            result = payload.get("result")
            cost = payload.get("total_cost_usd")
            if not cost and isinstance(result, dict):
                cost = result.get("cost_usd")
            if cost:
                signals.append(Signal(SignalKind.USAGE, cost_usd=float(cost)))
            signals.append(Signal(SignalKind.RESULT))

        if self.is_permission_prompt(payload):
            text = payload.get("text") or json.dumps(payload)
            signals.append(Signal(SignalKind.PERMISSION_PROMPT, text=text))

        return signals

    @staticmethod
    def is_permission_prompt(payload: dict[str, Any]) -> bool:
        # No structured field exists for this; match the wording of the prompt.
        if payload.get("type") == "assistant" and payload.get("subtype") == "permission":
            return True
        text = str(payload.get("text") or "").lower()
        return "permission" in text and "allow" in text


class CodexProvider(Provider):
    """Codex CLI in exec mode with JSONL output. Takes a single upfront task."""

    kind = ProviderKind.CODEX
    capabilities = Capabilities()
    seed_filename = "AGENTS.md"

    TOOL_ITEM_TYPES = ("tool_call", "function_call", "command_execution")

    def build_args(self, options: StartOptions) -> list[str]:
        args = ["exec", "--json"]
        if options.full_auto:
            args.append("--full-auto")
        if options.skip_permissions:
            args.append("--dangerously-bypass-approvals-and-sandbox")
        if options.model:
            args.extend(["--model", options.model])
        if options.resume:
            args.extend(["resume", options.resume])
        args.append(options.prompt)
        return args

    def normalize(self, payload: Any) -> list[Signal]:
        if not isinstance(payload, dict):
            return []

        signals: list[Signal] = []
        msg_type = payload.get("type")
        item = payload.get("item")

        if msg_type == "item.completed" and isinstance(item, dict):
            item_type = item.get("type")
            if item_type == "agent_message":
                signals.append(Signal(SignalKind.ASSISTANT_TEXT, text=item.get("text") or ""))
            elif item_type in self.TOOL_ITEM_TYPES:
                detail = item.get("text") or item.get("command") or json.dumps(item)
                signals.append(Signal(SignalKind.TOOL_USE, text=f"Tool: {detail}"))
            elif item_type == "reasoning":
                signals.append(Signal(SignalKind.REASONING, text=item.get("text") or ""))

        if msg_type == "turn.completed":
            usage = payload.get("usage")
            if isinstance(usage, dict):
                signals.append(
                    Signal(
                        SignalKind.USAGE,
                        input_tokens=int(usage.get("input_tokens") or 0),
                        output_tokens=int(usage.get("output_tokens") or 0),
                    )
                )
            signals.append(Signal(SignalKind.RESULT))

        return signals


PROVIDERS: dict[ProviderKind, Provider] = {
    ProviderKind.CLAUDE: ClaudeProvider(),
    ProviderKind.CODEX: CodexProvider(),
}


def get_provider(kind: str | ProviderKind) -> Provider:
    """Look up a provider by kind.

    Raises:
        ValueError: If the kind is unknown.
    """
    try:
        return PROVIDERS[ProviderKind(kind)]
    except ValueError:
        raise ValueError(f"Unknown provider: {kind}") from None

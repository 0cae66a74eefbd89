"""AgentProcess - supervises one external agent CLI subprocess.

The process is started with asyncio, its stdout is decoded as line-delimited
JSON and every decoded line is reported to the owner as a ProcessEvent.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Union

from .decoder import DecodedLine, LineDecoder
from .providers import Provider, Signal, StartOptions

logger = logging.getLogger(__name__)

# Seconds between SIGTERM and SIGKILL in stop()
STOP_GRACE_PERIOD = 5.0

CHUNK_SIZE = 4096


@dataclass
class MessageEvent:
    payload: Any
    signals: list[Signal] = field(default_factory=list)


@dataclass
class RawEvent:
    text: str


@dataclass
class StderrEvent:
    text: str


@dataclass
class ExitEvent:
    code: int | None  # None when killed by a signal


@dataclass
class ErrorEvent:
    error: BaseException


ProcessEvent = Union[MessageEvent, RawEvent, StderrEvent, ExitEvent, ErrorEvent]


class AgentProcess:
    """Owns the OS-level lifecycle of one agent process."""

    def __init__(
        self,
        provider: Provider,
        *,
        binary: str | None = None,
        on_event: Callable[[ProcessEvent], None] | None = None,
        grace_period: float = STOP_GRACE_PERIOD,
    ):
        self.provider = provider
        self.binary = binary or provider.kind.value
        self.grace_period = grace_period
        self._on_event = on_event
        self._process: asyncio.subprocess.Process | None = None
        self._pid: int | None = None
        self._decoder = LineDecoder()
        self._stdin_open = False
        self._started = False
        self._watch_task: asyncio.Task[None] | None = None
        self._kill_task: asyncio.Task[None] | None = None
        self._exited = asyncio.Event()
        self._exit_code: int | None = None

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def is_running(self) -> bool:
        return self._process is not None

    def build_command(self, options: StartOptions) -> list[str]:
        return [self.binary, *self.provider.build_args(options)]

    async def start(self, options: StartOptions) -> bool:
        """Spawn the process.

        Returns:
            True if the process was spawned. On failure an ErrorEvent is
            emitted and False is returned.
        """
        if self._started:
            raise RuntimeError("AgentProcess can only be started once")
        self._started = True

        cmd = self.build_command(options)
        logger.debug("Spawning %s in %s", cmd[0], options.directory)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.directory,
                env={**os.environ},
            )
        except OSError as e:
            logger.error("Failed to spawn %s: %s", self.binary, e)
            self._exited.set()
            self._emit(ErrorEvent(e))
            return False

        self._pid = self._process.pid
        stdin = self._process.stdin

        initial = self.provider.initial_input(options)
        if initial and stdin is not None:
            stdin.write(initial)

        if self.provider.keeps_stdin_open(options):
            self._stdin_open = True
        elif stdin is not None:
            stdin.close()

        self._watch_task = asyncio.create_task(self._watch(), name=f"agent-process-{self._pid}")
        return True

    async def wait(self) -> int | None:
        """Wait for the process to exit and return its exit code."""
        await self._exited.wait()
        return self._exit_code

    def send_message(self, text: str) -> bool:
        """Write a follow-up message to stdin.

        A no-op (returning False) when stdin is closed or the provider
        cannot take input after the initial task.
        """
        if self._process is None or not self._stdin_open:
            return False
        data = self.provider.encode_user_message(text)
        stdin = self._process.stdin
        if data is None or stdin is None or stdin.is_closing():
            return False
        try:
            stdin.write(data)
        except (BrokenPipeError, ConnectionResetError):
            self._stdin_open = False
            return False
        return True

    def interrupt(self) -> None:
        """Ask the process to abort its current step."""
        if self._process is not None:
            with contextlib.suppress(ProcessLookupError):
                self._process.send_signal(signal.SIGINT)

    def stop(self) -> None:
        """SIGTERM now, SIGKILL if still alive after the grace period."""
        if self._process is None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._process.terminate()
        if self._kill_task is None:
            self._kill_task = asyncio.create_task(self._escalate())

    async def _escalate(self) -> None:
        await asyncio.sleep(self.grace_period)
        if self._process is not None:
            logger.warning(
                "Process %s did not exit %.0fs after SIGTERM, killing", self._pid, self.grace_period
            )
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()

    # --- Stream handling ---

    async def _watch(self) -> None:
        proc = self._process
        assert proc is not None
        await asyncio.gather(
            self._read_stdout(proc.stdout),
            self._read_stderr(proc.stderr),
        )
        returncode = await proc.wait()
        self._finish(returncode)

    async def _read_stdout(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            self._dispatch(self._decoder.feed(text_decoder.decode(chunk)))
        self._dispatch(self._decoder.feed(text_decoder.decode(b"", final=True)))
        self._dispatch(self._decoder.flush())

    async def _read_stderr(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            text = text_decoder.decode(chunk)
            if text:
                self._emit(StderrEvent(text))

    def _dispatch(self, lines: list[DecodedLine]) -> None:
        for line in lines:
            if line.is_json:
                self._emit(MessageEvent(line.payload, self.provider.normalize(line.payload)))
            else:
                self._emit(RawEvent(line.raw or ""))

    def _finish(self, returncode: int) -> None:
        if self._kill_task is not None:
            self._kill_task.cancel()
            self._kill_task = None

        # asyncio reports death-by-signal as a negative return code
        self._exit_code = returncode if returncode >= 0 else None
        self._process = None
        self._pid = None
        self._stdin_open = False
        self._exited.set()
        self._emit(ExitEvent(self._exit_code))

    def _emit(self, event: ProcessEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Process event handler failed for %s", type(event).__name__)

"""Line-delimited JSON decoding for agent stdout."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass
class DecodedLine:
    """One complete line from the stream.

    ``payload`` is set for valid JSON; ``raw`` holds the text otherwise.
    """

    payload: Any = None
    raw: str | None = None

    @property
    def is_json(self) -> bool:
        return self.raw is None


class LineDecoder:
    """Splits a chunked text stream into JSON lines.

    A partial line at the end of a chunk is kept and prefixed to the next
    chunk before splitting again.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[DecodedLine]:
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [decoded for line in lines if (decoded := self._decode(line)) is not None]

    def flush(self) -> list[DecodedLine]:
        """Decode whatever is left once the stream has ended."""
        rest, self._buffer = self._buffer, ""
        decoded = self._decode(rest)
        return [decoded] if decoded is not None else []

    @staticmethod
    def _decode(line: str) -> DecodedLine | None:
        trimmed = line.strip()
        if not trimmed:
            return None
        try:
            return DecodedLine(payload=json.loads(trimmed))
        except json.JSONDecodeError:
            return DecodedLine(raw=trimmed)

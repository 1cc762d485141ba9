"""Incremental decoder for ``text/event-stream`` chat-completion responses.

OpenAI-compatible servers stream lines such as::

    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

Network chunks do not respect line boundaries, so the decoder keeps the
trailing partial line in ``buffer`` until the rest arrives.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class SSEEvent:
    data: Optional[dict] = None
    done: bool = False

    @property
    def text(self) -> str:
        """Content delta carried by the event ('' when none)."""
        if not self.data:
            return ""
        choices = self.data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        choice = choices[0]
        for key in ("delta", "message"):
            part: Any = choice.get(key)
            if isinstance(part, dict) and isinstance(part.get("content"), str):
                return part["content"]
        return ""


class SSEDecoder:
    """Turn arbitrary text chunks into complete ``data:`` events."""

    def __init__(self):
        self.buffer = ""

    def feed(self, chunk: str) -> list[SSEEvent]:
        self.buffer += chunk
        lines = self.buffer.split("\n")
        self.buffer = lines.pop()
        events = (self._parse_line(line) for line in lines)
        return [event for event in events if event is not None]

    def flush(self) -> list[SSEEvent]:
        """Decode whatever is left once the stream has ended."""
        rest, self.buffer = self.buffer, ""
        event = self._parse_line(rest)
        return [event] if event is not None else []

    @staticmethod
    def _parse_line(line: str) -> Optional[SSEEvent]:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return SSEEvent(done=True)
        try:
            data = json.loads(payload)
        except ValueError:
            logger.debug("Dropping unparsable stream line: %.200s", payload)
            return None
        if not isinstance(data, dict):
            return None
        return SSEEvent(data=data)

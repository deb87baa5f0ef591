"""Newline-delimited JSON framing for the article writer stream.

Frames may be split across network reads, and a UTF-8 character may be split
across chunks; both are buffered until complete. An optional SSE ``data: ``
prefix is accepted so the same decoder reads event-stream bodies.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, Iterator

logger = logging.getLogger(__name__)

FRAME_SEPARATOR = "\n"
_SSE_PREFIX = "data:"

EVENT_TYPES = frozenset({"article_created", "progress", "token", "complete", "error", "warning"})


def encode_frame(event: dict[str, Any]) -> bytes:
    """Serialize one event as a single NDJSON line."""
    return (json.dumps(event, ensure_ascii=False) + FRAME_SEPARATOR).encode("utf-8")


class FrameDecoder:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, chunk: bytes) -> Iterator[dict[str, Any]]:
        """Yield every complete event contained in the data received so far."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split(FRAME_SEPARATOR)
        for line in lines:
            event = self._parse(line)
            if event is not None:
                yield event

    def flush(self) -> Iterator[dict[str, Any]]:
        """Parse whatever is left once the body has ended (a final frame with no newline)."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        event = self._parse(line)
        if event is not None:
            yield event

    @property
    def has_partial_frame(self) -> bool:
        return bool(self._buffer.strip())

    @staticmethod
    def _parse(line: str) -> dict[str, Any] | None:
        line = line.strip()
        if line.startswith(_SSE_PREFIX):
            line = line[len(_SSE_PREFIX):].strip()
        if not line:
            return None
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream frame: %.80s", line)
            return None
        if not isinstance(event, dict) or event.get("type") not in EVENT_TYPES:
            logger.warning("Skipping stream frame with unknown type: %.80s", line)
            return None
        return event

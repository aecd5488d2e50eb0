"""Serialization of relay events into the client-facing SSE protocol.

Each frame is ``data: <payload>\\n\\n`` where the payload is one of
``{"delta": "..."}``, ``{"error": "<kind>"}`` or the literal ``[DONE]``.
"""

import asyncio
import json
from collections.abc import AsyncGenerator

from relay.models import ContentDelta, Done, StreamError, StreamEvent

DONE_FRAME = "data: [DONE]\n\n"


def _frame(payload: dict[str, str]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class StreamEncoder:
    """Encodes one response's events and enforces a single terminator."""

    def __init__(self) -> None:
        self.closed = False

    def encode(self, event: StreamEvent) -> str:
        """Return the SSE frame for ``event``.

        Raises:
            RuntimeError: If called after the terminal ``Done`` frame.
        """
        if self.closed:
            raise RuntimeError("Stream already terminated")

        if isinstance(event, ContentDelta):
            return _frame({"delta": event.text})
        if isinstance(event, StreamError):
            return _frame({"error": event.kind})
        if isinstance(event, Done):
            self.closed = True
            return DONE_FRAME
        raise TypeError(f"Unsupported stream event: {event!r}")


def error_body(kind: str) -> str:
    """Complete response body for a request rejected before streaming."""
    return _frame({"error": kind}) + DONE_FRAME


async def tool_result_deltas(
    text: str, slice_size: int = 50, delay: float = 0.0
) -> AsyncGenerator[ContentDelta]:
    """Yield ``text`` as fixed-size deltas, pausing between them.

    Tool output arrives all at once; slicing it keeps the token-by-token
    rendering cadence the chat widget shows for model text.
    """
    for start in range(0, len(text), slice_size):
        if start and delay > 0:
            await asyncio.sleep(delay)
        yield ContentDelta(text[start:start + slice_size])

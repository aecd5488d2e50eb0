"""Incremental decoder for the gateway's chat-completion event stream.

The gateway answers with Server-Sent Events of OpenAI-style delta chunks::

    data: {"choices":[{"delta":{"content":"Bună"}}]}

    data: {"choices":[{"delta":{"tool_calls":[{"index":0,"function":{"arguments":"{\\"check"}}]}}]}

    data: [DONE]

Network reads split these frames at arbitrary byte offsets (including in
the middle of a multi-byte UTF-8 character), so the decoder keeps a
carry-over buffer and only interprets newline-terminated lines.
"""

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

import httpx

from relay.errors import UpstreamError
from relay.models import ToolCallFragment, UpstreamEvent

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


class StreamDecoder:
    """Turns raw upstream bytes into :class:`UpstreamEvent` objects.

    Frames that cannot be parsed are skipped and counted in
    ``skipped_frames`` rather than failing the stream. An inline gateway
    error ends decoding: the events before it are still returned by
    :meth:`feed`, and :meth:`raise_for_error` raises it afterwards.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.finished = False
        self.skipped_frames = 0
        self.error: UpstreamError | None = None

    def feed(self, chunk: bytes) -> list[UpstreamEvent]:
        """Consume one network read and return the events it completed."""
        self.raise_for_error()
        if self.finished:
            return []

        self._buffer += self._utf8.decode(chunk)
        events: list[UpstreamEvent] = []

        while not self.finished:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            try:
                event = self._parse_line(line.removesuffix("\r"))
            except UpstreamError as e:
                self.error = e
                self.finished = True
                break
            if event is not None:
                events.append(event)

        return events

    def raise_for_error(self) -> None:
        """Raise the gateway error frame met by an earlier :meth:`feed`."""
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        """Account for an unterminated trailing line when the stream ends."""
        self._buffer += self._utf8.decode(b"", final=True)
        if self._buffer.strip() and not self.finished:
            logger.debug("Dropping unterminated upstream line: %r", self._buffer[:80])
            self.skipped_frames += 1
        self._buffer = ""

    def _parse_line(self, line: str) -> UpstreamEvent | None:
        # Blank lines separate events; ":" lines are keep-alive comments;
        # other SSE fields (event:, id:, retry:) carry nothing we use.
        if not line.startswith("data:"):
            return None

        payload = line[len("data:"):].strip()
        if payload == DONE_MARKER:
            self.finished = True
            return None
        if not payload:
            return None

        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping unparsable upstream frame: %r", payload[:80])
            self.skipped_frames += 1
            return None

        if isinstance(parsed, dict) and parsed.get("error"):
            raise UpstreamError(message=f"Gateway reported an error: {parsed['error']}")

        try:
            return self._extract_event(parsed)
        except (AttributeError, TypeError, ValueError, KeyError, IndexError):
            logger.debug("Skipping malformed upstream frame: %r", payload[:80])
            self.skipped_frames += 1
            return None

    @staticmethod
    def _extract_event(parsed: Any) -> UpstreamEvent | None:
        choices = parsed.get("choices")
        if not choices:
            # Usage or metadata frame.
            return None

        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        if not isinstance(content, str):
            content = None
        fragments = [
            _to_fragment(raw) for raw in delta.get("tool_calls") or []
        ]
        if not content and not fragments:
            return None
        return UpstreamEvent(content=content or None, tool_calls=fragments)


def _text_field(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"tool call {field_name} is not a string: {value!r}")
    return value


def _to_fragment(raw: dict[str, Any]) -> ToolCallFragment:
    """Build a fragment, raising ``TypeError`` for wrongly typed fields."""
    function = raw.get("function") or {}
    index = raw.get("index")
    return ToolCallFragment(
        index=int(index) if index is not None else 0,
        id=_text_field(raw.get("id"), "id") or None,
        name=_text_field(function.get("name"), "name") or None,
        arguments=_text_field(function.get("arguments"), "arguments"),
    )


async def decode_stream(
    chunks: AsyncIterator[bytes],
    decoder: StreamDecoder,
    deadline: float | None = None,
) -> AsyncGenerator[UpstreamEvent]:
    """Yield events from an upstream byte stream until ``[DONE]`` or EOF.

    Args:
        chunks: Raw body reads from the gateway response.
        decoder: Decoder holding the carry-over state for this request.
        deadline: Absolute ``loop.time()`` by which the whole stream must
            have been read.

    Raises:
        UpstreamError: On a transport failure, an inline gateway error, or
            when the deadline passes.
    """
    iterator = aiter(chunks)
    try:
        while not decoder.finished:
            try:
                async with asyncio.timeout_at(deadline):
                    chunk = await anext(iterator)
            except StopAsyncIteration:
                break
            for event in decoder.feed(chunk):
                yield event
            decoder.raise_for_error()
    except TimeoutError as e:
        raise UpstreamError(message="Upstream stream exceeded its deadline") from e
    except httpx.HTTPError as e:
        raise UpstreamError(message=f"Upstream transport error: {e}") from e
    finally:
        decoder.close()

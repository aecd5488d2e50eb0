"""Core relay that streams gateway completions and splices in tool results."""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import AsyncExitStack
from typing import Any

from openai import AsyncOpenAI

from relay.ToolExecutor import ToolExecutor
from relay.config import RelaySettings
from relay.errors import AI_RATE_LIMIT, INTERNAL_ERROR, UPSTREAM_ERROR, RelayError, UpstreamError
from relay.models import ChatRequest, ContentDelta, Done, StreamError, StreamEvent, ToolCall
from relay.prompts import get_system_prompt
from relay.stream_decoder import StreamDecoder, decode_stream
from relay.stream_encoder import tool_result_deltas
from relay.tool_calls import ToolCallAccumulator
from relay.tools import TOOLS
from relay.upstream import open_completion_stream

logger = logging.getLogger(__name__)


class ChatRelay:
    """Relays chat requests to the model gateway, one session per request.

    Holds only immutable collaborators, so a single instance serves every
    concurrent request.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        executor: ToolExecutor,
        settings: RelaySettings,
    ) -> None:
        """Initialize the relay.

        Args:
            client: Gateway client (see :func:`relay.upstream.build_client`).
            executor: Read-only tool executor backed by the listings database.
            settings: Relay settings.
        """
        self._client = client
        self._executor = executor
        self._settings = settings

    @property
    def settings(self) -> RelaySettings:
        return self._settings

    def build_messages(self, request: ChatRequest) -> list[dict[str, str]]:
        """System prompt, the most recent history turns, then the new message."""
        history = request.conversation_history
        if self._settings.history_turns > 0:
            history = history[-self._settings.history_turns:]
        else:
            history = []

        return [
            {"role": "system", "content": get_system_prompt(request.language)},
            *({"role": turn.role, "content": turn.content} for turn in history),
            {"role": "user", "content": request.message},
        ]

    def build_payload(self, request: ChatRequest) -> dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": self.build_messages(request),
            "tools": TOOLS,
            "tool_choice": "auto",
            "stream": True,
            "max_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
        }

    async def open(self, request: ChatRequest) -> "RelaySession":
        """Open the upstream stream for ``request``.

        Nothing has been sent to the client yet when this raises, so the
        caller can still pick the HTTP status.

        Raises:
            UpstreamError: If the gateway rejects, throttles or does not
                answer within ``upstream_timeout``.
        """
        deadline = asyncio.get_running_loop().time() + self._settings.upstream_timeout
        logger.info(
            "Relaying message (language=%s, history=%d, length=%d)",
            request.language,
            len(request.conversation_history),
            len(request.message),
        )

        stack = AsyncExitStack()
        try:
            chunks = await stack.enter_async_context(
                open_completion_stream(self._client, self.build_payload(request), deadline)
            )
        except BaseException:
            await stack.aclose()
            raise
        return RelaySession(self, request, stack, chunks, deadline)

    async def reply(self, request: ChatRequest) -> str:
        """Run a whole request and return the concatenated reply text.

        Raises:
            RelayError: If the gateway or the relay fails at any point.
        """
        session = await self.open(request)
        parts: list[str] = []
        async for event in session.events(paced=False):
            if isinstance(event, ContentDelta):
                parts.append(event.text)
            elif isinstance(event, StreamError):
                if event.kind in (AI_RATE_LIMIT, UPSTREAM_ERROR):
                    raise UpstreamError(event.kind, event.message)
                raise RelayError(event.kind, message=event.message)
        return "".join(parts)

    def run_tool(self, call: ToolCall, language: str) -> str | None:
        """Execute one assembled call; ``None`` when it failed and must be skipped."""
        try:
            return self._executor.execute(call.name, call.parsed_arguments(), language)
        except Exception:
            logger.exception("Tool %s (%s) failed; dropping its result", call.name, call.id)
            return None


class RelaySession:
    """One request's trip through the relay.

    :meth:`events` walks the request through transcoding, tool dispatch and
    closing, and can be iterated only once.
    """

    def __init__(
        self,
        relay: ChatRelay,
        request: ChatRequest,
        stack: AsyncExitStack,
        chunks: AsyncIterator[bytes],
        deadline: float,
    ) -> None:
        self._relay = relay
        self._request = request
        self._stack = stack
        self._chunks = chunks
        self._deadline = deadline
        self._started = False

    async def aclose(self) -> None:
        """Release the upstream response (idempotent)."""
        await self._stack.aclose()

    async def events(self, paced: bool = True) -> AsyncGenerator[StreamEvent]:
        """Yield the response events, always ending with exactly one ``Done``.

        Content deltas are yielded as they arrive. Tool calls are executed
        only after the upstream turn has ended, and their results follow all
        content. Failures become a single ``StreamError`` before ``Done``;
        cancellation (client disconnect) propagates without a terminator.

        Args:
            paced: Pause between tool-result slices; off for non-streaming use.
        """
        if self._started:
            raise RuntimeError("Relay session events can only be consumed once")
        self._started = True

        settings = self._relay.settings
        decoder = StreamDecoder()
        accumulator = ToolCallAccumulator()
        wrote_text = False

        try:
            try:
                async for upstream_event in decode_stream(self._chunks, decoder, self._deadline):
                    if upstream_event.content:
                        wrote_text = True
                        yield ContentDelta(upstream_event.content)
                    for fragment in upstream_event.tool_calls:
                        accumulator.merge(fragment)
            finally:
                await self._stack.aclose()

            if decoder.skipped_frames:
                logger.warning(
                    "Skipped %d malformed upstream frame(s)", decoder.skipped_frames
                )

            for call in accumulator.drain():
                result = self._relay.run_tool(call, self._request.language)
                if not result:
                    continue
                if wrote_text:
                    result = "\n\n" + result
                wrote_text = True
                delay = settings.tool_result_delay if paced else 0.0
                async for delta in tool_result_deltas(result, settings.tool_result_slice, delay):
                    yield delta

        except RelayError as e:
            logger.warning("Relay stream failed with %s: %s", e.kind, e)
            yield StreamError(e.kind, str(e))
        except Exception:
            logger.exception("Unexpected failure while relaying")
            yield StreamError(INTERNAL_ERROR)
        finally:
            await self._stack.aclose()

        yield Done()

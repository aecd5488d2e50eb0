"""Client seam for the chat-completions gateway.

The relay needs the raw event-stream bytes (it re-frames them itself), so
requests go through the SDK's streaming-response wrapper instead of its
parsed chunk iterator. SDK failures are translated to :class:`UpstreamError`
here so nothing above this module deals with ``openai`` exception types.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from relay.config import RelaySettings
from relay.errors import AI_RATE_LIMIT, UpstreamError

logger = logging.getLogger(__name__)


def build_client(
    settings: RelaySettings, http_client: httpx.AsyncClient | None = None
) -> AsyncOpenAI:
    """Create the gateway client.

    Retries are disabled: when the gateway is failing or throttling, the
    caller backs off instead of the relay multiplying the load.
    """
    return AsyncOpenAI(
        api_key=settings.api_key,
        base_url=settings.gateway_url,
        timeout=settings.upstream_timeout,
        max_retries=0,
        http_client=http_client,
    )


@asynccontextmanager
async def open_completion_stream(
    client: AsyncOpenAI,
    payload: dict[str, Any],
    deadline: float | None = None,
) -> AsyncGenerator[AsyncIterator[bytes]]:
    """Open a streamed completion and yield its raw body iterator.

    The response is released when the context exits.

    Raises:
        UpstreamError: ``ai_rate_limit`` on HTTP 429, ``upstream_error`` on any
            other non-2xx status, connection failure or deadline expiry.
    """
    async with AsyncExitStack() as stack:
        try:
            async with asyncio.timeout_at(deadline):
                response = await stack.enter_async_context(
                    client.chat.completions.with_streaming_response.create(**payload)
                )
        except openai.RateLimitError as e:
            logger.error("Gateway throttled the request (HTTP %s)", e.status_code)
            raise UpstreamError(AI_RATE_LIMIT, "Gateway rate limit") from e
        except openai.APIStatusError as e:
            logger.error("Gateway error: HTTP %s", e.status_code)
            raise UpstreamError(message=f"Gateway returned HTTP {e.status_code}") from e
        except (openai.APIConnectionError, httpx.HTTPError) as e:
            logger.error("Gateway unreachable: %s", e)
            raise UpstreamError(message=f"Gateway unreachable: {e}") from e
        except TimeoutError as e:
            logger.error("Gateway did not answer before the deadline")
            raise UpstreamError(message="Gateway timed out") from e

        logger.debug("Gateway stream opened: HTTP %s", response.status_code)
        yield response.iter_bytes()

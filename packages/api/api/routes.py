"""API route definitions."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask

from api.cors import CORS_HEADERS
from api.rate_limit import Admission, get_limiter, get_policy, rate_limit
from api.schemas import ChatErrorResponse, ChatResponse, RateLimitStatus
from relay.ChatRelay import ChatRelay
from relay.errors import (
    AI_RATE_LIMIT,
    INVALID_MESSAGE,
    RATE_LIMIT,
    UPSTREAM_ERROR,
    RelayError,
    UpstreamError,
)
from relay.identity import resolve_client_identity
from relay.models import ChatRequest
from relay.rate_limit import RateLimiter
from relay.stream_encoder import StreamEncoder, error_body

logger = logging.getLogger(__name__)

router = APIRouter()

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# Replies shown by the widget's non-streaming fallback when a request fails.
_FALLBACK_REPLIES = {
    RATE_LIMIT: {
        "ro": "Ai trimis prea multe mesaje într-un timp scurt. Te rog așteaptă un moment sau contactează-ne pe WhatsApp: +40723154520",
        "en": "You have sent too many messages in a short time. Please wait a moment or contact us on WhatsApp: +40723154520",
    },
    INVALID_MESSAGE: {
        "ro": "Mesajul este prea lung sau gol. Te rog păstrează mesajele sub 2000 de caractere.",
        "en": "Message is too long or empty. Please keep messages under 2000 characters.",
    },
    AI_RATE_LIMIT: {
        "ro": "Primesc prea multe cereri în acest moment. Te rog încearcă din nou într-un moment sau contactează-ne pe WhatsApp.",
        "en": "I'm receiving too many requests right now. Please try again in a moment or contact us on WhatsApp.",
    },
    UPSTREAM_ERROR: {
        "ro": "Îmi pare rău, a apărut o eroare. Te rog contactează-ne pe WhatsApp: +40723154520",
        "en": "Sorry, something went wrong. Please contact us on WhatsApp: +40723154520",
    },
}


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@router.get("/health")
async def health_check():
    """Basic liveness probe."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _relay_dependency(request: Request) -> ChatRelay:
    """Retrieve the shared ChatRelay instance from app state."""
    return request.app.state.relay


async def _read_chat_request(request: Request) -> ChatRequest:
    """Parse and validate the JSON body.

    Raises:
        RelayError: ``invalid_message`` (400) for any malformed body.
    """
    try:
        return ChatRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.info("Rejected chat request body: %s", e)
        raise RelayError(INVALID_MESSAGE, 400, "Invalid message") from e


def _event_stream_error(
    kind: str, status_code: int, headers: dict[str, str]
) -> Response:
    """A complete error stream: one error frame, then the terminator."""
    return Response(
        content=error_body(kind),
        status_code=status_code,
        media_type="text/event-stream",
        headers={**_STREAM_HEADERS, **headers},
    )


def _json_error(
    kind: str,
    status_code: int,
    language: str,
    headers: dict[str, str],
    retry_after: int | None = None,
) -> JSONResponse:
    replies = _FALLBACK_REPLIES.get(kind, _FALLBACK_REPLIES[UPSTREAM_ERROR])
    body = ChatErrorResponse(
        error=kind,
        response=replies.get(language, replies["ro"]),
        retryAfter=retry_after,
    )
    return JSONResponse(
        body.model_dump(exclude_none=True), status_code=status_code, headers=headers
    )


def _preferred_language(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("language") == "en":
        return "en"
    return "ro"


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.options("/chat/stream")
@router.options("/chat")
async def chat_preflight():
    """Answer CORS preflight requests that bypass the CORS middleware."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/chat/stream")
async def chat_stream(
    request: Request,
    admission: Admission = Depends(rate_limit),
    relay: ChatRelay = Depends(_relay_dependency),
):
    """Relay a chat message and stream the reply as Server-Sent Events.

    Every response body, including errors, is a sequence of
    ``data: {...}`` frames ending with ``data: [DONE]``.
    """
    headers = admission.headers()
    if not admission.allowed:
        return _event_stream_error(RATE_LIMIT, 429, headers)

    try:
        body = await _read_chat_request(request)
    except RelayError as e:
        return _event_stream_error(e.kind, e.status_code, headers)

    try:
        session = await relay.open(body)
    except UpstreamError as e:
        return _event_stream_error(e.kind, e.status_code, headers)

    encoder = StreamEncoder()

    async def _frames():
        async for event in session.events():
            yield encoder.encode(event)

    return StreamingResponse(
        _frames(),
        media_type="text/event-stream",
        headers={**_STREAM_HEADERS, **headers},
        # Releases the upstream even if the body was never iterated.
        background=BackgroundTask(session.aclose),
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: Request,
    admission: Admission = Depends(rate_limit),
    relay: ChatRelay = Depends(_relay_dependency),
):
    """Relay a chat message and return the complete reply as JSON.

    Tool results are included in the reply text. This endpoint is
    rate-limited together with the streaming one.
    """
    headers = admission.headers()
    if not admission.allowed:
        return _json_error(RATE_LIMIT, 429, "ro", headers, admission.retry_after)

    try:
        body = await _read_chat_request(request)
    except RelayError as e:
        try:
            language = _preferred_language(await request.json())
        except ValueError:
            language = "ro"
        return _json_error(e.kind, e.status_code, language, headers)

    try:
        reply = await relay.reply(body)
    except RelayError as e:
        return _json_error(e.kind, e.status_code, body.language, headers)

    return JSONResponse(
        ChatResponse(
            response=reply, remaining_requests=admission.result.remaining
        ).model_dump(),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Rate-limit status
# ---------------------------------------------------------------------------


@router.get("/rate-limit", response_model=RateLimitStatus)
async def get_rate_limit_status(
    request: Request,
    limiter: RateLimiter = Depends(get_limiter),
):
    """Return the calling client's rate-limit status without counting a request."""
    policy = get_policy(request)
    identity = resolve_client_identity(request.headers)
    status = limiter.peek(identity, policy.max_requests)
    return RateLimitStatus(
        limit=policy.max_requests,
        remaining=status.remaining,
        reset=datetime.fromtimestamp(status.reset_at, tz=timezone.utc).isoformat(),
    )

"""Pydantic response models for the API.

The chat request body itself is :class:`relay.models.ChatRequest`; it is
validated inside the handlers so that a bad body is reported in the
endpoint's own format instead of FastAPI's 422 JSON.
"""

from pydantic import BaseModel


class ChatResponse(BaseModel):
    """Response from the non-streaming chat endpoint."""

    response: str
    remaining_requests: int


class ChatErrorResponse(BaseModel):
    """Error body of the non-streaming chat endpoint."""

    error: str
    response: str
    retryAfter: int | None = None


class RateLimitStatus(BaseModel):
    """Current rate-limit status for the calling client."""

    limit: int
    remaining: int
    reset: str

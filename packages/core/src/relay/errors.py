"""Error kinds and exceptions shared by the relay and the API layer."""

# Error codes as they appear in ``{"error": ...}`` frames.
RATE_LIMIT = "rate_limit"
INVALID_MESSAGE = "invalid_message"
AI_RATE_LIMIT = "ai_rate_limit"
UPSTREAM_ERROR = "upstream_error"
INTERNAL_ERROR = "internal_error"


class RelayError(Exception):
    """A failure that is reported to the client as an error frame.

    Attributes:
        kind: Error code sent to the client.
        status_code: HTTP status used when the error happens before the
            response has started streaming.
        headers: Extra response headers (e.g. ``Retry-After``).
    """

    def __init__(
        self,
        kind: str,
        status_code: int = 500,
        message: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message or kind)
        self.kind = kind
        self.status_code = status_code
        self.headers = headers or {}


class UpstreamError(RelayError):
    """The model gateway failed, timed out, or is throttling us."""

    def __init__(self, kind: str = UPSTREAM_ERROR, message: str = "") -> None:
        status_code = 429 if kind == AI_RATE_LIMIT else 502
        super().__init__(kind, status_code, message)


class ToolArgumentError(ValueError):
    """Model-generated tool arguments failed validation."""

    def __init__(self, tool_name: str, detail: str) -> None:
        super().__init__(f"Invalid arguments for {tool_name}: {detail}")
        self.tool_name = tool_name

"""Relay configuration read from the environment."""

import logging
import os
from dataclasses import dataclass

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_MODEL = "google/gemini-3-flash-preview"


@dataclass(frozen=True)
class RelaySettings:
    """Settings for one relay instance.

    Attributes:
        api_key: Bearer token for the model gateway.
        gateway_url: Base URL of the chat-completions compatible gateway.
        model: Model identifier sent upstream.
        max_tokens: Completion token cap sent upstream.
        temperature: Sampling temperature sent upstream.
        upstream_timeout: Ceiling in seconds over opening and reading the
            upstream stream (tool dispatch is not counted).
        history_turns: Number of most recent history turns forwarded.
        tool_result_slice: Characters per tool-result delta frame.
        tool_result_delay: Pause in seconds between tool-result frames.
    """

    api_key: str
    gateway_url: str = DEFAULT_GATEWAY_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 600
    temperature: float = 0.7
    upstream_timeout: float = 60.0
    history_turns: int = 8
    tool_result_slice: int = 50
    tool_result_delay: float = 0.03

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Build settings from environment variables.

        Raises:
            KeyError: If ``AI_GATEWAY_API_KEY`` is not set.
        """
        return cls(
            api_key=os.environ["AI_GATEWAY_API_KEY"],
            gateway_url=os.environ.get("AI_GATEWAY_URL", DEFAULT_GATEWAY_URL),
            model=os.environ.get("AI_MODEL", DEFAULT_MODEL),
            upstream_timeout=float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "60")),
            tool_result_delay=float(
                os.environ.get("TOOL_RESULT_DELAY_SECONDS", "0.03")
            ),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server and CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

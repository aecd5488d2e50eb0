"""Data models for chat requests, tool calls and stream events."""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from relay.errors import ToolArgumentError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
MAX_STAY_NIGHTS = 30


# ---------------------------------------------------------------------------
# Inbound request
# ---------------------------------------------------------------------------


class HistoryTurn(BaseModel):
    """One prior turn of the conversation, as kept by the client."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Body of a chat request.

    ``conversationHistory`` is accepted under its wire name; unsupported
    languages fall back to Romanian.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    language: Literal["ro", "en"] = "ro"
    conversation_history: list[HistoryTurn] = Field(
        default_factory=list, alias="conversationHistory"
    )

    @field_validator("language", mode="before")
    @classmethod
    def _fallback_language(cls, value: Any) -> str:
        return "en" if value == "en" else "ro"


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------


@dataclass
class ToolCallFragment:
    """A partial tool call as carried by one upstream delta.

    ``index`` addresses the call within the upstream's parallel tool-call
    array; ``name`` and ``id`` usually arrive only on the first fragment.
    """

    index: int = 0
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass
class ToolCall:
    """A fully assembled tool call, ready for execution."""

    index: int
    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        """Parse the argument JSON, defaulting to ``{}`` when unusable."""
        if not self.arguments.strip():
            return {}
        try:
            parsed = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            logger.warning("Malformed arguments for tool %s: %s", self.name, e)
            return {}
        if not isinstance(parsed, dict):
            logger.warning("Non-object arguments for tool %s", self.name)
            return {}
        return parsed


# ---------------------------------------------------------------------------
# Outgoing stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class StreamError:
    kind: str
    message: str = ""


@dataclass(frozen=True)
class Done:
    pass


StreamEvent = ContentDelta | StreamError | Done


@dataclass
class UpstreamEvent:
    """What one upstream SSE frame contributed: text, tool fragments, or both."""

    content: str | None = None
    tool_calls: list[ToolCallFragment] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tool arguments
# ---------------------------------------------------------------------------


def _clamp_float(value: Any, low: float, high: float, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number):
        return default
    # Infinities land on the matching bound.
    return max(low, min(high, number))


def _clamp_int(value: Any, low: int, high: int, default: int) -> int:
    return int(_clamp_float(value, low, high, default))


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CheckAvailabilityArgs(BaseModel):
    """Arguments of ``check_availability``. Dates are required."""

    check_in: date
    check_out: date
    guests: int = 2

    @field_validator("guests", mode="before")
    @classmethod
    def _clamp_guests(cls, value: Any) -> int:
        return _clamp_int(value, 1, 10, 2)

    @model_validator(mode="after")
    def _normalize_stay(self) -> "CheckAvailabilityArgs":
        if self.check_out <= self.check_in:
            self.check_out = self.check_in + timedelta(days=1)
        if (self.check_out - self.check_in).days > MAX_STAY_NIGHTS:
            self.check_out = self.check_in + timedelta(days=MAX_STAY_NIGHTS)
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


class StayPriceArgs(BaseModel):
    """Arguments of ``get_stay_price``."""

    property_name: str | None = None
    nights: int = 3
    guests: int = 2

    @field_validator("property_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("nights", mode="before")
    @classmethod
    def _clamp_nights(cls, value: Any) -> int:
        return _clamp_int(value, 1, MAX_STAY_NIGHTS, 3)

    @field_validator("guests", mode="before")
    @classmethod
    def _clamp_guests(cls, value: Any) -> int:
        return _clamp_int(value, 1, 10, 2)


class OwnerProfitArgs(BaseModel):
    """Arguments of ``estimate_owner_profit``."""

    area_sqm: float = 50.0
    location: str | None = None
    occupancy: float = 0.75

    @field_validator("area_sqm", mode="before")
    @classmethod
    def _clamp_area(cls, value: Any) -> float:
        return _clamp_float(value, 15.0, 300.0, 50.0)

    @field_validator("location", mode="before")
    @classmethod
    def _strip_location(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("occupancy", mode="before")
    @classmethod
    def _clamp_occupancy(cls, value: Any) -> float:
        number = _clamp_float(value, 0.0, 100.0, 0.75)
        # Models sometimes send a percentage instead of a fraction.
        if number > 1:
            number /= 100
        return max(0.3, min(0.98, number))


ToolArguments = CheckAvailabilityArgs | StayPriceArgs | OwnerProfitArgs

TOOL_ARGUMENTS: dict[str, type[BaseModel]] = {
    "check_availability": CheckAvailabilityArgs,
    "get_stay_price": StayPriceArgs,
    "estimate_owner_profit": OwnerProfitArgs,
}


def parse_tool_arguments(name: str, arguments: dict[str, Any]) -> ToolArguments:
    """Validate raw model-generated arguments for the named tool.

    Raises:
        KeyError: If ``name`` is not a registered tool.
        ToolArgumentError: If the arguments cannot be made valid.
    """
    model = TOOL_ARGUMENTS[name]
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise ToolArgumentError(name, str(e)) from e

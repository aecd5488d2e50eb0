"""Shared fixtures: a seeded listings database and a scripted model gateway."""

import asyncio
import json
import sqlite3
from collections.abc import Callable

import httpx
import pytest

from database.DatabaseProvider import DatabaseProvider
from database.PropertyRepository import PropertyRepository
from database.QueryExecutor import QueryExecutor
from database.schema import SCHEMA_SQL
from relay.ChatRelay import ChatRelay
from relay.ToolExecutor import ToolExecutor
from relay.config import RelaySettings
from relay.models import ChatRequest
from relay.upstream import build_client

PROPERTIES = [
    # id, name, code, location, area, capacity, bedrooms, price, active, order
    (1, "RING ApArt Hotel", "ring", "Strada Loichița Vasile", 80, 4, 2, 85, 1, 0),
    (2, "GREEN FOREST ApArt Hotel", "green-forest", "Denya Forest", 58, 4, 2, 75, 1, 1),
    (3, "FullView Studio DeLuxe", "fullview", "City of Mara", 40, 2, 1, 65, 1, 2),
    (4, "Closed Studio", "closed", "Ultracentral", 30, 2, 1, 40, 0, 3),
]

BOOKINGS = [
    # property_id, check_in, check_out, status
    (1, "2025-07-10", "2025-07-13", "confirmed"),
    (2, "2025-07-10", "2025-07-13", "cancelled"),
    (3, "2025-07-05", "2025-07-10", "confirmed"),
]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "apart.db"
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA_SQL)
    conn.executemany(
        "INSERT INTO properties (id, name, property_code, location, area_sqm, capacity, "
        "bedrooms, price_per_night, is_active, display_order) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        PROPERTIES,
    )
    conn.executemany(
        "INSERT INTO bookings (property_id, check_in, check_out, status) "
        "VALUES (?, ?, ?, ?)",
        BOOKINGS,
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def db_provider(db_path):
    provider = DatabaseProvider(str(db_path))
    yield provider
    provider.close()


@pytest.fixture
def repository(db_provider):
    return PropertyRepository(QueryExecutor(db_provider.get_connection()))


@pytest.fixture
def executor(repository):
    return ToolExecutor(repository)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


def sse_frame(payload) -> bytes:
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode()


def sse_stream(*payloads, done: bool = True) -> bytes:
    body = b"".join(sse_frame(p) for p in payloads)
    if done:
        body += sse_frame("[DONE]")
    return body


def content_chunk(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


def tool_chunk(index: int, arguments: str = "", id=None, name=None) -> dict:
    call = {"index": index, "function": {"arguments": arguments}}
    if id:
        call["id"] = id
    if name:
        call["function"]["name"] = name
    return {"choices": [{"delta": {"tool_calls": [call]}}]}


def event_stream_response(body, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, content=body, headers={"content-type": "text/event-stream"}
    )


class FakeGateway:
    """Callable MockTransport handler that records every request payload."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._handler = handler
        self.requests: list[dict] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        response = self._handler(request)
        if asyncio.iscoroutine(response):
            response = await response
        return response


@pytest.fixture
def make_relay(executor):
    """Build a ChatRelay whose gateway is answered by ``handler``."""

    def factory(handler, **overrides):
        gateway = FakeGateway(handler)
        settings = RelaySettings(
            api_key="test-key",
            gateway_url="https://gateway.test/v1",
            tool_result_delay=0.0,
            **overrides,
        )
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(gateway))
        return ChatRelay(build_client(settings, http_client), executor, settings), gateway

    return factory


def collect_events(relay: ChatRelay, request: ChatRequest, paced: bool = False) -> list:
    async def run():
        session = await relay.open(request)
        return [event async for event in session.events(paced=paced)]

    return asyncio.run(run())


def parse_sse(text: str) -> list:
    """Split a client-facing event stream into payloads ("[DONE]" stays a string)."""
    frames = []
    for block in text.split("\n\n"):
        if not block:
            continue
        assert block.startswith("data: "), block
        data = block[len("data: "):]
        frames.append(data if data == "[DONE]" else json.loads(data))
    return frames

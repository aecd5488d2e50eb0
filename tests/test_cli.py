import asyncio

import httpx
import pytest
from conftest import content_chunk, event_stream_response, sse_frame, sse_stream
from pydantic import ValidationError

from cli.main import run_turn
from relay.errors import UpstreamError
from relay.models import HistoryTurn


def test_run_turn_streams_and_records_history(make_relay):
    relay, gateway = make_relay(
        lambda request: event_stream_response(sse_stream(content_chunk("Hi"), content_chunk("!")))
    )
    history = [HistoryTurn(role="user", content="earlier")]
    written = []

    reply = asyncio.run(run_turn(relay, history, "Hello", "en", written.append))

    assert reply == "Hi!"
    assert written == ["Hi", "!"]
    assert history[1:] == [
        HistoryTurn(role="user", content="Hello"),
        HistoryTurn(role="assistant", content="Hi!"),
    ]
    assert gateway.requests[0]["messages"][1] == {"role": "user", "content": "earlier"}


def test_run_turn_reports_stream_errors(make_relay):
    relay, _ = make_relay(
        lambda request: event_stream_response(sse_frame({"error": "boom"}))
    )
    written = []

    reply = asyncio.run(run_turn(relay, [], "Hello", "ro", written.append))

    assert reply == ""
    assert written == ["\n[error: upstream_error]"]


def test_run_turn_rejects_empty_message(make_relay):
    relay, gateway = make_relay(lambda request: event_stream_response(sse_stream()))

    with pytest.raises(ValidationError):
        asyncio.run(run_turn(relay, [], "", "ro", print))

    assert gateway.requests == []


def test_run_turn_propagates_gateway_failure(make_relay):
    relay, _ = make_relay(lambda request: httpx.Response(503, json={"error": "down"}))
    history = []

    with pytest.raises(UpstreamError):
        asyncio.run(run_turn(relay, history, "Hello", "ro", print))

    assert history == []

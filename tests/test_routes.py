import httpx
import pytest
from conftest import content_chunk, event_stream_response, parse_sse, sse_stream, tool_chunk
from fastapi.testclient import TestClient

from api.main import create_app
from api.rate_limit import RateLimitPolicy
from relay.rate_limit import RateLimiter

CLIENT_HEADERS = {"x-forwarded-for": "203.0.113.7"}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(make_relay, clock):
    """Build a TestClient around a relay whose gateway runs ``handler``."""
    clients = []

    def factory(handler=None, policy=None):
        if handler is None:
            handler = lambda request: event_stream_response(
                sse_stream(content_chunk("Bună"), content_chunk(" ziua!"))
            )
        relay, gateway = make_relay(handler)
        app = create_app(
            relay=relay,
            limiter=RateLimiter(clock),
            policy=policy or RateLimitPolicy(),
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client, gateway

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


def post_stream(client, body, headers=CLIENT_HEADERS):
    return client.post("/chat/stream", json=body, headers=headers)


# ---------------------------------------------------------------------------
# Streaming endpoint
# ---------------------------------------------------------------------------


def test_stream_success(make_client):
    client, _ = make_client()

    response = post_stream(client, {"message": "Salut", "language": "ro"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-ratelimit-limit"] == "15"
    assert response.headers["x-ratelimit-remaining"] == "14"
    assert parse_sse(response.text) == [{"delta": "Bună"}, {"delta": " ziua!"}, "[DONE]"]


def test_stream_with_tool_call(make_client):
    def handler(request):
        return event_stream_response(
            sse_stream(
                content_chunk("Verific..."),
                tool_chunk(0, '{"nights": 2, "property_name": "RING"}', id="c", name="get_stay_price"),
            )
        )

    client, _ = make_client(handler)

    response = post_stream(client, {"message": "Cât costă RING?", "language": "en"})

    frames = parse_sse(response.text)
    assert frames[-1] == "[DONE]"
    text = "".join(f["delta"] for f in frames[:-1])
    assert text.startswith("Verific...\n\nPrice for 2 nights:")
    assert "RING ApArt Hotel" in text


def test_sixteenth_request_is_rate_limited_without_upstream_call(make_client):
    client, gateway = make_client()

    for _ in range(15):
        assert post_stream(client, {"message": "hi"}).status_code == 200
    response = post_stream(client, {"message": "hi"})

    assert response.status_code == 429
    assert parse_sse(response.text) == [{"error": "rate_limit"}, "[DONE]"]
    assert response.headers["retry-after"] == "60"
    assert response.headers["x-ratelimit-remaining"] == "0"
    assert len(gateway.requests) == 15


def test_limit_resets_after_window(make_client, clock):
    client, _ = make_client(policy=RateLimitPolicy(max_requests=1, window_seconds=60))

    assert post_stream(client, {"message": "hi"}).status_code == 200
    assert post_stream(client, {"message": "hi"}).status_code == 429
    clock.now += 60
    assert post_stream(client, {"message": "hi"}).status_code == 200


def test_clients_are_limited_separately(make_client):
    client, _ = make_client(policy=RateLimitPolicy(max_requests=1, window_seconds=60))

    assert post_stream(client, {"message": "hi"}).status_code == 200
    other = post_stream(client, {"message": "hi"}, headers={"x-real-ip": "198.51.100.1"})
    assert other.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {"message": ""},
        {"message": "x" * 2001},
        {"language": "en"},
        {"message": 42},
        {"message": "hi", "conversationHistory": [{"role": "system", "content": "x"}]},
    ],
)
def test_invalid_message(make_client, body):
    client, gateway = make_client()

    response = post_stream(client, body)

    assert response.status_code == 400
    assert parse_sse(response.text) == [{"error": "invalid_message"}, "[DONE]"]
    assert gateway.requests == []


def test_non_json_body_is_invalid_message(make_client):
    client, _ = make_client()

    response = client.post(
        "/chat/stream",
        content=b"not json",
        headers={**CLIENT_HEADERS, "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert parse_sse(response.text) == [{"error": "invalid_message"}, "[DONE]"]


def test_message_at_length_cap_is_accepted(make_client):
    client, _ = make_client()

    assert post_stream(client, {"message": "x" * 2000}).status_code == 200


def test_unsupported_language_falls_back_to_romanian(make_client):
    client, gateway = make_client()

    post_stream(client, {"message": "hi", "language": "de"})

    system = gateway.requests[0]["messages"][0]["content"]
    ro_client, ro_gateway = make_client()
    post_stream(ro_client, {"message": "hi", "language": "ro"})
    assert system == ro_gateway.requests[0]["messages"][0]["content"]


def test_gateway_throttling_returns_429(make_client):
    client, _ = make_client(lambda request: httpx.Response(429, json={"error": "busy"}))

    response = post_stream(client, {"message": "hi"})

    assert response.status_code == 429
    assert parse_sse(response.text) == [{"error": "ai_rate_limit"}, "[DONE]"]


def test_gateway_failure_returns_502(make_client):
    client, _ = make_client(lambda request: httpx.Response(500, json={"error": "down"}))

    response = post_stream(client, {"message": "hi"})

    assert response.status_code == 502
    assert parse_sse(response.text) == [{"error": "upstream_error"}, "[DONE]"]


def test_preflight(make_client):
    client, _ = make_client()

    response = client.options("/chat/stream")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert "x-client-info" in response.headers["access-control-allow-headers"]


def test_cors_headers_on_post(make_client):
    client, _ = make_client()

    response = client.post(
        "/chat/stream",
        json={"message": "hi"},
        headers={**CLIENT_HEADERS, "origin": "https://apart-hotel.ro"},
    )

    assert response.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# JSON endpoint
# ---------------------------------------------------------------------------


def test_chat_json_reply(make_client):
    client, _ = make_client()

    response = client.post("/chat", json={"message": "Salut"}, headers=CLIENT_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"response": "Bună ziua!", "remaining_requests": 14}


def test_chat_json_rate_limited(make_client):
    client, _ = make_client(policy=RateLimitPolicy(max_requests=1, window_seconds=60))
    client.post("/chat", json={"message": "hi"}, headers=CLIENT_HEADERS)

    response = client.post("/chat", json={"message": "hi"}, headers=CLIENT_HEADERS)

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "rate_limit"
    assert body["retryAfter"] == 60
    assert "WhatsApp" in body["response"]


def test_chat_json_invalid_message_in_english(make_client):
    client, _ = make_client()

    response = client.post(
        "/chat", json={"message": "", "language": "en"}, headers=CLIENT_HEADERS
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "invalid_message"
    assert body["response"].startswith("Message is too long or empty")


def test_chat_json_upstream_failure(make_client):
    client, _ = make_client(lambda request: httpx.Response(500, json={"error": "down"}))

    response = client.post("/chat", json={"message": "hi"}, headers=CLIENT_HEADERS)

    assert response.status_code == 502
    assert response.json()["error"] == "upstream_error"


def test_streaming_and_json_share_the_limit(make_client):
    client, _ = make_client(policy=RateLimitPolicy(max_requests=2, window_seconds=60))

    post_stream(client, {"message": "hi"})
    client.post("/chat", json={"message": "hi"}, headers=CLIENT_HEADERS)

    assert post_stream(client, {"message": "hi"}).status_code == 429


# ---------------------------------------------------------------------------
# Status endpoints
# ---------------------------------------------------------------------------


def test_rate_limit_status_does_not_count(make_client):
    client, _ = make_client()
    post_stream(client, {"message": "hi"})
    post_stream(client, {"message": "hi"})

    first = client.get("/rate-limit", headers=CLIENT_HEADERS).json()
    second = client.get("/rate-limit", headers=CLIENT_HEADERS).json()

    assert first == second
    assert first["limit"] == 15
    assert first["remaining"] == 13
    assert first["reset"].startswith("2023-11-14T22:14:20")


def test_health(make_client):
    client, _ = make_client()

    assert client.get("/health").json() == {"status": "ok"}

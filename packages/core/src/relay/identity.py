"""Derive a rate-limit identifier from inbound request headers."""

from collections.abc import Mapping

FALLBACK_PREFIX = "fallback-"


def hash_code(text: str) -> str:
    """Return the 32-bit ``h * 31 + unit`` string hash as lowercase hex.

    Iterates over UTF-16 code units so the value matches the hash computed
    by the browser-side code that shares these buckets.
    """
    encoded = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = int.from_bytes(encoded[i:i + 2], "little")
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return format(abs(value), "x")


def resolve_client_identity(headers: Mapping[str, str]) -> str:
    """Return the client's IP address, or a stable fallback bucket.

    Preference: first ``x-forwarded-for`` entry, then ``x-real-ip``, then a
    ``fallback-`` prefixed hash of the user agent and ``apikey`` header.
    Header lookup is case-insensitive when ``headers`` is (as Starlette's
    ``Headers`` is); plain dicts must use lowercase keys.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    user_agent = headers.get("user-agent") or ""
    api_key = headers.get("apikey") or ""
    return FALLBACK_PREFIX + hash_code(user_agent + api_key)

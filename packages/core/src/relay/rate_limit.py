"""Per-identifier fixed-window rate limiter.

Counts requests per identifier inside a window that starts with the first
request and lasts ``window_seconds``. When the window expires the entry is
replaced by a fresh one. Bursts of up to twice the limit are possible
across a window boundary; that is the accepted cost of keeping one counter
per client instead of a timestamp log.

State lives in memory only and resets when the process restarts.
"""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of an admission check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests still allowed in the current window.
        reset_at: Epoch seconds at which the current window expires.
    """

    allowed: bool
    remaining: int
    reset_at: float

    def retry_after(self, now: float) -> int:
        """Whole seconds the caller should wait before retrying."""
        return max(0, math.ceil(self.reset_at - now))


class RateLimiter:
    """In-memory request counter keyed by client identifier.

    One instance is shared by every request the process serves. All access
    to the entry map goes through a lock so that concurrent requests from
    the same client never lose an increment.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def check(
        self, identifier: str, max_requests: int, window_seconds: float
    ) -> RateLimitResult:
        """Record a request for ``identifier`` and decide whether to admit it."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)

            if entry is None or now >= entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + window_seconds)
                self._entries[identifier] = entry
                return RateLimitResult(True, max_requests - 1, entry.reset_at)

            if entry.count >= max_requests:
                return RateLimitResult(False, 0, entry.reset_at)

            entry.count += 1
            return RateLimitResult(True, max_requests - entry.count, entry.reset_at)

    def peek(self, identifier: str, max_requests: int) -> RateLimitResult:
        """Return the current status for ``identifier`` without counting a request."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)
            if entry is None or now >= entry.reset_at:
                return RateLimitResult(True, max_requests, now)
            remaining = max(0, max_requests - entry.count)
            return RateLimitResult(remaining > 0, remaining, entry.reset_at)

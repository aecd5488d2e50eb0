import threading

from relay.rate_limit import RateLimiter, RateLimitResult


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_first_request_opens_window():
    clock = FakeClock()
    limiter = RateLimiter(clock)

    result = limiter.check("1.2.3.4", 15, 60)

    assert result == RateLimitResult(True, 14, 1_060.0)


def test_admits_exactly_max_requests_per_window():
    clock = FakeClock()
    limiter = RateLimiter(clock)

    results = [limiter.check("1.2.3.4", 15, 60) for _ in range(16)]

    assert [r.allowed for r in results] == [True] * 15 + [False]
    assert [r.remaining for r in results[:15]] == list(range(14, -1, -1))
    assert results[15].remaining == 0
    assert {r.reset_at for r in results} == {1_060.0}


def test_rejection_does_not_extend_window():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    for _ in range(3):
        limiter.check("client", 3, 60)

    clock.now += 30
    rejected = limiter.check("client", 3, 60)

    assert not rejected.allowed
    assert rejected.reset_at == 1_060.0


def test_window_resets_at_reset_time():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    for _ in range(16):
        limiter.check("client", 15, 60)

    clock.now = 1_060.0
    result = limiter.check("client", 15, 60)

    assert result == RateLimitResult(True, 14, 1_120.0)


def test_identifiers_are_counted_independently():
    limiter = RateLimiter(FakeClock())
    for _ in range(2):
        limiter.check("a", 2, 60)

    assert not limiter.check("a", 2, 60).allowed
    assert limiter.check("b", 2, 60).allowed


def test_retry_after_rounds_up_and_never_negative():
    result = RateLimitResult(False, 0, 1_060.0)

    assert result.retry_after(1_000.0) == 60
    assert result.retry_after(1_059.2) == 1
    assert result.retry_after(1_070.0) == 0


def test_peek_does_not_count():
    clock = FakeClock()
    limiter = RateLimiter(clock)

    unknown = limiter.peek("client", 15)
    assert unknown == RateLimitResult(True, 15, 1_000.0)

    limiter.check("client", 15, 60)
    limiter.check("client", 15, 60)
    first = limiter.peek("client", 15)
    second = limiter.peek("client", 15)

    assert first == second == RateLimitResult(True, 13, 1_060.0)


def test_peek_after_expiry_reports_full_allowance():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    limiter.check("client", 15, 60)

    clock.now += 61

    assert limiter.peek("client", 15).remaining == 15


def test_concurrent_checks_never_over_admit():
    limiter = RateLimiter(FakeClock())
    admitted = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        for _ in range(25):
            if limiter.check("shared", 100, 60).allowed:
                admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(admitted) == 100

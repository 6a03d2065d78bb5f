import pytest

from cors_proxy.rate_limit.limiter import (
    FixedWindowRateLimiter,
    RateLimitResult,
    rate_limiter,
)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock(500.0)


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)


def test_allows_up_to_limit(limiter):
    results = [limiter.hit("1.2.3.4") for _ in range(3)]

    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [2, 1, 0]


def test_rejects_over_limit(limiter):
    for _ in range(3):
        limiter.hit("1.2.3.4")

    result = limiter.hit("1.2.3.4")

    assert not result.allowed
    assert result.remaining == 0
    assert result.limit == 3


def test_window_is_fixed_not_sliding(limiter, clock):
    limiter.hit("c")
    clock.advance(30)
    limiter.hit("c")
    limiter.hit("c")
    assert not limiter.hit("c").allowed

    # The window opened with the first hit, so it closes 60s after it,
    # even though the later hits are only 30s old.
    clock.advance(30)

    result = limiter.hit("c")
    assert result.allowed
    assert result.remaining == 2


def test_reset_after_counts_down(limiter, clock):
    first = limiter.hit("c")
    clock.advance(45)
    second = limiter.hit("c")

    assert first.reset_after == 60
    assert second.reset_after == 15
    assert second.retry_after == 15


def test_retry_after_rounds_up():
    assert RateLimitResult(False, 1, 0, 0.2).retry_after == 1
    assert RateLimitResult(False, 1, 0, 0).retry_after == 0


def test_clients_are_independent(limiter):
    for _ in range(3):
        limiter.hit("a")

    assert not limiter.hit("a").allowed
    assert limiter.hit("b").allowed


def test_expired_windows_are_swept(limiter, clock):
    limiter.hit("a")
    limiter.hit("b")
    assert len(limiter) == 2

    clock.advance(61)
    limiter.hit("c")

    assert len(limiter) == 1


def test_reset_single_key_and_all(limiter):
    for _ in range(3):
        limiter.hit("a")
    limiter.hit("b")

    limiter.reset("a")
    assert limiter.hit("a").remaining == 2

    limiter.reset()
    assert len(limiter) == 0


def test_zero_limit_rejects_everything(clock):
    limiter = FixedWindowRateLimiter(max_requests=0, window_seconds=60, clock=clock)

    assert not limiter.hit("a").allowed


@pytest.mark.parametrize("max_requests,window", [(-1, 60), (5, 0), (5, -1)])
def test_invalid_configuration(max_requests, window):
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(max_requests=max_requests, window_seconds=window)


def test_factory_default():
    limiter = rate_limiter("FixedWindowRateLimiter")

    assert isinstance(limiter, FixedWindowRateLimiter)


def test_factory_unknown_name():
    with pytest.raises(ValueError, match="Unknown rate limiter type"):
        rate_limiter("RedisRateLimiter")

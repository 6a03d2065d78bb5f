from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
import time
from typing import Callable

from cors_proxy import vars as config


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the current window closes, as sent in Retry-After."""
        return max(int(math.ceil(self.reset_after)), 0)


class RateLimiterBase(ABC):
    @abstractmethod
    def hit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it may proceed."""

    @abstractmethod
    def reset(self, key: str | None = None):
        pass


class FixedWindowRateLimiter(RateLimiterBase):
    """
    In-memory fixed window counter per client key.

    A client's window opens with its first request and lasts ``window_seconds``;
    at the boundary the count starts over. Windows never overlap or slide.
    The table lives as long as the process and expired entries are swept at
    most once per window.
    """

    def __init__(
        self,
        max_requests: int = config.RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = config.RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 0:
            raise ValueError("max_requests must not be negative")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # key -> (window start, hits in window)
        self._windows: dict[str, tuple[float, int]] = {}
        self._next_sweep = clock() + window_seconds

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        self._sweep(now)

        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, count = now, 0
        count += 1
        self._windows[key] = (start, count)

        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - count, 0),
            reset_after=start + self.window_seconds - now,
        )

    def reset(self, key: str | None = None):
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float):
        if now < self._next_sweep:
            return
        expired = [
            key
            for key, (start, _) in self._windows.items()
            if now - start >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds


def rate_limiter(name: str = config.RATE_LIMITER) -> RateLimiterBase:
    if name == "FixedWindowRateLimiter":
        return FixedWindowRateLimiter()
    cls = globals().get(name)
    if isinstance(cls, type) and issubclass(cls, RateLimiterBase):
        return cls()
    else:
        raise ValueError(f"Unknown rate limiter type: {name}")

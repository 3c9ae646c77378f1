from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque


class RateLimitError(RuntimeError):
    """Raised when a non-blocking acquire would exceed the rate limit."""


@dataclass
class _WindowConfig:
    max_calls: int
    per_seconds: float


class AsyncSlidingWindowRateLimiter:
    """
    Sliding-window rate limiter for coroutines sharing one event loop.

    - Ensures at most `max_calls` happen within any `per_seconds` window.
    - If `blocking=True`, awaits until a slot is available.
    - If `blocking=False`, raises `RateLimitError` when a slot isn't available.

    Not a distributed limiter; it only throttles calls made through one client.
    """

    def __init__(
        self,
        max_calls: int,
        per_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be > 0")
        if per_seconds <= 0:
            raise ValueError("per_seconds must be > 0")
        self._cfg = _WindowConfig(max_calls=max_calls, per_seconds=per_seconds)
        self._events: Deque[float] = deque()
        self._lock = asyncio.Lock()
        self._clock = clock

    def _prune(self, now: float) -> None:
        window_start = now - self._cfg.per_seconds
        while self._events and self._events[0] <= window_start:
            self._events.popleft()

    def _next_available_delay(self, now: float) -> float:
        """Return seconds to wait until the next slot is available (>= 0)."""
        if len(self._events) < self._cfg.max_calls:
            return 0.0
        oldest = self._events[0]
        return max(0.0, (oldest + self._cfg.per_seconds) - now)

    async def acquire(self, *, blocking: bool = True) -> None:
        while True:
            async with self._lock:
                now = self._clock()
                self._prune(now)
                delay = self._next_available_delay(now)
                if delay == 0.0:
                    self._events.append(now)
                    return
            if not blocking:
                raise RateLimitError("rate limit exceeded; no slot available")
            await asyncio.sleep(min(delay, 1.0))


__all__ = ["AsyncSlidingWindowRateLimiter", "RateLimitError"]

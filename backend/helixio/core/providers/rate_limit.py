"""Sliding-window rate limiter for external metadata APIs."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable

import structlog

logger = structlog.get_logger("helixio.providers.rate_limit")


class RateLimiter:
    """Per-client request pacing.

    Each provider client owns its own instance, so sources are throttled
    independently and tests can inject a limiter with a fake clock.

    Limits:
    - at most ``max_requests`` within any ``period`` seconds
    - at least ``min_gap`` seconds between consecutive requests
    """

    def __init__(
        self,
        max_requests: int,
        period: float,
        min_gap: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], asyncio.Future[None] | object] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if period <= 0:
            raise ValueError("period must be positive")

        self.max_requests = max_requests
        self.period = period
        self.min_gap = min_gap
        self._clock = clock
        self._sleep = sleep
        self._request_times: deque[float] = deque()
        self._lock = asyncio.Lock()
        self.consecutive_errors = 0

    def _prune(self, now: float) -> None:
        while self._request_times and self._request_times[0] <= now - self.period:
            self._request_times.popleft()

    def delay_needed(self, now: float | None = None) -> float:
        """Seconds to wait before the next request may be sent."""
        if now is None:
            now = self._clock()
        self._prune(now)

        delay = 0.0
        if len(self._request_times) >= self.max_requests:
            delay = self._request_times[0] + self.period - now
        if self.min_gap and self._request_times:
            delay = max(delay, self._request_times[-1] + self.min_gap - now)
        return max(delay, 0.0)

    async def acquire(self) -> None:
        """Wait until a request may be sent, then record it."""
        async with self._lock:
            delay = self.delay_needed()
            if delay > 0:
                logger.debug(
                    "Rate limit reached, waiting",
                    wait_seconds=round(delay, 3),
                    requests_in_window=len(self._request_times),
                )
                await self._sleep(delay)  # type: ignore[misc]
            now = self._clock()
            self._prune(now)
            self._request_times.append(now)

    def record_success(self) -> None:
        self.consecutive_errors = 0

    def record_error(self) -> None:
        self.consecutive_errors += 1

    def reset(self) -> None:
        """Forget request history and error streak."""
        self._request_times.clear()
        self.consecutive_errors = 0

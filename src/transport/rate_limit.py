"""Token-bucket rate limiting for outbound venue requests."""

from __future__ import annotations

import asyncio
import time


class TokenBucketRateLimiter:
    """Allows `rate` requests per second with bursts up to `capacity`.

    `acquire()` refills tokens for the elapsed time, consumes one if available
    and otherwise sleeps until the next token would exist.
    """

    def __init__(self, rate: float, *, capacity: float | None = None):
        if rate <= 0:
            raise ValueError(f"rate must be > 0. Got: {rate}")

        self.rate = float(rate)
        self.capacity = float(capacity if capacity is not None else rate)
        if self.capacity < 1.0:
            raise ValueError(f"capacity must be >= 1. Got: {self.capacity}")
        self.tokens = self.capacity
        self._last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Wait until at least one token is available, then consume it."""
        while True:
            self._refill()
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return
            await asyncio.sleep((1.0 - self.tokens) / self.rate)

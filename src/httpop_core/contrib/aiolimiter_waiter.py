from __future__ import annotations
import asyncio
from typing import Optional

from aiolimiter import AsyncLimiter

from ..errors import DeadlineExceeded


class RateLimitWaiter:
    """
    Waiter backed by aiolimiter's leaky bucket.

    `rate` requests per second with up to `burst` admitted back to back.
    One instance is meant to be shared by every task hitting the same host.
    """

    def __init__(self, rate: float = 1.0, burst: int = 1):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate
        self.burst = burst
        self._limiter = AsyncLimiter(max_rate=burst, time_period=burst / rate)

    async def wait(self, timeout: Optional[float] = None) -> None:
        if timeout is not None and timeout <= 0:
            raise DeadlineExceeded("deadline exceeded before rate limiter admission")
        try:
            await asyncio.wait_for(self._limiter.acquire(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(
                f"deadline exceeded after {timeout:.3f}s waiting for rate limiter"
            ) from exc

"""Async rate limiter for price-history API calls.

Spaces calls out to respect a per-second limit. FMP allows 300 calls per
minute on the standard plan; the default of 4/s leaves headroom for the
worker pools that share one client.

Usage:
    limiter = RateLimiter(calls_per_second=4.0)
    await limiter.acquire()
    # ... make the API call ...
"""

from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """Async rate limiter enforcing a minimum interval between calls.

    Safe for concurrent callers within a single asyncio event loop via
    asyncio.Lock: waiters are released one at a time.

    Args:
        calls_per_second: Maximum number of calls allowed per second.
            Zero or negative disables limiting.
    """

    def __init__(self, calls_per_second: float = 4.0) -> None:
        self.calls_per_second = calls_per_second
        self.min_interval = 1.0 / calls_per_second if calls_per_second > 0 else 0.0
        self.last_call: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request is allowed under the rate limit."""
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            wait_time = self.min_interval - (now - self.last_call)
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = time.monotonic()

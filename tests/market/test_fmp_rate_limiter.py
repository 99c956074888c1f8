"""Tests for the async rate limiter."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from rating_backtest.market.rate_limiter import RateLimiter


class TestRateLimiter:
    def test_min_interval(self):
        assert RateLimiter(4.0).min_interval == 0.25

    @pytest.mark.asyncio
    async def test_disabled_never_sleeps(self):
        limiter = RateLimiter(0)
        with patch("rating_backtest.market.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            for _ in range(5):
                await limiter.acquire()
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_back_to_back_calls_wait(self):
        limiter = RateLimiter(2.0)
        with patch("rating_backtest.market.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
            await limiter.acquire()
        assert sleep.await_count == 1
        waited = sleep.await_args.args[0]
        assert 0 < waited <= 0.5

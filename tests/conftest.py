"""Root test configuration — shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any rating_backtest imports
so that config.py can load Settings without a .env file.
"""

from __future__ import annotations

import os

# Set required env vars before importing anything from rating_backtest
os.environ.setdefault("FMP_API_KEY", "test-fmp-key")
os.environ.setdefault("FMP_BASE_URL", "https://fmp.test/stable")
os.environ.setdefault("ANALYZER_BASE_URL", "http://analyzer.test")
os.environ.setdefault("FMP_RATE_LIMIT_PER_SECOND", "0")

# Now safe to import rating_backtest modules
from datetime import date

import pytest

from rating_backtest.backtesting.run_control import RunContext, RunController
from rating_backtest.backtesting.store import PriceSeriesStore
from rating_backtest.common.config import Settings, get_settings
from tests.factories import make_series

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


# ─── Test Settings ───


@pytest.fixture
def test_settings() -> Settings:
    """Settings built from the test environment (no real keys)."""
    return get_settings()


# ─── Run Fixtures ───


@pytest.fixture
def run() -> RunContext:
    """A fresh, uncancelled run context."""
    return RunContext()


@pytest.fixture
def controller() -> RunController:
    """A controller with no active run."""
    return RunController()


# ─── Sample Data Fixtures ───


@pytest.fixture
def sample_store() -> PriceSeriesStore:
    """Store with NVDA rising and XOM falling over early 2024."""
    store = PriceSeriesStore()
    store.put(
        "NVDA",
        make_series(
            [
                (date(2024, 1, 2), 100.0),
                (date(2024, 2, 1), 110.0),
                (date(2024, 3, 1), 120.0),
            ]
        ),
    )
    store.put(
        "XOM",
        make_series(
            [
                (date(2024, 1, 2), 100.0),
                (date(2024, 2, 1), 95.0),
                (date(2024, 3, 1), 97.0),
            ]
        ),
    )
    return store

"""Application configuration via environment variables.

Uses pydantic-settings to load from .env file and environment variables.
All config is centralized here — modules should import `get_settings()`.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─── Price-history API (FMP stable) ───
    fmp_api_key: str  # Required — no default (fail fast if missing)
    fmp_base_url: str = "https://financialmodelingprep.com/stable"
    fmp_rate_limit_per_second: float = 4.0
    fmp_max_retries: int = 2
    fmp_retry_delay_seconds: float = 0.6  # linear: delay * attempt
    mcap_batch_size: int = 150

    # ─── Decision oracle ───
    analyzer_base_url: str = "http://localhost:5001"
    reset_oracle_cache: bool = True

    # ─── Shared HTTP ───
    request_timeout_seconds: float = 30.0

    # ─── Worker pools ───
    price_workers: int = 8
    ranking_workers: int = 10
    decision_workers: int = 10

    # ─── Selection ───
    default_top_n: int = 50
    max_top_n: int = 500

    # ─── Banded scoring ───
    actual_lookahead_days: int = 7
    default_band_pct: float = 0.05
    small_cap_band_pct: float = 0.07
    hold_drift_threshold_pct: float = 0.10


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Uses lru_cache so Settings is only instantiated once.
    In tests, call `get_settings.cache_clear()` to reset.
    """
    return Settings()

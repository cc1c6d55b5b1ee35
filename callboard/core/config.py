"""
Settings and environment management module for the Callboard live-update service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development against a local upstream dashboard API
- Singleton pattern via @lru_cache for efficient access
- Timing constants for polling, fetch timeouts and alert display durations

Environment Variables:
- UPSTREAM_BASE_URL: Base URL of the statistics/detail/lookup API (default: http://localhost:5000)
- STATISTICS_TIMEOUT_SECONDS: Bound on one aggregate statistics fetch (default: 300)
- DETAIL_TIMEOUT_SECONDS: Bound on one per-call detail fetch (default: 10)
- LOOKUP_TIMEOUT_SECONDS: Bound on agent/project lookups (default: 10)
- POLL_INTERVAL_SECONDS: Auto-polling interval once a search succeeded (default: 10)
- DEFAULT_DISPLAY_SECONDS / MILESTONE_DISPLAY_SECONDS: Alert display durations (5 / 7)
- MILESTONE_OUTCOMES: JSON list of outcome labels shown with the longer duration
- DISPLAY_TIMEZONE: IANA zone used for "today", date keys and naive timestamps

Usage:
    from callboard.core.config import get_settings

    settings = get_settings()
    interval = settings.poll_interval_seconds
"""

from functools import lru_cache
from typing import List
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        upstream_base_url: Base URL of the external dashboard API consumed read-only.
        statistics_timeout_seconds: Timeout for the aggregate statistics fetch.
        detail_timeout_seconds: Timeout for per-call detail fetches.
        lookup_timeout_seconds: Timeout for agent/project lookup fetches.
        fetch_timeout_retries: Automatic retries after a statistics fetch timeout.
        poll_interval_seconds: Interval between autonomous statistics fetches.
        default_display_seconds: How long an ordinary alert stays active.
        milestone_display_seconds: How long a milestone alert stays active.
        milestone_outcomes: Outcome labels treated as milestones.
        display_timezone: IANA timezone name for local dates and clock labels.
        cors_origins: Origins allowed to call the API from a browser.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Upstream API
    # =========================================================================

    upstream_base_url: str = 'http://localhost:5000'

    # The statistics query can scan large date ranges upstream, so its bound
    # is minutes; detail and lookup calls are expected back within seconds.
    statistics_timeout_seconds: float = Field(default=300.0, gt=0)
    detail_timeout_seconds: float = Field(default=10.0, gt=0)
    lookup_timeout_seconds: float = Field(default=10.0, gt=0)

    # Only timeouts are retried; HTTP and transport errors are surfaced at once
    fetch_timeout_retries: int = Field(default=1, ge=0)

    # =========================================================================
    # Live updates
    # =========================================================================

    poll_interval_seconds: float = Field(default=10.0, gt=0)

    default_display_seconds: float = Field(default=5.0, gt=0)
    milestone_display_seconds: float = Field(default=7.0, gt=0)
    milestone_outcomes: List[str] = Field(default_factory=lambda: ['Termin'])

    display_timezone: str = 'Europe/Nicosia'

    # =========================================================================
    # HTTP surface
    # =========================================================================

    cors_origins: List[str] = Field(
        default_factory=lambda: ['http://localhost:3000', 'http://127.0.0.1:3000']
    )

    @property
    def tzinfo(self) -> ZoneInfo:
        """Return the display timezone as a ZoneInfo instance."""
        return ZoneInfo(self.display_timezone)


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns a cached Settings instance so environment variables are only read
    once per process. In tests, call ``get_settings.cache_clear()`` after
    patching the environment.

    Returns:
        Settings: The application settings instance.

    Raises:
        pydantic.ValidationError: If an environment variable has an invalid value.
    """
    return Settings()

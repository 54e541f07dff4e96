"""
Settings and environment management for the Flow Analytics backend.

Configuration is centralized in a pydantic-settings class that loads values
from environment variables and an optional .env file. A single cached
instance is shared through get_settings().

Environment Variables:
- KLAVIYO_API_KEY: Private API key for the upstream reporting API (required
  at request time, not at import time)
- KLAVIYO_BASE_URL: Upstream base URL (default: https://a.klaviyo.com/api)
- KLAVIYO_API_REVISION: Value sent in the `revision` header

Aggregation Defaults:
- max_rows: 50000 (hard row budget; exceeding it rejects the request)
- default_window_days / max_window_days: 7 / 30
- fetch_concurrency: 3 (gate for independent per-flow fetches)

Usage:
    from flow_analytics.core.config import get_settings

    settings = get_settings()
    budget = settings.max_rows
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        klaviyo_api_key: Private API key. Validated when a client is built.
        klaviyo_base_url: Upstream API base URL (no trailing slash).
        klaviyo_api_revision: API revision header value.
        request_timeout_seconds: Timeout applied to every HTTP call.
        rate_limit_max_attempts: Attempts per call before RateLimited.
        rate_limit_base_delay_ms: Base of the exponential backoff.
        rate_limit_jitter_ms: Upper bound of random jitter added per retry.
        rate_limit_max_delay_ms: Backoff ceiling.
        fetch_concurrency: Concurrent per-flow resource fetches.
        max_rows: Row budget for one aggregation.
        default_window_days: Window length when no dates are given.
        max_window_days: Longest accepted window.
        default_limit_flows: Live flows selected when no limit is given.
        max_limit_flows: Upper bound on the flow limit.
        default_limit_messages: Messages kept per flow by default.
        max_limit_messages: Upper bound on the message limit.
        conversion_metric_name: Conversion metric resolved by name.
        conversion_integration: Integration preferred when several metrics match.
        conversion_metric_id: Explicit metric id; skips the lookup when set.
        add_step_rpe_quantile: Quantile used for the add-step revenue floor.
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

    klaviyo_api_key: Optional[str] = None
    klaviyo_base_url: str = 'https://a.klaviyo.com/api'
    klaviyo_api_revision: str = '2024-06-15'
    request_timeout_seconds: float = 30.0

    # =========================================================================
    # Rate limiting
    # delay = min(base * 2^attempt + jitter, max), Retry-After wins when given
    # =========================================================================

    rate_limit_max_attempts: int = 10
    rate_limit_base_delay_ms: int = 1500
    rate_limit_jitter_ms: int = 1000
    rate_limit_max_delay_ms: int = 30000

    fetch_concurrency: int = 3

    # =========================================================================
    # Aggregation
    # =========================================================================

    max_rows: int = 50000
    default_window_days: int = 7
    max_window_days: int = 30
    default_limit_flows: int = 25
    max_limit_flows: int = 100
    default_limit_messages: int = 20
    max_limit_messages: int = 100

    conversion_metric_name: str = 'Placed Order'
    conversion_integration: str = 'Shopify'
    conversion_metric_id: Optional[str] = None

    # =========================================================================
    # Scoring
    # =========================================================================

    add_step_rpe_quantile: float = 0.25


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()

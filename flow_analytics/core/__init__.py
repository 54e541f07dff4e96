"""
Core infrastructure package for the Flow Analytics backend.

Provides:
- Configuration management via pydantic-settings
- The typed error hierarchy rendered by the API as {error, details, hint?, status}

Re-exported here for shorter imports:

    from flow_analytics.core import get_settings, RowBudgetExceeded

FastAPI dependencies live in flow_analytics.core.dependencies and are
imported from there directly.
"""

# =============================================================================
# Re-exports from flow_analytics.core.config
# =============================================================================
from flow_analytics.core.config import Settings, get_settings

# =============================================================================
# Re-exports from flow_analytics.core.exceptions
# =============================================================================
from flow_analytics.core.exceptions import (
    FlowAnalyticsError,
    InvalidRequest,
    RateLimited,
    UpstreamUnavailable,
    DataIntegrityEmpty,
    RowBudgetExceeded,
    DeadlineExceeded,
    PartialEnrichmentFailure,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Errors (from exceptions.py)
    'FlowAnalyticsError',
    'InvalidRequest',
    'RateLimited',
    'UpstreamUnavailable',
    'DataIntegrityEmpty',
    'RowBudgetExceeded',
    'DeadlineExceeded',
    'PartialEnrichmentFailure',
]

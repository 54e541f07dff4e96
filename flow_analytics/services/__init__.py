"""
Flow Analytics Services.

Business logic for the flow reporting pipeline. Services hold no state
across requests.

Services:
- klaviyo_client: paginated, rate-limited upstream client
- lookup_cache: request-scoped cache for upstream lookups
- identity: message id / action id reconciliation
- aggregation: per-day / range / auto aggregation with dedup and budgets
- step_scoring: money / deliverability / confidence scoring per step
- add_step: trailing-step recommendation

Data flow:
    client -> identity -> aggregation -> step_scoring -> add_step
"""

# =============================================================================
# Upstream Client
# =============================================================================

from flow_analytics.services.klaviyo_client import (
    KlaviyoClient,
    compute_backoff_delay,
    parse_retry_after,
    parse_report_rows,
)
from flow_analytics.services.lookup_cache import LookupCache

# =============================================================================
# Identity Resolution + Aggregation
# =============================================================================

from flow_analytics.services.identity import IdentityResolver
from flow_analytics.services.aggregation import (
    AggregationResult,
    AggregationWindow,
    FlowAggregator,
    RowSet,
    resolve_window,
    rows_to_frame,
    rows_to_records,
)

# =============================================================================
# Scoring
# =============================================================================

from flow_analytics.services.step_scoring import (
    build_step_metrics,
    median_revenue_per_email,
    score_flow_steps,
    score_step,
)
from flow_analytics.services.add_step import suggest_add_step

__all__ = [
    'KlaviyoClient',
    'compute_backoff_delay',
    'parse_retry_after',
    'parse_report_rows',
    'LookupCache',
    'IdentityResolver',
    'AggregationResult',
    'AggregationWindow',
    'FlowAggregator',
    'RowSet',
    'resolve_window',
    'rows_to_frame',
    'rows_to_records',
    'build_step_metrics',
    'median_revenue_per_email',
    'score_flow_steps',
    'score_step',
    'suggest_add_step',
]

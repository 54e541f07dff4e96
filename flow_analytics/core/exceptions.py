"""
Typed errors raised by the flow analytics pipeline.

Every error carries a machine-readable code, a human-readable details string,
an optional hint and the HTTP status the API layer answers with. The API
renders them as {error, details, hint?, status}.

Propagation:
- RateLimited is only raised once the client has exhausted its retries.
- UpstreamUnavailable is raised immediately on any other non-2xx response.
- DataIntegrityEmpty and RowBudgetExceeded always reach the caller; an empty
  or truncated success is never returned in their place.
- PartialEnrichmentFailure is recorded in diagnostics and never propagated
  past the orchestrator.
"""

from typing import Any, Dict, Optional


class FlowAnalyticsError(Exception):
    """Base class for all pipeline errors."""

    error: str = 'FlowAnalyticsError'
    status: int = 500

    def __init__(
        self,
        details: str,
        hint: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(details)
        self.details = details
        self.hint = hint
        if status is not None:
            self.status = status

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'error': self.error,
            'details': self.details,
            'status': self.status,
        }
        if self.hint:
            payload['hint'] = self.hint
        return payload


class InvalidRequest(FlowAnalyticsError):
    error = 'InvalidRequest'
    status = 400


class RateLimited(FlowAnalyticsError):
    """Upstream kept answering 429 after every retry attempt."""

    error = 'RateLimited'
    status = 429

    def __init__(self, details: str, attempts: int = 0, hint: Optional[str] = None) -> None:
        super().__init__(
            details,
            hint=hint or 'Upstream API is throttling requests; retry after a short wait.',
        )
        self.attempts = attempts


class UpstreamUnavailable(FlowAnalyticsError):
    """Non-retryable upstream failure (non-2xx other than 429, or transport error)."""

    error = 'UpstreamUnavailable'
    status = 502

    def __init__(
        self,
        details: str,
        upstream_status: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(details, hint=hint)
        self.upstream_status = upstream_status


class DataIntegrityEmpty(FlowAnalyticsError):
    error = 'DataIntegrityEmpty'
    status = 502


class RowBudgetExceeded(FlowAnalyticsError):
    error = 'RowBudgetExceeded'
    status = 400

    def __init__(self, row_count: int, max_rows: int) -> None:
        super().__init__(
            f'Aggregation produced {row_count} rows, above the budget of {max_rows}',
            hint='Shorten the window, reduce limitFlows/limitMessages or disable synthetic rows.',
        )
        self.row_count = row_count
        self.max_rows = max_rows


class DeadlineExceeded(FlowAnalyticsError):
    error = 'DeadlineExceeded'
    status = 504


class PartialEnrichmentFailure(FlowAnalyticsError):
    """
    Optional enrichment step failed.

    Not fatal: the orchestrator logs it, records it in diagnostics and keeps
    the base rows.
    """

    error = 'PartialEnrichmentFailure'
    status = 200

    def __init__(self, step: str, details: str) -> None:
        super().__init__(details)
        self.step = step


__all__ = [
    'FlowAnalyticsError',
    'InvalidRequest',
    'RateLimited',
    'UpstreamUnavailable',
    'DataIntegrityEmpty',
    'RowBudgetExceeded',
    'DeadlineExceeded',
    'PartialEnrichmentFailure',
]

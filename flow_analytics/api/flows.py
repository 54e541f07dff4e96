"""
Flow analytics API routes.

Endpoints:
- POST /flows/sync: aggregate flow rows for a window (per-day / range / auto)
- POST /flows/{flow_id}/steps/analysis: aggregate one flow, score its steps
  and evaluate the add-step suggestion

Typed pipeline errors (FlowAnalyticsError) propagate to the handler
registered in main.py, which renders {error, details, hint?, status}.
Anything else is logged and reported as HTTP 500.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, HTTPException

from flow_analytics.core.dependencies import LookupCacheDep, ReportClientDep, SettingsDep
from flow_analytics.core.exceptions import FlowAnalyticsError
from flow_analytics.models.enums import Channel
from flow_analytics.models.schemas import (
    FlowSyncRequest,
    FlowSyncResponse,
    StepAnalysisRequest,
    StepAnalysisResponse,
)
from flow_analytics.services.add_step import suggest_add_step
from flow_analytics.services.aggregation import FlowAggregator, rows_to_records
from flow_analytics.services.step_scoring import build_step_metrics, score_flow_steps

logger = logging.getLogger(__name__)

router = APIRouter()


def _deadline(timeout_seconds: Optional[float]) -> Optional[float]:
    return time.monotonic() + timeout_seconds if timeout_seconds else None


def _first_set(explicit: Optional[float], fallback: float) -> float:
    return explicit if explicit is not None else fallback


# =============================================================================
# POST /flows/sync
# =============================================================================

@router.post("/sync", response_model=FlowSyncResponse)
async def sync_flows(
    request: FlowSyncRequest,
    client: ReportClientDep,
    cache: LookupCacheDep,
    settings: SettingsDep,
) -> FlowSyncResponse:
    """
    Aggregate flow performance rows.

    Rows are keyed by the export column names (Day, Flow ID, ... Tags).

    Raises:
        RateLimited (429), UpstreamUnavailable (502), DataIntegrityEmpty (502),
        RowBudgetExceeded (400), InvalidRequest (400), DeadlineExceeded (504)
    """
    logger.info(
        f"Flow sync requested: mode={request.mode.value} "
        f"start={request.startDate} end={request.endDate} days={request.days}"
    )
    try:
        aggregator = FlowAggregator(client, settings=settings, cache=cache)
        result = await aggregator.run(request, deadline=_deadline(request.timeoutSeconds))
    except FlowAnalyticsError:
        raise
    except Exception as e:
        logger.exception(f"Flow sync failed: {e}")
        raise HTTPException(status_code=500, detail=f"Flow sync failed: {str(e)}")

    return FlowSyncResponse(
        rowCount=len(result.rows),
        rows=rows_to_records(result.rows),
        diagnostics=result.diagnostics,
    )


# =============================================================================
# POST /flows/{flow_id}/steps/analysis
# =============================================================================

@router.post("/{flow_id}/steps/analysis", response_model=StepAnalysisResponse)
async def analyze_flow_steps(
    flow_id: str,
    request: StepAnalysisRequest,
    client: ReportClientDep,
    cache: LookupCacheDep,
    settings: SettingsDep,
) -> StepAnalysisResponse:
    """
    Score every email step of one flow and evaluate adding a step.

    Account totals default to the email sends and revenue of every flow in
    the report, so store share and send share are measured against the
    whole flow program rather than this flow alone. A one-step flow is
    indexed against the program-wide revenue per email.
    """
    sync_request = FlowSyncRequest(
        mode=request.mode,
        startDate=request.startDate,
        endDate=request.endDate,
        days=request.days,
        flowIds=[flow_id],
        limitFlows=1,
        limitMessages=settings.max_limit_messages,
        includeSynthetic=True,
        timeoutSeconds=request.timeoutSeconds,
    )
    try:
        aggregator = FlowAggregator(client, settings=settings, cache=cache)
        result = await aggregator.run(sync_request, deadline=_deadline(request.timeoutSeconds))

        email_steps = [m for m in result.messages.get(flow_id, []) if m.channel == Channel.EMAIL]
        steps = build_step_metrics(result.rows, email_steps, flow_id=flow_id)
        report = result.diagnostics
        scores = score_flow_steps(
            steps,
            account_revenue_total=_first_set(request.accountRevenueTotal, report.reportRevenue),
            account_sends_total=_first_set(request.accountSendsTotal, report.reportSends),
            baseline_rpe=report.reportRevenue / report.reportSends if report.reportSends > 0 else None,
        )
        add_step = suggest_add_step(
            steps,
            scores,
            window_start=result.window.start,
            window_end=result.window.end,
            last_data_date=request.lastDataDate,
            quantile=settings.add_step_rpe_quantile,
        )
    except FlowAnalyticsError:
        raise
    except Exception as e:
        logger.exception(f"Step analysis failed for flow {flow_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Step analysis failed: {str(e)}")

    logger.info(
        f"Flow {flow_id}: scored {len(scores)} steps, add-step suggested={add_step.suggested}"
    )
    return StepAnalysisResponse(
        flowId=flow_id,
        steps=steps,
        scores=scores,
        addStep=add_step,
        diagnostics=result.diagnostics,
    )


__all__ = ['router']

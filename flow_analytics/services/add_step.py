"""
Add-Step Advisor.

Decides whether a flow would benefit from one more trailing step. Every gate
must hold:

- last step score >= 75
- last step RPE >= median RPE across all steps, zero-send steps included
  (the scoring median skips them; here a silent step lowers the bar)
- last step RPE >= previous step RPE (trivially true for a one-step flow)
- last step sends >= max(500, 5% of step 1 sends)
- last step revenue >= $500 or >= 5% of flow revenue
- the analysis window ends on or after the most recent date with data

The estimate is deliberately conservative: half of the last step's audience
at the lower of the last step's RPE and the low-quantile RPE across steps.
The quantile is a tunable (0.25 by default).
"""

import logging
import math
from datetime import date
from typing import List, Optional

import numpy as np

from flow_analytics.models.schemas import (
    AddStepEstimate,
    AddStepGates,
    AddStepSuggestion,
    StepMetrics,
    StepScore,
)

logger = logging.getLogger(__name__)

MIN_LAST_STEP_SCORE = 75.0
MIN_LAST_STEP_SENDS = 500
FIRST_STEP_VOLUME_SHARE = 0.05
MIN_LAST_STEP_REVENUE = 500.0
MIN_LAST_STEP_FLOW_SHARE = 0.05
PROJECTED_REACH_SHARE = 0.5
DEFAULT_RPE_QUANTILE = 0.25


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def lower_quantile(values: List[float], quantile: float) -> float:
    """Value at index floor(q * (n - 1)) of the sorted input."""
    return float(np.percentile(values, quantile * 100.0, method='lower'))


def suggest_add_step(
    steps: List[StepMetrics],
    scores: List[StepScore],
    window_start: date,
    window_end: date,
    last_data_date: Optional[date] = None,
    quantile: float = DEFAULT_RPE_QUANTILE,
) -> AddStepSuggestion:
    """
    Evaluate the add-step gates for one flow.

    Args:
        steps: The flow's steps in sequence order.
        scores: StepScore per step, same order.
        window_start: First day of the analysis window.
        window_end: Last day of the analysis window.
        last_data_date: Most recent date with data; None when the caller
            already knows the window is current.
        quantile: Quantile for the conservative RPE floor.

    Returns:
        AddStepSuggestion: Gate outcomes, plus reason and estimate when suggested.
    """
    horizon_days = (window_end - window_start).days + 1
    if not steps or len(scores) != len(steps):
        return AddStepSuggestion(suggested=False, horizonDays=horizon_days)

    last = steps[-1]
    last_score = scores[-1]
    rpes = [step.revenuePerEmail for step in steps]
    median_rpe = float(np.median(rpes))
    flow_revenue = float(sum(step.revenue for step in steps))
    volume_floor = max(MIN_LAST_STEP_SENDS, round_half_up(FIRST_STEP_VOLUME_SHARE * steps[0].emailsSent))

    gates = AddStepGates(
        scoreOk=last_score.score >= MIN_LAST_STEP_SCORE,
        rpeAboveMedian=last.revenuePerEmail >= median_rpe,
        rpeNotDeclining=len(steps) == 1 or last.revenuePerEmail >= steps[-2].revenuePerEmail,
        volumeOk=last.emailsSent >= volume_floor,
        revenueOk=(
            last.revenue >= MIN_LAST_STEP_REVENUE
            or (flow_revenue > 0 and last.revenue / flow_revenue >= MIN_LAST_STEP_FLOW_SHARE)
        ),
        windowCurrent=last_data_date is None or window_end >= last_data_date,
    )
    label = last.name or f'Step {last.sequencePosition}'
    suggested = all(gates.model_dump().values())
    if not suggested:
        logger.debug(f"No add-step suggestion for flow {last.flowId}: {gates.model_dump()}")
        return AddStepSuggestion(
            suggested=False,
            horizonDays=horizon_days,
            lastStepLabel=label,
            gates=gates,
        )

    rpe_floor = min(lower_quantile(rpes, quantile), last.revenuePerEmail)
    reach = round_half_up(last.emailsSent * PROJECTED_REACH_SHARE)
    if len(steps) == 1:
        reason = 'Strong RPE and healthy deliverability'
    else:
        reason = f'Step {len(steps)} is performing well; a follow-up could add value'

    return AddStepSuggestion(
        suggested=True,
        reason=reason,
        horizonDays=horizon_days,
        lastStepLabel=label,
        gates=gates,
        estimate=AddStepEstimate(
            projectedReach=reach,
            rpeFloor=rpe_floor,
            estimatedRevenue=round(reach * rpe_floor, 2),
        ),
    )


__all__ = [
    'suggest_add_step',
    'lower_quantile',
    'round_half_up',
    'DEFAULT_RPE_QUANTILE',
]

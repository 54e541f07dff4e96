"""
Step Scoring Engine for flow messages.

Scores each flow step on a 0-100 scale from three pillars and maps the result
to a recommendation (scale / keep / improve / pause).

Pillars:
- Money (0-70)
    Revenue Index points (0-35) = 35 * clamp(rpe / median_rpe, 0, 2) / 2
    Store-share points (0-35), step function of step revenue / account revenue:
        >=5% -> 35, >=3% -> 30, >=2% -> 25, >=1% -> 20, >=0.5% -> 15,
        >=0.25% -> 10, else 5
- Deliverability (0-20), additive bins on percentage rates:
    spam      <0.05 -> 7, <0.10 -> 6, <0.20 -> 3, <0.30 -> 1, else 0
    bounce    <1.0  -> 7, <2.0  -> 6, <3.0  -> 3, <5.0  -> 1, else 0
    unsub     <0.20 -> 3, <0.50 -> 2.5, <1.00 -> 1, else 0
    open      >=30  -> 2, >=20  -> 1
    click     >3    -> 1, >=1   -> 0.5
  A step with base < 15 and less than 0.5% of account send volume is blended
  toward 20 by (1 - share / 0.005) so that noisy low-traffic rates do not sink it.
- Confidence (0-10) = clamp(floor(emails_sent / 100), 0, 10)

Action classification:
    risk_high = spam >= 0.30 or unsub > 1.00 or bounce >= 5.00
                or open < 20 or click < 1
    money <= 35 and risk_high              -> pause
    risk_high and (money >= 55 or RI >= 1.4) -> keep
    else by score: >=75 scale, >=60 keep, >=40 improve, else pause
Guardrail: a pause without high risk becomes keep when the step earned at
least $5,000 or at least 10% of its flow's revenue.

All functions are pure; rates on StepMetrics are percentages.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from flow_analytics.models.enums import RowStatus, StepAction
from flow_analytics.models.schemas import (
    ConfidencePillar,
    DeliverabilityPillar,
    FlowMessage,
    FlowRow,
    MoneyPillar,
    ScoringContext,
    StepMetrics,
    StepPillars,
    StepScore,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MONEY_MAX = 70.0
REVENUE_INDEX_MAX_POINTS = 35.0
REVENUE_INDEX_CAP = 2.0
STORE_SHARE_MAX_POINTS = 35.0
DELIVERABILITY_MAX = 20.0
CONFIDENCE_MAX = 10.0
SCORE_MAX = 100.0

# (minimum share, points), checked top-down
STORE_SHARE_BINS: List[Tuple[float, float]] = [
    (0.05, 35.0),
    (0.03, 30.0),
    (0.02, 25.0),
    (0.01, 20.0),
    (0.005, 15.0),
    (0.0025, 10.0),
]
STORE_SHARE_FLOOR_POINTS = 5.0

# (exclusive upper bound in %, points)
SPAM_BINS: List[Tuple[float, float]] = [(0.05, 7.0), (0.10, 6.0), (0.20, 3.0), (0.30, 1.0)]
BOUNCE_BINS: List[Tuple[float, float]] = [(1.0, 7.0), (2.0, 6.0), (3.0, 3.0), (5.0, 1.0)]
UNSUB_BINS: List[Tuple[float, float]] = [(0.20, 3.0), (0.50, 2.5), (1.00, 1.0)]

LOW_VOLUME_SEND_SHARE = 0.005
LOW_VOLUME_BASE_CEILING = 15.0

RISK_SPAM_PCT = 0.30
RISK_UNSUB_PCT = 1.00
RISK_BOUNCE_PCT = 5.00
RISK_OPEN_PCT = 20.0
RISK_CLICK_PCT = 1.0

HIGH_MONEY_POINTS = 55.0
LOW_MONEY_POINTS = 35.0
HIGH_REVENUE_INDEX = 1.4

SCALE_SCORE = 75.0
KEEP_SCORE = 60.0
IMPROVE_SCORE = 40.0

GUARDRAIL_REVENUE = 5000.0
GUARDRAIL_FLOW_SHARE = 0.10

MIN_RELIABLE_SENDS = 250

NOTE_HIGH_REVENUE_INDEX = 'High Revenue Index'
NOTE_NO_STORE_REVENUE = 'No store revenue in window'
NOTE_GUARDRAIL = 'High revenue guardrail'
NOTE_LOW_VOLUME = f'Low volume: fewer than {MIN_RELIABLE_SENDS} sends'


# =============================================================================
# Pillar helpers
# =============================================================================

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _upper_bound_points(value: float, bins: List[Tuple[float, float]]) -> float:
    for bound, points in bins:
        if value < bound:
            return points
    return 0.0


def store_share_points(share: float) -> float:
    """Points for a step's share of account revenue (fraction, not %)."""
    if not math.isfinite(share) or share <= 0:
        return STORE_SHARE_FLOOR_POINTS
    for minimum, points in STORE_SHARE_BINS:
        if share >= minimum:
            return points
    return STORE_SHARE_FLOOR_POINTS


def spam_points(spam_pct: float) -> float:
    return _upper_bound_points(spam_pct, SPAM_BINS)


def bounce_points(bounce_pct: float) -> float:
    return _upper_bound_points(bounce_pct, BOUNCE_BINS)


def unsubscribe_points(unsub_pct: float) -> float:
    return _upper_bound_points(unsub_pct, UNSUB_BINS)


def open_points(open_pct: float) -> float:
    if open_pct >= 30:
        return 2.0
    if open_pct >= 20:
        return 1.0
    return 0.0


def click_points(click_pct: float) -> float:
    if click_pct > 3:
        return 1.0
    if click_pct >= 1:
        return 0.5
    return 0.0


def is_risk_high(step: StepMetrics) -> bool:
    return (
        step.spamRate >= RISK_SPAM_PCT
        or step.unsubscribeRate > RISK_UNSUB_PCT
        or step.bounceRate >= RISK_BOUNCE_PCT
        or step.openRate < RISK_OPEN_PCT
        or step.clickRate < RISK_CLICK_PCT
    )


def money_pillar(step: StepMetrics, context: ScoringContext) -> MoneyPillar:
    """
    Money pillar from revenue efficiency and store share.

    Args:
        step: Step metrics.
        context: Median RPE and account revenue total.

    Returns:
        MoneyPillar: points in [0, 70] plus the components.
    """
    median = context.medianRevenuePerEmail
    revenue_index = clamp(step.revenuePerEmail / median, 0.0, REVENUE_INDEX_CAP) if median > 0 else 0.0
    index_points = REVENUE_INDEX_MAX_POINTS * revenue_index / REVENUE_INDEX_CAP

    account_revenue = context.accountRevenueTotal
    share = step.revenue / account_revenue if account_revenue > 0 else 0.0
    share_points = clamp(store_share_points(share), 0.0, STORE_SHARE_MAX_POINTS)

    return MoneyPillar(
        points=clamp(index_points + share_points, 0.0, MONEY_MAX),
        revenueIndex=revenue_index,
        revenueIndexPoints=index_points,
        storeShare=share,
        storeSharePoints=share_points,
    )


def deliverability_pillar(step: StepMetrics, context: ScoringContext) -> DeliverabilityPillar:
    base = clamp(
        spam_points(step.spamRate)
        + bounce_points(step.bounceRate)
        + unsubscribe_points(step.unsubscribeRate)
        + open_points(step.openRate)
        + click_points(step.clickRate),
        0.0,
        DELIVERABILITY_MAX,
    )

    sends_total = context.accountSendsTotal
    send_share = step.emailsSent / sends_total if sends_total > 0 else 0.0
    adjust = base < LOW_VOLUME_BASE_CEILING and 0 < send_share < LOW_VOLUME_SEND_SHARE
    points = base
    if adjust:
        points = base + (DELIVERABILITY_MAX - base) * (1 - send_share / LOW_VOLUME_SEND_SHARE)

    return DeliverabilityPillar(
        points=clamp(points, 0.0, DELIVERABILITY_MAX),
        basePoints=base,
        lowVolumeAdjusted=adjust,
        riskHigh=is_risk_high(step),
    )


def confidence_pillar(emails_sent: float) -> ConfidencePillar:
    return ConfidencePillar(points=clamp(math.floor(emails_sent / 100), 0, CONFIDENCE_MAX))


def classify_action(
    score: float,
    money_points: float,
    revenue_index: float,
    risk_high: bool,
) -> StepAction:
    """Map pillars and composite score to an action, before the guardrail."""
    if money_points <= LOW_MONEY_POINTS and risk_high:
        return StepAction.PAUSE
    if risk_high and (money_points >= HIGH_MONEY_POINTS or revenue_index >= HIGH_REVENUE_INDEX):
        return StepAction.KEEP
    if score >= SCALE_SCORE:
        return StepAction.SCALE
    if score >= KEEP_SCORE:
        return StepAction.KEEP
    if score >= IMPROVE_SCORE:
        return StepAction.IMPROVE
    return StepAction.PAUSE


# =============================================================================
# Scoring
# =============================================================================

def score_step(step: StepMetrics, context: ScoringContext) -> StepScore:
    """
    Score one flow step.

    Args:
        step: Per-step totals and derived rates.
        context: Median revenue per email and account/flow totals.

    Returns:
        StepScore: Composite score, action, pillar breakdown and notes.
    """
    notes: List[str] = []
    money = money_pillar(step, context)
    deliverability = deliverability_pillar(step, context)
    confidence = confidence_pillar(step.emailsSent)

    if money.revenueIndex >= HIGH_REVENUE_INDEX:
        notes.append(NOTE_HIGH_REVENUE_INDEX)
    if context.accountRevenueTotal <= 0:
        notes.append(NOTE_NO_STORE_REVENUE)

    score = clamp(money.points + deliverability.points + confidence.points, 0.0, SCORE_MAX)
    action = classify_action(score, money.points, money.revenueIndex, deliverability.riskHigh)

    flow_share = step.revenue / context.flowRevenueTotal if context.flowRevenueTotal > 0 else 0.0
    if (
        not deliverability.riskHigh
        and action == StepAction.PAUSE
        and (step.revenue >= GUARDRAIL_REVENUE or flow_share >= GUARDRAIL_FLOW_SHARE)
    ):
        action = StepAction.KEEP
        notes.append(NOTE_GUARDRAIL)

    volume_insufficient = step.emailsSent < MIN_RELIABLE_SENDS
    if volume_insufficient:
        notes.append(NOTE_LOW_VOLUME)

    return StepScore(
        messageId=step.messageId,
        score=score,
        action=action,
        pillars=StepPillars(money=money, deliverability=deliverability, confidence=confidence),
        notes=notes,
        volumeInsufficient=volume_insufficient,
    )


def median_revenue_per_email(steps: Iterable[StepMetrics]) -> float:
    """Median RPE across steps that sent at least one email (0.0 if none)."""
    values = [step.revenuePerEmail for step in steps if step.emailsSent > 0]
    if not values:
        return 0.0
    return float(np.median(values))


def score_flow_steps(
    steps: List[StepMetrics],
    account_revenue_total: Optional[float] = None,
    account_sends_total: Optional[float] = None,
    median_rpe: Optional[float] = None,
    baseline_rpe: Optional[float] = None,
) -> List[StepScore]:
    """
    Score every step of one flow.

    Args:
        steps: Steps of the flow, in sequence order.
        account_revenue_total: Account revenue in the window. Defaults to the
            flow's own revenue.
        account_sends_total: Account sends in the window. Defaults to the
            flow's own sends.
        median_rpe: Baseline RPE. Defaults to the median over sending steps.
        baseline_rpe: RPE across all flows. Used in place of the median for a
            one-step flow, whose own median would always give an index of 1.

    Returns:
        List[StepScore]: One score per step, same order.
    """
    flow_revenue = float(sum(step.revenue for step in steps))
    flow_sends = float(sum(step.emailsSent for step in steps))
    if median_rpe is None:
        if len(steps) == 1 and baseline_rpe is not None and baseline_rpe > 0:
            median_rpe = baseline_rpe
        else:
            median_rpe = median_revenue_per_email(steps)
    context = ScoringContext(
        medianRevenuePerEmail=median_rpe,
        accountRevenueTotal=account_revenue_total if account_revenue_total is not None else flow_revenue,
        accountSendsTotal=account_sends_total if account_sends_total is not None else flow_sends,
        flowRevenueTotal=flow_revenue,
    )
    scores = [score_step(step, context) for step in steps]
    logger.debug(
        f"Scored {len(scores)} steps (median RPE {context.medianRevenuePerEmail:.4f}, "
        f"flow revenue {flow_revenue:.2f})"
    )
    return scores


# =============================================================================
# Step metrics from aggregated rows
# =============================================================================

def build_step_metrics(
    rows: List[FlowRow],
    messages: List[FlowMessage],
    flow_id: Optional[str] = None,
) -> List[StepMetrics]:
    """
    Roll reconciled rows up to per-step totals.

    Synthetic draft placeholders are skipped. Unsubscribe, bounce and spam
    counts are reconstructed as rate x delivered from the upstream fractions.
    Known steps without rows get zero metrics; rows for ids missing from
    `messages` become extra steps after the known ones.

    Args:
        rows: Reconciled rows (any mix of days and range rows).
        messages: Canonical steps of the flow(s), in sequence order.
        flow_id: Restrict to one flow.

    Returns:
        List[StepMetrics]: Ordered by flow then sequence position.
    """
    records: List[Dict[str, object]] = []
    for row in rows:
        if row.status == RowStatus.DRAFT or (flow_id and row.flowId != flow_id):
            continue
        records.append({
            'flowId': row.flowId,
            'messageId': row.messageId,
            'name': row.messageName,
            'emailsSent': row.delivered,
            'revenue': row.revenue,
            'opens': row.uniqueOpens,
            'clicks': row.uniqueClicks,
            'conversions': row.placedOrder,
            'unsubscribes': row.unsubRate * row.delivered,
            'bounces': row.bounceRate * row.delivered,
            'spamComplaints': row.complaintRate * row.delivered,
        })

    totals: Dict[Tuple[str, str], Dict[str, object]] = {}
    if records:
        frame = pd.DataFrame.from_records(records)
        grouped = frame.groupby(['flowId', 'messageId'], sort=False).agg({
            'name': 'first',
            'emailsSent': 'sum',
            'revenue': 'sum',
            'opens': 'sum',
            'clicks': 'sum',
            'conversions': 'sum',
            'unsubscribes': 'sum',
            'bounces': 'sum',
            'spamComplaints': 'sum',
        })
        for (row_flow, message_id), values in grouped.iterrows():
            totals[(row_flow, message_id)] = values.to_dict()

    known = [m for m in messages if not flow_id or m.flowId == flow_id]
    steps: List[StepMetrics] = []
    next_position: Dict[str, int] = {}
    for message in known:
        values = totals.pop((message.flowId, message.id), None) or {}
        steps.append(_step_from_totals(message.flowId, message.id, message.name, message.sequencePosition, values))
        next_position[message.flowId] = max(next_position.get(message.flowId, 0), message.sequencePosition)

    for (row_flow, message_id), values in totals.items():
        position = next_position.get(row_flow, 0) + 1
        next_position[row_flow] = position
        steps.append(_step_from_totals(row_flow, message_id, str(values.get('name') or message_id), position, values))

    steps.sort(key=lambda step: (step.flowId, step.sequencePosition))
    return steps


def _step_from_totals(
    flow_id: str,
    message_id: str,
    name: str,
    position: int,
    values: Dict[str, object],
) -> StepMetrics:
    def number(key: str) -> float:
        return float(values.get(key) or 0.0)

    return StepMetrics(
        flowId=flow_id,
        messageId=message_id,
        name=name,
        sequencePosition=position,
        emailsSent=number('emailsSent'),
        revenue=number('revenue'),
        opens=number('opens'),
        clicks=number('clicks'),
        conversions=number('conversions'),
        unsubscribes=number('unsubscribes'),
        bounces=number('bounces'),
        spamComplaints=number('spamComplaints'),
    )


__all__ = [
    'clamp',
    'store_share_points',
    'spam_points',
    'bounce_points',
    'unsubscribe_points',
    'open_points',
    'click_points',
    'is_risk_high',
    'money_pillar',
    'deliverability_pillar',
    'confidence_pillar',
    'classify_action',
    'score_step',
    'median_revenue_per_email',
    'score_flow_steps',
    'build_step_metrics',
    'MIN_RELIABLE_SENDS',
    'NOTE_GUARDRAIL',
    'NOTE_HIGH_REVENUE_INDEX',
    'NOTE_NO_STORE_REVENUE',
    'NOTE_LOW_VOLUME',
]

"""
Pydantic models for the Flow Analytics backend.

Covers the upstream shapes (flows, flow messages, report rows), the reconciled
output row with its fixed column order, per-step metrics and scores, the
add-step suggestion, aggregation diagnostics and the API request/response
contracts.

Rate conventions:
- ReportRow and FlowRow rates are fractions exactly as the upstream API
  returns them (0.35 == 35%).
- StepMetrics rates are percentages (35.0 == 35%), which is what the scoring
  thresholds are written against.

All models use Pydantic v2 syntax.
"""

from datetime import date as DateType
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from flow_analytics.models.enums import (
    AggregationMode,
    Channel,
    FlowStatus,
    RowStatus,
    StepAction,
)


# =============================================================================
# Upstream Entities
# =============================================================================


class Flow(BaseModel):
    """A multi-step automated email sequence."""

    id: str
    name: str = ""
    status: FlowStatus = FlowStatus.DRAFT
    triggerType: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.status == FlowStatus.LIVE


class FlowMessage(BaseModel):
    """
    One step of a flow.

    `actionId` is the secondary identifier the reporting endpoint groups by;
    it does not always match `id`.
    """

    id: str
    flowId: str
    sequencePosition: int = Field(..., ge=1)
    name: str = ""
    channel: Channel = Channel.EMAIL
    actionId: Optional[str] = None


class ReportRow(BaseModel):
    """Raw metrics for one (timeframe, flow, message-or-action) tuple."""

    model_config = ConfigDict(extra='ignore')

    flow_id: Optional[str] = None
    flow_message_id: Optional[str] = None
    flow_action_id: Optional[str] = None
    send_channel: Optional[str] = None

    recipients: float = 0.0
    delivered: float = 0.0
    opens_unique: float = 0.0
    open_rate: float = 0.0
    clicks_unique: float = 0.0
    click_rate: float = 0.0
    conversion_uniques: float = 0.0
    conversion_rate: float = 0.0
    conversion_value: float = 0.0
    unsubscribe_rate: float = 0.0
    spam_complaint_rate: float = 0.0
    bounce_rate: float = 0.0


class ResolvedIdentity(BaseModel):
    """Canonical message identity for a report row."""

    messageId: str
    name: str
    channel: str


# =============================================================================
# Output Rows
# =============================================================================

FLOW_ROW_COLUMNS: List[str] = [
    "Day",
    "Flow ID",
    "Flow Name",
    "Flow Message ID",
    "Flow Message Name",
    "Flow Message Channel",
    "Status",
    "Delivered",
    "Unique Opens",
    "Open Rate",
    "Unique Clicks",
    "Click Rate",
    "Placed Order",
    "Placed Order Rate",
    "Revenue",
    "Revenue per Recipient",
    "Unsub Rate",
    "Complaint Rate",
    "Bounce Rate",
    "Tags",
]


class FlowRow(BaseModel):
    """
    Reconciled output row (one per day, flow and message).

    Serialize with `model_dump(by_alias=True)` to get the column names in
    FLOW_ROW_COLUMNS order. `isSynthetic` is internal and never exported.
    """

    model_config = ConfigDict(populate_by_name=True)

    day: str = Field(..., alias="Day")
    flowId: str = Field(..., alias="Flow ID")
    flowName: str = Field("", alias="Flow Name")
    messageId: str = Field(..., alias="Flow Message ID")
    messageName: str = Field("", alias="Flow Message Name")
    channel: str = Field("Email", alias="Flow Message Channel")
    status: RowStatus = Field(RowStatus.LIVE, alias="Status")
    delivered: float = Field(0.0, alias="Delivered")
    uniqueOpens: float = Field(0.0, alias="Unique Opens")
    openRate: float = Field(0.0, alias="Open Rate")
    uniqueClicks: float = Field(0.0, alias="Unique Clicks")
    clickRate: float = Field(0.0, alias="Click Rate")
    placedOrder: float = Field(0.0, alias="Placed Order")
    placedOrderRate: float = Field(0.0, alias="Placed Order Rate")
    revenue: float = Field(0.0, alias="Revenue")
    revenuePerRecipient: float = Field(0.0, alias="Revenue per Recipient")
    unsubRate: float = Field(0.0, alias="Unsub Rate")
    complaintRate: float = Field(0.0, alias="Complaint Rate")
    bounceRate: float = Field(0.0, alias="Bounce Rate")
    tags: str = Field("", alias="Tags")

    isSynthetic: bool = Field(False, exclude=True)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Dedup key."""
        return (self.day, self.flowId, self.messageId)


# =============================================================================
# Step Metrics & Scores
# =============================================================================


def _pct(count: float, total: float) -> float:
    return (count * 100.0) / total if total > 0 else 0.0


class StepMetrics(BaseModel):
    """
    Per-step totals over the requested window.

    Counts for unsubscribes, bounces and spam complaints are reconstructed
    from the upstream rates (rate x delivered), so they may be fractional.
    """

    flowId: str
    messageId: str
    name: str = ""
    sequencePosition: int = 1
    emailsSent: float = 0.0
    revenue: float = 0.0
    opens: float = 0.0
    clicks: float = 0.0
    conversions: float = 0.0
    unsubscribes: float = 0.0
    bounces: float = 0.0
    spamComplaints: float = 0.0

    @computed_field
    @property
    def revenuePerEmail(self) -> float:
        return self.revenue / self.emailsSent if self.emailsSent > 0 else 0.0

    @computed_field
    @property
    def openRate(self) -> float:
        return _pct(self.opens, self.emailsSent)

    @computed_field
    @property
    def clickRate(self) -> float:
        return _pct(self.clicks, self.emailsSent)

    @computed_field
    @property
    def conversionRate(self) -> float:
        return _pct(self.conversions, self.emailsSent)

    @computed_field
    @property
    def unsubscribeRate(self) -> float:
        return _pct(self.unsubscribes, self.emailsSent)

    @computed_field
    @property
    def bounceRate(self) -> float:
        return _pct(self.bounces, self.emailsSent)

    @computed_field
    @property
    def spamRate(self) -> float:
        return _pct(self.spamComplaints, self.emailsSent)


class ScoringContext(BaseModel):
    """Account-wide aggregates a step is scored against."""

    medianRevenuePerEmail: float = 0.0
    accountRevenueTotal: float = 0.0
    accountSendsTotal: float = 0.0
    flowRevenueTotal: float = 0.0


class MoneyPillar(BaseModel):
    points: float = Field(..., ge=0, le=70)
    revenueIndex: float
    revenueIndexPoints: float = Field(..., ge=0, le=35)
    storeShare: float
    storeSharePoints: float = Field(..., ge=0, le=35)


class DeliverabilityPillar(BaseModel):
    points: float = Field(..., ge=0, le=20)
    basePoints: float = Field(..., ge=0, le=20)
    lowVolumeAdjusted: bool = False
    riskHigh: bool = False


class ConfidencePillar(BaseModel):
    points: float = Field(..., ge=0, le=10)


class StepPillars(BaseModel):
    money: MoneyPillar
    deliverability: DeliverabilityPillar
    confidence: ConfidencePillar


class StepScore(BaseModel):
    messageId: str
    score: float = Field(..., ge=0, le=100)
    action: StepAction
    pillars: StepPillars
    notes: List[str] = Field(default_factory=list)
    volumeInsufficient: bool = False


# =============================================================================
# Add-Step Suggestion
# =============================================================================


class AddStepGates(BaseModel):
    """Outcome of every gate; a suggestion needs all of them true."""

    scoreOk: bool = False
    rpeAboveMedian: bool = False
    rpeNotDeclining: bool = False
    volumeOk: bool = False
    revenueOk: bool = False
    windowCurrent: bool = False


class AddStepEstimate(BaseModel):
    projectedReach: int
    rpeFloor: float
    estimatedRevenue: float


class AddStepSuggestion(BaseModel):
    suggested: bool
    reason: Optional[str] = None
    horizonDays: Optional[int] = None
    lastStepLabel: Optional[str] = None
    gates: AddStepGates = Field(default_factory=AddStepGates)
    estimate: Optional[AddStepEstimate] = None


# =============================================================================
# Aggregation Diagnostics
# =============================================================================


class AggregationDiagnostics(BaseModel):
    """Audit trail of one aggregation pass."""

    modeRequested: AggregationMode
    modeUsed: Optional[AggregationMode] = None
    autoRangeTriggered: bool = False
    startDate: Optional[DateType] = None
    endDate: Optional[DateType] = None
    days: int = 0
    timeZone: str = "UTC"
    conversionMetricId: Optional[str] = None
    revision: Optional[str] = None
    timeframeKey: Optional[str] = None
    flowsSelected: int = 0
    upstreamRows: int = 0
    syntheticRows: int = 0
    mergedRows: int = 0
    droppedRows: int = 0
    draftRows: int = 0
    totalRows: int = 0
    enrichmentFailures: List[str] = Field(default_factory=list)

    # Email totals across every flow in the report used, selected or not
    reportSends: float = 0.0
    reportRevenue: float = 0.0


# =============================================================================
# API Contracts
# =============================================================================


class CustomTimeframe(BaseModel):
    """Explicit timestamps; each is widened to its whole day in the account timezone."""

    start: datetime
    end: datetime


class FlowSyncRequest(BaseModel):
    """Parameters of one aggregation request."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "mode": "auto",
                "startDate": "2026-01-01",
                "endDate": "2026-01-07",
                "limitFlows": 25,
                "includeDrafts": False,
            }
        }
    )

    mode: AggregationMode = AggregationMode.AUTO
    startDate: Optional[DateType] = None
    endDate: Optional[DateType] = None
    days: Optional[int] = Field(default=None, ge=1)
    flowIds: Optional[List[str]] = None
    limitFlows: Optional[int] = Field(default=None, ge=1)
    limitMessages: Optional[int] = Field(default=None, ge=1)
    includeDrafts: bool = False
    includeSynthetic: bool = True
    conversionMetricId: Optional[str] = None
    timeoutSeconds: Optional[float] = Field(default=None, gt=0)

    customTimeframe: Optional[CustomTimeframe] = Field(
        default=None, description="Takes precedence over startDate/endDate/days"
    )
    timeframeKey: Optional[str] = Field(
        default=None, description="Named upstream timeframe; skips per-day and runs one range call"
    )
    statistics: Optional[List[str]] = Field(default=None, description="Replaces the default statistics")
    valueStatistics: Optional[List[str]] = Field(
        default=None, description="Replaces the default value statistics; [] requests none"
    )
    revision: Optional[str] = Field(default=None, description="Upstream API revision override")


class FlowSyncResponse(BaseModel):
    rowCount: int
    columns: List[str] = Field(default_factory=lambda: list(FLOW_ROW_COLUMNS))
    rows: List[Dict[str, Any]]
    diagnostics: AggregationDiagnostics


class StepAnalysisRequest(BaseModel):
    """Window and context for a single-flow step analysis."""

    startDate: Optional[DateType] = None
    endDate: Optional[DateType] = None
    days: Optional[int] = Field(default=None, ge=1)
    mode: AggregationMode = AggregationMode.AUTO
    accountRevenueTotal: Optional[float] = Field(default=None, ge=0)
    accountSendsTotal: Optional[float] = Field(default=None, ge=0)
    lastDataDate: Optional[DateType] = None
    timeoutSeconds: Optional[float] = Field(default=None, gt=0)


class StepAnalysisResponse(BaseModel):
    flowId: str
    steps: List[StepMetrics]
    scores: List[StepScore]
    addStep: AddStepSuggestion
    diagnostics: AggregationDiagnostics


class ErrorResponse(BaseModel):
    error: str
    details: str
    hint: Optional[str] = None
    status: int


__all__ = [
    "Flow",
    "FlowMessage",
    "ReportRow",
    "ResolvedIdentity",
    "FLOW_ROW_COLUMNS",
    "FlowRow",
    "StepMetrics",
    "ScoringContext",
    "MoneyPillar",
    "DeliverabilityPillar",
    "ConfidencePillar",
    "StepPillars",
    "StepScore",
    "AddStepGates",
    "AddStepEstimate",
    "AddStepSuggestion",
    "AggregationDiagnostics",
    "FlowSyncRequest",
    "FlowSyncResponse",
    "StepAnalysisRequest",
    "StepAnalysisResponse",
    "ErrorResponse",
]

"""
Package initialization for flow analytics models.

Re-exports the enumerations and Pydantic schemas so that other modules can
import them from flow_analytics.models directly.

Usage:
    from flow_analytics.models import FlowRow, StepMetrics, StepAction
"""

# =============================================================================
# Enums
# =============================================================================

from flow_analytics.models.enums import (
    FlowStatus,
    Channel,
    AggregationMode,
    RowStatus,
    StepAction,
)

# =============================================================================
# Schemas
# =============================================================================

from flow_analytics.models.schemas import (
    Flow,
    FlowMessage,
    ReportRow,
    ResolvedIdentity,
    FLOW_ROW_COLUMNS,
    FlowRow,
    StepMetrics,
    ScoringContext,
    MoneyPillar,
    DeliverabilityPillar,
    ConfidencePillar,
    StepPillars,
    StepScore,
    AddStepGates,
    AddStepEstimate,
    AddStepSuggestion,
    AggregationDiagnostics,
    CustomTimeframe,
    FlowSyncRequest,
    FlowSyncResponse,
    StepAnalysisRequest,
    StepAnalysisResponse,
    ErrorResponse,
)

__all__ = [
    # Enums
    "FlowStatus",
    "Channel",
    "AggregationMode",
    "RowStatus",
    "StepAction",
    # Upstream entities
    "Flow",
    "FlowMessage",
    "ReportRow",
    "ResolvedIdentity",
    # Output rows
    "FLOW_ROW_COLUMNS",
    "FlowRow",
    # Scoring
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
    # Aggregation + API
    "AggregationDiagnostics",
    "CustomTimeframe",
    "FlowSyncRequest",
    "FlowSyncResponse",
    "StepAnalysisRequest",
    "StepAnalysisResponse",
    "ErrorResponse",
]

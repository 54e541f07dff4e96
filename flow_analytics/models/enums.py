"""
Enumeration definitions for the Flow Analytics backend.

All enums inherit from both `str` and `Enum` so that they serialize as plain
strings inside Pydantic models and JSON responses.
"""

from enum import Enum


class FlowStatus(str, Enum):
    """
    Lifecycle state of a flow.

    Upstream reports `live`, `draft` and `manual`; archived flows carry a
    separate flag. `manual` is treated as draft since it sends nothing on
    its own.
    """
    LIVE = "live"
    DRAFT = "draft"
    ARCHIVED = "archived"


class Channel(str, Enum):
    """Send channel of a flow message. Only EMAIL rows are aggregated."""
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class AggregationMode(str, Enum):
    """
    Aggregation strategy for one request.

    - PER_DAY: one report call per calendar day in the account timezone
    - RANGE: one report call for the whole window
    - AUTO: PER_DAY, then RANGE when PER_DAY returns no upstream rows
    """
    PER_DAY = "per-day"
    RANGE = "range"
    AUTO = "auto"


class RowStatus(str, Enum):
    """Status column of an output row."""
    LIVE = "live"
    LIVE_RANGE = "live-range"
    DRAFT = "draft"


class StepAction(str, Enum):
    """
    Recommendation produced by the step scoring engine.

    - SCALE: healthy and strong, give it more volume
    - KEEP: leave as is
    - IMPROVE: worth iterating on copy/offer/timing
    - PAUSE: not earning its place in the flow
    """
    SCALE = "scale"
    KEEP = "keep"
    IMPROVE = "improve"
    PAUSE = "pause"


__all__ = [
    "FlowStatus",
    "Channel",
    "AggregationMode",
    "RowStatus",
    "StepAction",
]

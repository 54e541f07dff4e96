"""
Aggregation Orchestrator for flow performance rows.

One pass per request turns upstream report rows into reconciled output rows,
one per (day, flow, message):

1. Resolve the account timezone (falls back to UTC) and the request window
   as calendar days in that timezone.
2. Select live flows (optional id filter, limitFlows cap) and fetch their
   message lists under a bounded concurrency gate.
3. Build the IdentityResolver and resolve the conversion metric id.
4. Run the requested mode:
   - per-day: one report call per day; known email steps absent from a day
     get a zero-metric synthetic row unless synthetic rows are disabled
   - range:   one report call for the whole window, rows labelled with the
     end day and tagged `range:<start>-><end>`
   - auto:    per-day, then range when per-day produced no upstream rows
   A named timeframe key skips per-day and goes straight to one range call.
5. Enforce the row budget on every insert (rejects, never truncates), fail
   with DataIntegrityEmpty when no upstream data was found, and append draft
   placeholders when requested (every day in per-day output, the end day in
   range output).

Dedup: rows are keyed by (day, flow id, message id). A real row replaces a
synthetic one; two real rows with the same key are merged (counts summed,
rates re-weighted by delivered).

Deadline: callers may pass a monotonic deadline; it is checked before every
report call so a slow window aborts with DeadlineExceeded instead of running
unbounded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from flow_analytics.core.config import Settings, get_settings
from flow_analytics.core.exceptions import (
    DataIntegrityEmpty,
    DeadlineExceeded,
    FlowAnalyticsError,
    InvalidRequest,
    PartialEnrichmentFailure,
    RowBudgetExceeded,
)
from flow_analytics.models.enums import AggregationMode, Channel, FlowStatus, RowStatus
from flow_analytics.models.schemas import (
    FLOW_ROW_COLUMNS,
    AggregationDiagnostics,
    Flow,
    FlowMessage,
    FlowRow,
    FlowSyncRequest,
    ReportRow,
    ResolvedIdentity,
)
from flow_analytics.services.identity import IdentityResolver
from flow_analytics.services.lookup_cache import LookupCache

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

EMAIL_CHANNEL_LABEL = 'Email'
DRAFT_MESSAGE_ID = 'N/A'
DRAFT_MESSAGE_NAME = 'Draft - No Data'
TAG_SYNTHETIC_ZERO = 'synthetic:zero'
TAG_SYNTHETIC_DRAFT = 'synthetic:draft'

RowKey = Tuple[str, str, str]


class FlowReportSource(Protocol):
    """Upstream operations the orchestrator needs (see KlaviyoClient)."""

    revision: str

    async def list_flows(self) -> List[Flow]: ...

    async def list_flow_messages(self, flow_id: str) -> List[FlowMessage]: ...

    async def get_account_timezone(self) -> str: ...

    async def find_metric_id(self, name: str, integration: Optional[str] = None) -> Optional[str]: ...

    async def fetch_flow_report(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        conversion_metric_id: Optional[str],
        max_pages: Optional[int] = None,
        timeframe_key: Optional[str] = None,
        statistics: Optional[List[str]] = None,
        value_statistics: Optional[List[str]] = None,
        revision: Optional[str] = None,
    ) -> List[ReportRow]: ...


@dataclass
class ReportOptions:
    """Per-request report query overrides; unset fields keep the source defaults."""

    statistics: Optional[List[str]] = None
    value_statistics: Optional[List[str]] = None
    revision: Optional[str] = None

    @classmethod
    def from_request(cls, request: FlowSyncRequest) -> 'ReportOptions':
        return cls(
            statistics=request.statistics,
            value_statistics=request.valueStatistics,
            revision=request.revision,
        )

    def as_kwargs(self) -> Dict[str, Any]:
        return {key: value for key, value in vars(self).items() if value is not None}


# =============================================================================
# Window
# =============================================================================

@dataclass
class AggregationWindow:
    """Inclusive range of calendar days in the account timezone."""

    start: date
    end: date
    tz: ZoneInfo

    @property
    def days(self) -> List[date]:
        count = (self.end - self.start).days + 1
        return [self.start + timedelta(days=offset) for offset in range(count)]

    def day_bounds(self, day: date) -> Tuple[datetime, datetime]:
        start = datetime.combine(day, dt_time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), dt_time.min, tzinfo=self.tz)
        return start, end

    def range_bounds(self) -> Tuple[datetime, datetime]:
        return self.day_bounds(self.start)[0], self.day_bounds(self.end)[1]

    @property
    def range_tag(self) -> str:
        return f'range:{self.start.isoformat()}->{self.end.isoformat()}'


def _local_date(moment: datetime, tz: ZoneInfo) -> date:
    """Calendar day of `moment` in `tz`; naive timestamps are read as local."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def resolve_window(
    request: FlowSyncRequest,
    today: date,
    tz: ZoneInfo,
    settings: Settings,
) -> AggregationWindow:
    """
    Turn request dates into a validated window.

    Args:
        request: Aggregation request (customTimeframe, or startDate/endDate/days).
        today: Current date in the account timezone.
        tz: Account timezone.
        settings: Window defaults and limits.

    Returns:
        AggregationWindow: Inclusive window.

    Raises:
        InvalidRequest: Start after end, or window longer than max_window_days.
    """
    days = request.days or settings.default_window_days
    if request.customTimeframe is not None:
        start = _local_date(request.customTimeframe.start, tz)
        end = _local_date(request.customTimeframe.end, tz)
    elif request.startDate and request.endDate:
        start, end = request.startDate, request.endDate
    elif request.startDate:
        start = request.startDate
        end = start + timedelta(days=days - 1)
    else:
        end = request.endDate or today
        start = end - timedelta(days=days - 1)

    if start > end:
        raise InvalidRequest(
            f'startDate {start.isoformat()} is after endDate {end.isoformat()}',
            hint='Send startDate <= endDate.',
        )
    length = (end - start).days + 1
    if length > settings.max_window_days:
        raise InvalidRequest(
            f'Window of {length} days exceeds the maximum of {settings.max_window_days}',
            hint='Split the request into shorter windows.',
        )
    return AggregationWindow(start=start, end=end, tz=tz)


# =============================================================================
# Row helpers
# =============================================================================

def _weighted(a: float, a_weight: float, b: float, b_weight: float) -> float:
    total = a_weight + b_weight
    if total <= 0:
        return (a + b) / 2.0
    return (a * a_weight + b * b_weight) / total


def merge_rows(existing: FlowRow, incoming: FlowRow) -> FlowRow:
    """Combine two real rows that share a dedup key."""
    delivered = existing.delivered + incoming.delivered
    opens = existing.uniqueOpens + incoming.uniqueOpens
    clicks = existing.uniqueClicks + incoming.uniqueClicks
    orders = existing.placedOrder + incoming.placedOrder
    revenue = existing.revenue + incoming.revenue

    def ratio(count: float, fallback_a: float, fallback_b: float) -> float:
        if delivered > 0:
            return count / delivered
        return _weighted(fallback_a, existing.delivered, fallback_b, incoming.delivered)

    return existing.model_copy(update={
        'delivered': delivered,
        'uniqueOpens': opens,
        'openRate': ratio(opens, existing.openRate, incoming.openRate),
        'uniqueClicks': clicks,
        'clickRate': ratio(clicks, existing.clickRate, incoming.clickRate),
        'placedOrder': orders,
        'placedOrderRate': ratio(orders, existing.placedOrderRate, incoming.placedOrderRate),
        'revenue': revenue,
        'revenuePerRecipient': revenue / delivered if delivered > 0 else 0.0,
        'unsubRate': _weighted(existing.unsubRate, existing.delivered, incoming.unsubRate, incoming.delivered),
        'complaintRate': _weighted(existing.complaintRate, existing.delivered, incoming.complaintRate, incoming.delivered),
        'bounceRate': _weighted(existing.bounceRate, existing.delivered, incoming.bounceRate, incoming.delivered),
    })


def build_row(
    report: ReportRow,
    identity: ResolvedIdentity,
    flow: Flow,
    day_label: str,
    status: RowStatus,
    tags: str = '',
) -> FlowRow:
    delivered = report.delivered
    revenue = report.conversion_value
    return FlowRow(
        day=day_label,
        flowId=flow.id,
        flowName=flow.name,
        messageId=identity.messageId,
        messageName=identity.name,
        channel=EMAIL_CHANNEL_LABEL,
        status=status,
        delivered=delivered,
        uniqueOpens=report.opens_unique,
        openRate=report.open_rate,
        uniqueClicks=report.clicks_unique,
        clickRate=report.click_rate,
        placedOrder=report.conversion_uniques,
        placedOrderRate=report.conversion_rate,
        revenue=revenue,
        revenuePerRecipient=revenue / delivered if delivered > 0 else 0.0,
        unsubRate=report.unsubscribe_rate,
        complaintRate=report.spam_complaint_rate,
        bounceRate=report.bounce_rate,
        tags=tags,
    )


def zero_row(
    flow: Flow,
    message_id: str,
    message_name: str,
    day_label: str,
    status: RowStatus,
    tags: str,
) -> FlowRow:
    return FlowRow(
        day=day_label,
        flowId=flow.id,
        flowName=flow.name,
        messageId=message_id,
        messageName=message_name,
        channel=EMAIL_CHANNEL_LABEL,
        status=status,
        tags=tags,
        isSynthetic=True,
    )


class RowSet:
    """
    Deduplicated row accumulator with a hard budget.

    Raises RowBudgetExceeded as soon as an insert would take the set past
    max_rows.

    Also keeps email sends and revenue over every raw row observed, whatever
    flow it belongs to, as the baseline for account-level scoring.
    """

    def __init__(self, max_rows: int) -> None:
        self.max_rows = max_rows
        self._rows: Dict[RowKey, FlowRow] = {}
        self.synthetic_rows = 0
        self.merged_rows = 0
        self.report_sends = 0.0
        self.report_revenue = 0.0

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: RowKey) -> bool:
        return key in self._rows

    def _insert(self, row: FlowRow) -> None:
        if len(self._rows) + 1 > self.max_rows:
            raise RowBudgetExceeded(len(self._rows) + 1, self.max_rows)
        self._rows[row.key] = row

    def observe(self, raw: ReportRow) -> None:
        if (raw.send_channel or Channel.EMAIL.value).strip().lower() != Channel.EMAIL.value:
            return
        self.report_sends += raw.delivered
        self.report_revenue += raw.conversion_value

    def add_real(self, row: FlowRow) -> None:
        existing = self._rows.get(row.key)
        if existing is None:
            self._insert(row)
        elif existing.isSynthetic:
            self._rows[row.key] = row
            self.synthetic_rows -= 1
        else:
            self._rows[row.key] = merge_rows(existing, row)
            self.merged_rows += 1

    def add_synthetic(self, row: FlowRow) -> None:
        if row.key in self._rows:
            return
        self._insert(row)
        self.synthetic_rows += 1

    @property
    def upstream_rows(self) -> int:
        return sum(1 for row in self._rows.values() if not row.isSynthetic)

    @property
    def rows(self) -> List[FlowRow]:
        return list(self._rows.values())


def rows_to_records(rows: List[FlowRow]) -> List[Dict[str, object]]:
    """Rows as dicts keyed by column name, in FLOW_ROW_COLUMNS order."""
    return [row.model_dump(by_alias=True, mode='json') for row in rows]


def rows_to_frame(rows: List[FlowRow]) -> pd.DataFrame:
    """Rows as a DataFrame with the fixed export column order."""
    return pd.DataFrame(rows_to_records(rows), columns=FLOW_ROW_COLUMNS)


# =============================================================================
# Orchestrator
# =============================================================================

@dataclass
class AggregationResult:
    rows: List[FlowRow]
    diagnostics: AggregationDiagnostics
    window: AggregationWindow
    flows: List[Flow] = field(default_factory=list)
    messages: Dict[str, List[FlowMessage]] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        return rows_to_frame(self.rows)


class FlowAggregator:
    """
    Runs one aggregation pass against a FlowReportSource.

    Args:
        client: Upstream source (KlaviyoClient in production).
        settings: Limits and defaults; get_settings() when omitted.
        cache: Request-scoped LookupCache; a fresh one when omitted.
        clock: Monotonic clock used for the deadline check.
        now: Wall clock used to find "today" in the account timezone.
    """

    def __init__(
        self,
        client: FlowReportSource,
        settings: Optional[Settings] = None,
        cache: Optional[LookupCache] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.cache = cache or LookupCache()
        self._clock = clock
        self._now = now

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def run(
        self,
        request: FlowSyncRequest,
        deadline: Optional[float] = None,
    ) -> AggregationResult:
        """
        Aggregate flow rows for one request.

        Args:
            request: Mode, window, selection and report query parameters.
            deadline: Optional value of `clock()` after which no further
                report call is started.

        Returns:
            AggregationResult: Deduplicated rows plus diagnostics.

        Raises:
            InvalidRequest: Bad window.
            RateLimited / UpstreamUnavailable: Upstream failures.
            DataIntegrityEmpty: No upstream rows after the selected mode.
            RowBudgetExceeded: More rows than max_rows.
            DeadlineExceeded: Deadline reached between report calls.
        """
        diagnostics = AggregationDiagnostics(
            modeRequested=request.mode,
            revision=request.revision or getattr(self.client, 'revision', None),
            timeframeKey=request.timeframeKey,
        )
        options = ReportOptions.from_request(request)

        tz = await self._account_timezone(diagnostics)
        today = self._now().astimezone(tz).date()
        window = resolve_window(request, today, tz, self.settings)
        diagnostics.startDate = window.start
        diagnostics.endDate = window.end
        diagnostics.timeZone = tz.key

        live_flows, draft_flows = await self._select_flows(request)
        diagnostics.flowsSelected = len(live_flows)
        messages = await self._load_messages(live_flows, request, diagnostics)
        resolver = IdentityResolver(m for flow in live_flows for m in messages.get(flow.id, []))

        metric_id = await self._conversion_metric_id(request)
        diagnostics.conversionMetricId = metric_id
        if metric_id is None:
            logger.warning(
                f"Conversion metric '{self.settings.conversion_metric_name}' not found; revenue will read as zero"
            )

        flows_by_id = {flow.id: flow for flow in live_flows}

        if request.timeframeKey or request.mode == AggregationMode.RANGE:
            row_set = await self.run_range(
                window, flows_by_id, resolver, metric_id, diagnostics, deadline,
                options=options, timeframe_key=request.timeframeKey,
            )
            diagnostics.modeUsed = AggregationMode.RANGE
        else:
            row_set = await self.run_per_day(
                window, flows_by_id, resolver, metric_id, diagnostics, deadline,
                include_synthetic=request.includeSynthetic, options=options,
            )
            diagnostics.modeUsed = AggregationMode.PER_DAY
            if request.mode == AggregationMode.AUTO and row_set.upstream_rows == 0:
                logger.info(
                    f"Per-day aggregation returned no upstream rows for "
                    f"{window.start}..{window.end}; falling back to range"
                )
                diagnostics.autoRangeTriggered = True
                row_set = await self.run_range(
                    window, flows_by_id, resolver, metric_id, diagnostics, deadline, options=options,
                )
                diagnostics.modeUsed = AggregationMode.RANGE

        diagnostics.upstreamRows = row_set.upstream_rows
        diagnostics.reportSends = row_set.report_sends
        diagnostics.reportRevenue = row_set.report_revenue
        if row_set.upstream_rows == 0:
            logger.error(
                f"No flow report data for {window.start}..{window.end} "
                f"(mode={request.mode.value}, flows={len(live_flows)})"
            )
            raise DataIntegrityEmpty(
                f'Flow report returned no data for {window.start.isoformat()} to {window.end.isoformat()}',
                hint='Check that the selected flows were live and sending in this window '
                     'and that the API key has reports access.',
            )

        if request.includeDrafts:
            # Per-day output carries a placeholder on every day; range output only on the end day
            if diagnostics.modeUsed == AggregationMode.PER_DAY:
                labels = [day.isoformat() for day in window.days]
            else:
                labels = [window.end.isoformat()]
            for flow in draft_flows:
                for label in labels:
                    row_set.add_synthetic(zero_row(
                        flow, DRAFT_MESSAGE_ID, DRAFT_MESSAGE_NAME, label, RowStatus.DRAFT, TAG_SYNTHETIC_DRAFT,
                    ))
                    diagnostics.draftRows += 1

        rows = self._sorted(row_set.rows, resolver)
        diagnostics.syntheticRows = row_set.synthetic_rows
        diagnostics.mergedRows = row_set.merged_rows
        diagnostics.totalRows = len(rows)
        logger.info(
            f"Aggregated {len(rows)} rows ({diagnostics.upstreamRows} upstream, "
            f"{diagnostics.syntheticRows} synthetic) mode={diagnostics.modeUsed.value}"
        )
        return AggregationResult(
            rows=rows,
            diagnostics=diagnostics,
            window=window,
            flows=live_flows + draft_flows,
            messages=messages,
        )

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    async def run_per_day(
        self,
        window: AggregationWindow,
        flows_by_id: Dict[str, Flow],
        resolver: IdentityResolver,
        metric_id: Optional[str],
        diagnostics: AggregationDiagnostics,
        deadline: Optional[float] = None,
        include_synthetic: bool = True,
        options: Optional[ReportOptions] = None,
    ) -> RowSet:
        row_set = RowSet(self.settings.max_rows)
        query = (options or ReportOptions()).as_kwargs()
        days = window.days
        diagnostics.days = len(days)
        for index, day in enumerate(days):
            self._check_deadline(deadline, f'after {index} of {len(days)} days')
            start, end = window.day_bounds(day)
            label = day.isoformat()
            report = await self.client.fetch_flow_report(start, end, metric_id, **query)
            self._merge_report(report, row_set, flows_by_id, resolver, diagnostics, label, RowStatus.LIVE)

            if not include_synthetic:
                continue
            for flow in flows_by_id.values():
                for message in resolver.email_messages(flow.id):
                    if (label, flow.id, message.id) in row_set:
                        continue
                    row_set.add_synthetic(zero_row(
                        flow, message.id, message.name or message.id, label, RowStatus.LIVE, TAG_SYNTHETIC_ZERO,
                    ))
        return row_set

    async def run_range(
        self,
        window: AggregationWindow,
        flows_by_id: Dict[str, Flow],
        resolver: IdentityResolver,
        metric_id: Optional[str],
        diagnostics: AggregationDiagnostics,
        deadline: Optional[float] = None,
        options: Optional[ReportOptions] = None,
        timeframe_key: Optional[str] = None,
    ) -> RowSet:
        """
        One report call for the whole window, labelled with the end day.

        With `timeframe_key` the upstream resolves the timeframe itself and
        rows are tagged `range:<key>`; otherwise the literal window is sent
        and recorded in the tag.
        """
        row_set = RowSet(self.settings.max_rows)
        query = (options or ReportOptions()).as_kwargs()
        diagnostics.days = len(window.days)
        self._check_deadline(deadline, 'before the range request')
        if timeframe_key:
            report = await self.client.fetch_flow_report(
                None, None, metric_id, timeframe_key=timeframe_key, **query
            )
            tag = f'range:{timeframe_key}'
        else:
            start, end = window.range_bounds()
            report = await self.client.fetch_flow_report(start, end, metric_id, **query)
            tag = window.range_tag
        self._merge_report(
            report, row_set, flows_by_id, resolver, diagnostics,
            window.end.isoformat(), RowStatus.LIVE_RANGE, tags=tag,
        )
        return row_set

    def _merge_report(
        self,
        report: List[ReportRow],
        row_set: RowSet,
        flows_by_id: Dict[str, Flow],
        resolver: IdentityResolver,
        diagnostics: AggregationDiagnostics,
        label: str,
        status: RowStatus,
        tags: str = '',
    ) -> None:
        for raw in report:
            row_set.observe(raw)
            flow = flows_by_id.get(raw.flow_id or '')
            identity = resolver.resolve(raw) if flow is not None else None
            if identity is None:
                diagnostics.droppedRows += 1
                continue
            row_set.add_real(build_row(raw, identity, flow, label, status, tags))

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def _account_timezone(self, diagnostics: AggregationDiagnostics) -> ZoneInfo:
        try:
            name = await self.cache.timezone(self.client.get_account_timezone)
            return ZoneInfo(name)
        except (FlowAnalyticsError, ZoneInfoNotFoundError, ValueError) as exc:
            failure = PartialEnrichmentFailure('account_timezone', f'Falling back to UTC: {exc}')
            logger.warning(f"Account timezone lookup failed: {failure.details}")
            diagnostics.enrichmentFailures.append(f'{failure.step}: {failure.details}')
            return ZoneInfo('UTC')

    async def _select_flows(self, request: FlowSyncRequest) -> Tuple[List[Flow], List[Flow]]:
        flows = await self.client.list_flows()
        wanted = set(request.flowIds or [])
        if wanted:
            flows = [flow for flow in flows if flow.id in wanted]
        limit = min(request.limitFlows or self.settings.default_limit_flows, self.settings.max_limit_flows)
        live = [flow for flow in flows if flow.status == FlowStatus.LIVE][:limit]
        drafts: List[Flow] = []
        if request.includeDrafts:
            drafts = [flow for flow in flows if flow.status == FlowStatus.DRAFT][:limit]
        logger.info(f"Selected {len(live)} live flows and {len(drafts)} drafts from {len(flows)} flows")
        return live, drafts

    async def _load_messages(
        self,
        flows: List[Flow],
        request: FlowSyncRequest,
        diagnostics: AggregationDiagnostics,
    ) -> Dict[str, List[FlowMessage]]:
        limit = min(request.limitMessages or self.settings.default_limit_messages, self.settings.max_limit_messages)
        gate = asyncio.Semaphore(max(1, self.settings.fetch_concurrency))

        async def load(flow: Flow) -> Tuple[str, List[FlowMessage]]:
            async with gate:
                try:
                    messages = await self.cache.flow_messages(flow.id, self.client.list_flow_messages)
                except FlowAnalyticsError as exc:
                    failure = PartialEnrichmentFailure('flow_messages', f'flow {flow.id}: {exc.details}')
                    logger.warning(f"Message list unavailable, rows keep raw ids: {failure.details}")
                    diagnostics.enrichmentFailures.append(f'{failure.step}: {failure.details}')
                    return flow.id, []
            return flow.id, messages[:limit]

        results = await asyncio.gather(*(load(flow) for flow in flows))
        return dict(results)

    async def _conversion_metric_id(self, request: FlowSyncRequest) -> Optional[str]:
        explicit = request.conversionMetricId or self.settings.conversion_metric_id
        if explicit:
            return explicit
        name = self.settings.conversion_metric_name
        integration = self.settings.conversion_integration

        async def lookup() -> Optional[str]:
            return await self.client.find_metric_id(name, integration)

        return await self.cache.metric_id(f'{name}|{integration}', lookup)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _check_deadline(self, deadline: Optional[float], progress: str) -> None:
        if deadline is not None and self._clock() >= deadline:
            logger.error(f"Aggregation deadline reached {progress}")
            raise DeadlineExceeded(
                f'Aggregation deadline reached {progress}',
                hint='Request a shorter window or a longer timeout.',
            )

    @staticmethod
    def _sorted(rows: List[FlowRow], resolver: IdentityResolver) -> List[FlowRow]:
        def sort_key(row: FlowRow) -> Tuple[str, str, int, str]:
            message = resolver.message(row.messageId)
            position = message.sequencePosition if message else 10 ** 6
            return (row.day, row.flowId, position, row.messageId)

        return sorted(rows, key=sort_key)


__all__ = [
    'FlowReportSource',
    'ReportOptions',
    'AggregationWindow',
    'AggregationResult',
    'FlowAggregator',
    'RowSet',
    'resolve_window',
    'merge_rows',
    'build_row',
    'zero_row',
    'rows_to_records',
    'rows_to_frame',
    'EMAIL_CHANNEL_LABEL',
    'DRAFT_MESSAGE_ID',
    'DRAFT_MESSAGE_NAME',
    'TAG_SYNTHETIC_ZERO',
    'TAG_SYNTHETIC_DRAFT',
]

"""
Tests for the Aggregation Orchestrator.

Covers:
- per-day aggregation with synthetic zero rows for known steps
- dedup by (day, flow, message): real beats synthetic, real + real merge
- range mode labelling and auto mode's fallback to range
- DataIntegrityEmpty when no upstream data exists
- the row budget (rejection, never truncation)
- draft placeholders, enrichment failures, concurrency gate and deadlines

Upstream is a FakeReportSource; the wall clock is pinned to 2026-01-08 UTC.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from flow_analytics.core.config import Settings
from flow_analytics.core.exceptions import (
    DataIntegrityEmpty,
    DeadlineExceeded,
    InvalidRequest,
    RowBudgetExceeded,
    UpstreamUnavailable,
)
from flow_analytics.models.enums import AggregationMode, FlowStatus, RowStatus
from flow_analytics.models.schemas import FLOW_ROW_COLUMNS, CustomTimeframe, FlowSyncRequest
from flow_analytics.services.aggregation import (
    DRAFT_MESSAGE_ID,
    DRAFT_MESSAGE_NAME,
    TAG_SYNTHETIC_DRAFT,
    TAG_SYNTHETIC_ZERO,
    FlowAggregator,
    RowSet,
    zero_row,
    resolve_window,
    rows_to_frame,
    rows_to_records,
)
from flow_analytics.services.lookup_cache import LookupCache
from flow_analytics.tests.fakes import (
    FakeReportSource,
    make_flow,
    make_message,
    make_report_row,
)


def window_request(mode: AggregationMode = AggregationMode.PER_DAY, **kwargs) -> FlowSyncRequest:
    return FlowSyncRequest(
        mode=mode,
        startDate=date(2026, 1, 5),
        endDate=date(2026, 1, 7),
        **kwargs,
    )


@pytest.fixture
def make_aggregator(settings, fixed_now):
    def factory(source, **kwargs):
        kwargs.setdefault('settings', settings)
        return FlowAggregator(source, now=fixed_now, **kwargs)
    return factory


# =============================================================================
# Test Class: TestPerDayAggregation
# =============================================================================

class TestPerDayAggregation:
    """One report call per day plus synthetic fill for known steps."""

    @pytest.mark.asyncio
    async def test_rows_cover_every_known_step_every_day(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request())

        keys = [(row.day, row.messageId) for row in result.rows]
        assert keys == [
            ('2026-01-05', 'M1'), ('2026-01-05', 'M2'),
            ('2026-01-06', 'M1'), ('2026-01-06', 'M2'),
            ('2026-01-07', 'M1'), ('2026-01-07', 'M2'),
        ]
        assert len(fake_source.report_calls) == 3
        assert all(call[2] == 'PLACED_ORDER' for call in fake_source.report_calls)
        assert result.diagnostics.upstreamRows == 4
        assert result.diagnostics.syntheticRows == 2
        assert result.diagnostics.modeUsed == AggregationMode.PER_DAY

    @pytest.mark.asyncio
    async def test_synthetic_rows_are_zero_and_tagged(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request())

        synthetic = [row for row in result.rows if row.isSynthetic]
        assert {row.day for row in synthetic} == {'2026-01-06', '2026-01-07'}
        for row in synthetic:
            assert row.messageId == 'M2'
            assert row.messageName == 'Welcome 2'
            assert row.delivered == 0
            assert row.revenue == 0
            assert row.tags == TAG_SYNTHETIC_ZERO

    @pytest.mark.asyncio
    async def test_synthetic_rows_can_be_disabled(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request(includeSynthetic=False))

        assert len(result.rows) == 4
        assert not any(row.isSynthetic for row in result.rows)

    @pytest.mark.asyncio
    async def test_real_rows_resolve_names_and_channel(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request())

        first = result.rows[0]
        assert first.flowName == 'Welcome Series'
        assert first.messageName == 'Welcome 1'
        assert first.channel == 'Email'
        assert first.status == RowStatus.LIVE
        assert first.revenuePerRecipient == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_dedup_keys_are_unique(self, fake_source, make_aggregator):
        fake_source.daily_rows[date(2026, 1, 6)].append(make_report_row('F1', message_id='M1', delivered=10))
        result = await make_aggregator(fake_source).run(window_request())

        keys = [row.key for row in result.rows]
        assert len(keys) == len(set(keys))

    @pytest.mark.asyncio
    async def test_real_rows_sharing_a_key_are_merged(self, fake_source, make_aggregator):
        # Same step reported once by action id and once by message id
        fake_source.daily_rows[date(2026, 1, 5)].append(
            make_report_row('F1', message_id='M1', delivered=200, opens=100, revenue=60.0)
        )
        result = await make_aggregator(fake_source).run(window_request())

        merged = next(row for row in result.rows if row.key == ('2026-01-05', 'F1', 'M1'))
        assert merged.delivered == 1200
        assert merged.uniqueOpens == 500
        assert merged.revenue == pytest.approx(360.0)
        assert merged.openRate == pytest.approx(500 / 1200)
        assert merged.revenuePerRecipient == pytest.approx(0.3)
        assert result.diagnostics.mergedRows == 1

    @pytest.mark.asyncio
    async def test_real_row_wins_over_synthetic_fill(self, make_aggregator, sample_messages):
        # Day 2 reports M2 by message id instead of action id
        source = FakeReportSource(
            [make_flow('F1')],
            sample_messages,
            daily_rows={date(2026, 1, 5): [make_report_row('F1', action_id='A1')]},
        )
        aggregator = make_aggregator(source)
        request = window_request()
        result = await aggregator.run(request)
        assert sum(1 for row in result.rows if row.isSynthetic) == 5

        source.daily_rows[date(2026, 1, 6)] = [make_report_row('F1', message_id='M2', delivered=75)]
        result = await make_aggregator(source).run(request)
        replaced = next(row for row in result.rows if row.key == ('2026-01-06', 'F1', 'M2'))
        assert not replaced.isSynthetic
        assert replaced.delivered == 75

    @pytest.mark.asyncio
    async def test_unselected_flows_and_other_channels_are_dropped(self, fake_source, make_aggregator):
        fake_source.daily_rows[date(2026, 1, 5)].extend([
            make_report_row('F9', action_id='A99'),
            make_report_row('F1', action_id='A3', channel='sms'),
            make_report_row('F1'),
        ])
        result = await make_aggregator(fake_source).run(window_request())

        assert result.diagnostics.droppedRows == 3
        assert {row.flowId for row in result.rows} == {'F1'}
        assert 'S1' not in {row.messageId for row in result.rows}

    @pytest.mark.asyncio
    async def test_flow_id_filter_and_limits(self, fake_source, make_aggregator):
        fake_source.flows.append(make_flow('F3'))
        result = await make_aggregator(fake_source).run(window_request(flowIds=['F1'], limitMessages=1))

        assert result.diagnostics.flowsSelected == 1
        assert 'F3' not in fake_source.message_calls
        # Only M1 survives the message limit; M2 rows fall back to raw ids
        synthetic_ids = {row.messageId for row in result.rows if row.isSynthetic}
        assert synthetic_ids == set()
        assert {row.messageId for row in result.rows} == {'M1', 'A2'}


# =============================================================================
# Test Class: TestRangeAndAutoModes
# =============================================================================

class TestRangeAndAutoModes:
    """Range labelling and the explicit per-day -> range fallback."""

    @pytest.fixture
    def range_only_source(self, sample_messages) -> FakeReportSource:
        return FakeReportSource(
            [make_flow('F1', 'Welcome Series')],
            sample_messages,
            daily_rows={},
            range_rows=[
                make_report_row('F1', action_id='A1', delivered=3000, revenue=900.0),
                make_report_row('F1', action_id='A2', delivered=500, revenue=90.0),
            ],
        )

    @pytest.mark.asyncio
    async def test_range_mode_labels_rows_with_end_day(self, range_only_source, make_aggregator):
        result = await make_aggregator(range_only_source).run(window_request(AggregationMode.RANGE))

        assert len(range_only_source.report_calls) == 1
        start, end, _ = range_only_source.report_calls[0]
        assert start == datetime(2026, 1, 5, tzinfo=ZoneInfo('UTC'))
        assert end == datetime(2026, 1, 8, tzinfo=ZoneInfo('UTC'))
        assert [row.messageId for row in result.rows] == ['M1', 'M2']
        for row in result.rows:
            assert row.day == '2026-01-07'
            assert row.status == RowStatus.LIVE_RANGE
            assert row.tags == 'range:2026-01-05->2026-01-07'

    @pytest.mark.parametrize('mode', [AggregationMode.RANGE, AggregationMode.AUTO])
    @pytest.mark.asyncio
    async def test_colliding_range_rows_are_merged(self, range_only_source, make_aggregator, mode):
        # Same step reported once by action id and once by message id
        range_only_source.range_rows.append(
            make_report_row('F1', message_id='M1', delivered=1000, opens=600, revenue=100.0)
        )
        result = await make_aggregator(range_only_source).run(window_request(mode))

        keys = [row.key for row in result.rows]
        assert len(keys) == len(set(keys))
        assert keys == [('2026-01-07', 'F1', 'M1'), ('2026-01-07', 'F1', 'M2')]
        merged = result.rows[0]
        assert merged.delivered == 4000
        assert merged.revenue == pytest.approx(1000.0)
        assert merged.uniqueOpens == 1000
        assert merged.status == RowStatus.LIVE_RANGE
        assert result.diagnostics.mergedRows == 1
        assert result.diagnostics.modeUsed == AggregationMode.RANGE
        assert result.diagnostics.autoRangeTriggered is (mode == AggregationMode.AUTO)

    @pytest.mark.asyncio
    async def test_auto_falls_back_to_range_when_per_day_is_empty(self, range_only_source, make_aggregator):
        result = await make_aggregator(range_only_source).run(window_request(AggregationMode.AUTO))

        assert result.diagnostics.autoRangeTriggered is True
        assert result.diagnostics.modeUsed == AggregationMode.RANGE
        assert len(range_only_source.report_calls) == 4
        assert not any(row.isSynthetic for row in result.rows)

    @pytest.mark.asyncio
    async def test_auto_fallback_matches_direct_range_run(self, sample_messages, make_aggregator):
        def source() -> FakeReportSource:
            return FakeReportSource(
                [make_flow('F1', 'Welcome Series')],
                sample_messages,
                range_rows=[make_report_row('F1', action_id='A1', delivered=3000, revenue=900.0)],
            )

        auto = await make_aggregator(source()).run(window_request(AggregationMode.AUTO))
        direct = await make_aggregator(source()).run(window_request(AggregationMode.RANGE))

        assert rows_to_records(auto.rows) == rows_to_records(direct.rows)

    @pytest.mark.asyncio
    async def test_auto_keeps_per_day_rows_when_available(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request(AggregationMode.AUTO))

        assert result.diagnostics.autoRangeTriggered is False
        assert result.diagnostics.modeUsed == AggregationMode.PER_DAY
        assert len(fake_source.report_calls) == 3

    @pytest.mark.asyncio
    async def test_empty_everywhere_raises_data_integrity_error(self, sample_messages, make_aggregator):
        source = FakeReportSource([make_flow('F1')], sample_messages)

        with pytest.raises(DataIntegrityEmpty) as exc_info:
            await make_aggregator(source).run(window_request(AggregationMode.AUTO))

        assert len(source.report_calls) == 4
        assert exc_info.value.hint
        assert exc_info.value.to_dict()['status'] == 502

    @pytest.mark.asyncio
    async def test_only_synthetic_rows_is_still_empty(self, sample_messages, make_aggregator):
        source = FakeReportSource([make_flow('F1')], sample_messages)

        with pytest.raises(DataIntegrityEmpty):
            await make_aggregator(source).run(window_request(AggregationMode.PER_DAY))


# =============================================================================
# Test Class: TestRowBudget
# =============================================================================

class TestRowBudget:
    """Exceeding max_rows rejects the request."""

    def test_row_set_real_row_replaces_synthetic_without_growing(self):
        flow = make_flow('F1')
        row_set = RowSet(max_rows=1)
        row_set.add_synthetic(zero_row(flow, 'M1', 'Email 1', '2026-01-05', RowStatus.LIVE, TAG_SYNTHETIC_ZERO))
        real = zero_row(flow, 'M1', 'Email 1', '2026-01-05', RowStatus.LIVE, '').model_copy(
            update={'isSynthetic': False, 'delivered': 10.0}
        )
        row_set.add_real(real)

        assert len(row_set) == 1
        assert row_set.synthetic_rows == 0
        assert row_set.upstream_rows == 1
        assert row_set.rows[0].delivered == 10.0

    def test_row_set_synthetic_never_overwrites_real(self):
        flow = make_flow('F1')
        row_set = RowSet(max_rows=5)
        real = zero_row(flow, 'M1', 'Email 1', '2026-01-05', RowStatus.LIVE, '').model_copy(
            update={'isSynthetic': False, 'delivered': 10.0}
        )
        row_set.add_real(real)
        row_set.add_synthetic(zero_row(flow, 'M1', 'Email 1', '2026-01-05', RowStatus.LIVE, TAG_SYNTHETIC_ZERO))

        assert len(row_set) == 1
        assert row_set.rows[0].delivered == 10.0

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_sixty_thousand_synthetic_rows_exceed_default_budget(self, make_aggregator):
        flows = [make_flow(f'F{i}') for i in range(20)]
        messages = {
            flow.id: [make_message(f'{flow.id}-M{j}', flow.id, j + 1, action_id=f'{flow.id}-A{j}') for j in range(100)]
            for flow in flows
        }
        end = date(2026, 1, 7)
        start = end - timedelta(days=29)
        source = FakeReportSource(
            flows,
            messages,
            daily_rows={start: [make_report_row('F0', action_id='F0-A0')]},
        )
        request = FlowSyncRequest(
            mode=AggregationMode.PER_DAY,
            startDate=start,
            endDate=end,
            limitFlows=20,
            limitMessages=100,
        )

        with pytest.raises(RowBudgetExceeded) as exc_info:
            await make_aggregator(source).run(request)

        assert exc_info.value.max_rows == 50000
        assert exc_info.value.row_count == 50001

    @pytest.mark.asyncio
    async def test_budget_boundary(self, fake_source, fixed_now):
        exact = Settings(_env_file=None, klaviyo_api_key='pk', max_rows=6)
        result = await FlowAggregator(fake_source, settings=exact, now=fixed_now).run(window_request())
        assert len(result.rows) == 6

        tight = Settings(_env_file=None, klaviyo_api_key='pk', max_rows=5)
        with pytest.raises(RowBudgetExceeded):
            await FlowAggregator(fake_source, settings=tight, now=fixed_now).run(window_request())


# =============================================================================
# Test Class: TestDraftsEnrichmentAndDeadlines
# =============================================================================

class TestDraftsEnrichmentAndDeadlines:

    @pytest.mark.asyncio
    async def test_draft_placeholders_cover_every_day(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request(includeDrafts=True))

        drafts = [row for row in result.rows if row.status == RowStatus.DRAFT]
        assert [row.day for row in drafts] == ['2026-01-05', '2026-01-06', '2026-01-07']
        for draft in drafts:
            assert draft.flowId == 'F2'
            assert draft.messageId == DRAFT_MESSAGE_ID
            assert draft.messageName == DRAFT_MESSAGE_NAME
            assert draft.tags == TAG_SYNTHETIC_DRAFT
            assert draft.isSynthetic
        assert result.diagnostics.draftRows == 3
        assert 'F2' not in fake_source.message_calls

    @pytest.mark.asyncio
    async def test_range_output_has_one_draft_on_end_day(self, sample_messages, make_aggregator):
        source = FakeReportSource(
            [make_flow('F1'), make_flow('F2', status=FlowStatus.DRAFT)],
            sample_messages,
            range_rows=[make_report_row('F1', action_id='A1', delivered=3000)],
        )
        result = await make_aggregator(source).run(window_request(AggregationMode.AUTO, includeDrafts=True))

        drafts = [row for row in result.rows if row.status == RowStatus.DRAFT]
        assert result.diagnostics.modeUsed == AggregationMode.RANGE
        assert [row.day for row in drafts] == ['2026-01-07']
        assert result.diagnostics.draftRows == 1

    @pytest.mark.asyncio
    async def test_timezone_failure_falls_back_to_utc(self, fake_source, make_aggregator):
        fake_source.timezone_error = UpstreamUnavailable('accounts returned 500', upstream_status=500)
        result = await make_aggregator(fake_source).run(window_request())

        assert result.diagnostics.timeZone == 'UTC'
        assert any(f.startswith('account_timezone') for f in result.diagnostics.enrichmentFailures)

    @pytest.mark.asyncio
    async def test_days_follow_account_timezone(self, fake_source, make_aggregator):
        fake_source.timezone = 'America/New_York'
        result = await make_aggregator(fake_source).run(window_request())

        start, end, _ = fake_source.report_calls[0]
        assert start == datetime(2026, 1, 5, tzinfo=ZoneInfo('America/New_York'))
        assert end - start == timedelta(days=1)
        assert result.diagnostics.timeZone == 'America/New_York'

    @pytest.mark.asyncio
    async def test_message_list_failure_keeps_raw_rows(self, fake_source, make_aggregator):
        fake_source.failing_message_flows.add('F1')
        result = await make_aggregator(fake_source).run(window_request())

        assert any(f.startswith('flow_messages') for f in result.diagnostics.enrichmentFailures)
        assert {row.messageId for row in result.rows} == {'A1', 'A2'}
        assert not any(row.isSynthetic for row in result.rows)

    @pytest.mark.asyncio
    async def test_message_lists_fetched_under_concurrency_gate(self, make_aggregator):
        flows = [make_flow(f'F{i}') for i in range(10)]
        messages = {flow.id: [make_message(f'{flow.id}-M1', flow.id, 1, action_id=f'{flow.id}-A1')] for flow in flows}
        source = FakeReportSource(
            flows,
            messages,
            daily_rows={date(2026, 1, 5): [make_report_row('F0', action_id='F0-A1')]},
        )
        await make_aggregator(source).run(window_request())

        assert len(source.message_calls) == 10
        assert 1 <= source.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_request_cache_reuses_message_lists(self, fake_source, make_aggregator):
        cache = LookupCache()
        await make_aggregator(fake_source, cache=cache).run(window_request())
        await make_aggregator(fake_source, cache=cache).run(window_request())

        assert fake_source.message_calls == ['F1']

    @pytest.mark.asyncio
    async def test_deadline_checked_before_each_day(self, fake_source, make_aggregator):
        ticks = iter([0.0, 0.0, 100.0])
        aggregator = make_aggregator(fake_source, clock=lambda: next(ticks))

        with pytest.raises(DeadlineExceeded) as exc_info:
            await aggregator.run(window_request(), deadline=50.0)

        assert len(fake_source.report_calls) == 2
        assert 'after 2 of 3 days' in exc_info.value.details

    @pytest.mark.asyncio
    async def test_expired_deadline_makes_no_report_call(self, fake_source, make_aggregator):
        aggregator = make_aggregator(fake_source, clock=lambda: 100.0)

        with pytest.raises(DeadlineExceeded):
            await aggregator.run(window_request(AggregationMode.RANGE), deadline=50.0)

        assert fake_source.report_calls == []


# =============================================================================
# Test Class: TestWindowAndExport
# =============================================================================

class TestWindowAndExport:

    def test_default_window_ends_today(self, settings):
        window = resolve_window(FlowSyncRequest(), date(2026, 1, 8), ZoneInfo('UTC'), settings)
        assert window.start == date(2026, 1, 2)
        assert window.end == date(2026, 1, 8)
        assert len(window.days) == 7

    def test_start_with_days(self, settings):
        window = resolve_window(
            FlowSyncRequest(startDate=date(2026, 1, 1), days=3), date(2026, 1, 8), ZoneInfo('UTC'), settings,
        )
        assert window.end == date(2026, 1, 3)

    def test_window_longer_than_max_is_rejected(self, settings):
        request = FlowSyncRequest(startDate=date(2026, 1, 1), endDate=date(2026, 2, 15))
        with pytest.raises(InvalidRequest):
            resolve_window(request, date(2026, 2, 16), ZoneInfo('UTC'), settings)

    def test_start_after_end_is_rejected(self, settings):
        request = FlowSyncRequest(startDate=date(2026, 1, 9), endDate=date(2026, 1, 2))
        with pytest.raises(InvalidRequest):
            resolve_window(request, date(2026, 1, 10), ZoneInfo('UTC'), settings)

    @pytest.mark.asyncio
    async def test_frame_uses_fixed_column_order(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request())
        frame = rows_to_frame(result.rows)

        assert list(frame.columns) == FLOW_ROW_COLUMNS
        assert len(frame) == 6
        assert frame.loc[0, 'Flow Message ID'] == 'M1'
        assert frame.loc[0, 'Day'] == '2026-01-05'

    def test_custom_timeframe_overrides_dates_in_account_timezone(self, settings):
        ny = ZoneInfo('America/New_York')
        request = FlowSyncRequest(
            startDate=date(2026, 1, 1),
            endDate=date(2026, 1, 2),
            customTimeframe=CustomTimeframe(
                start=datetime(2026, 1, 5, 3, 0, tzinfo=timezone.utc),
                end=datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc),
            ),
        )
        window = resolve_window(request, date(2026, 1, 8), ny, settings)
        # 03:00 UTC on Jan 5 is still Jan 4 in New York
        assert window.start == date(2026, 1, 4)
        assert window.end == date(2026, 1, 7)


# =============================================================================
# Test Class: TestReportOptions
# =============================================================================

class TestReportOptions:
    """Per-request query overrides and report-wide totals."""

    @pytest.mark.asyncio
    async def test_report_totals_span_every_flow_but_only_email(self, fake_source, make_aggregator):
        fake_source.daily_rows[date(2026, 1, 5)].extend([
            make_report_row('F9', action_id='A99', delivered=1000, revenue=250.0),
            make_report_row('F1', action_id='A3', channel='sms', delivered=1000, revenue=250.0),
        ])
        result = await make_aggregator(fake_source).run(window_request(flowIds=['F1']))

        # F1 email: 3 x 1000 + 500 sends, 3 x 300 + 90 revenue; F9 is unselected but counted
        assert result.diagnostics.reportSends == pytest.approx(4500)
        assert result.diagnostics.reportRevenue == pytest.approx(1240.0)
        assert {row.flowId for row in result.rows} == {'F1'}

    @pytest.mark.asyncio
    async def test_report_totals_follow_the_mode_used(self, sample_messages, make_aggregator):
        source = FakeReportSource(
            [make_flow('F1')],
            sample_messages,
            range_rows=[make_report_row('F1', action_id='A1', delivered=3000, revenue=900.0)],
        )
        result = await make_aggregator(source).run(window_request(AggregationMode.AUTO))

        assert result.diagnostics.autoRangeTriggered is True
        assert result.diagnostics.reportSends == pytest.approx(3000)
        assert result.diagnostics.reportRevenue == pytest.approx(900.0)

    @pytest.mark.asyncio
    async def test_overrides_reach_every_report_call(self, fake_source, make_aggregator):
        request = window_request(
            statistics=['delivered', 'opens_unique'],
            valueStatistics=[],
            revision='2025-01-15',
        )
        result = await make_aggregator(fake_source).run(request)

        assert len(fake_source.report_options) == 3
        for options in fake_source.report_options:
            assert options == {
                'statistics': ['delivered', 'opens_unique'],
                'value_statistics': [],
                'revision': '2025-01-15',
            }
        assert result.diagnostics.revision == '2025-01-15'

    @pytest.mark.asyncio
    async def test_default_request_sends_no_overrides(self, fake_source, make_aggregator):
        result = await make_aggregator(fake_source).run(window_request())

        assert fake_source.report_options == [{}, {}, {}]
        assert result.diagnostics.revision == FakeReportSource.revision

    @pytest.mark.asyncio
    async def test_timeframe_key_skips_per_day(self, sample_messages, make_aggregator):
        source = FakeReportSource(
            [make_flow('F1')],
            sample_messages,
            range_rows=[make_report_row('F1', action_id='A1', delivered=3000, revenue=900.0)],
        )
        result = await make_aggregator(source).run(
            window_request(AggregationMode.PER_DAY, timeframeKey='last_30_days')
        )

        assert source.report_calls == [(None, None, 'PLACED_ORDER')]
        assert source.report_options == [{'timeframe_key': 'last_30_days'}]
        assert result.diagnostics.modeUsed == AggregationMode.RANGE
        assert result.diagnostics.timeframeKey == 'last_30_days'
        assert [row.tags for row in result.rows] == ['range:last_30_days']
        assert result.rows[0].day == '2026-01-07'

    @pytest.mark.asyncio
    async def test_custom_timeframe_drives_per_day_calls(self, fake_source, make_aggregator):
        request = FlowSyncRequest(
            mode=AggregationMode.PER_DAY,
            customTimeframe=CustomTimeframe(
                start=datetime(2026, 1, 5, 8, 30, tzinfo=timezone.utc),
                end=datetime(2026, 1, 7, 17, 45, tzinfo=timezone.utc),
            ),
        )
        result = await make_aggregator(fake_source).run(request)

        assert [call[0] for call in fake_source.report_calls] == [
            datetime(2026, 1, 5, tzinfo=ZoneInfo('UTC')),
            datetime(2026, 1, 6, tzinfo=ZoneInfo('UTC')),
            datetime(2026, 1, 7, tzinfo=ZoneInfo('UTC')),
        ]
        assert result.diagnostics.startDate == date(2026, 1, 5)
        assert result.diagnostics.endDate == date(2026, 1, 7)

"""
Pytest Configuration and Shared Fixtures for Flow Analytics Tests.

Provides:
- Async test execution with pytest-asyncio
- Settings instances isolated from the process environment and .env
- A two-step sample flow (messages, action ids, daily report rows)
- FakeReportSource instances for orchestrator and API tests

Dependencies:
- pytest==8.3.4
- pytest-asyncio==0.25.0
- httpx (MockTransport for client tests)
"""

from datetime import date, datetime, timezone
from typing import Dict, List

import pytest

from flow_analytics.core.config import Settings, get_settings
from flow_analytics.models.enums import Channel, FlowStatus
from flow_analytics.models.schemas import FlowMessage, ReportRow
from flow_analytics.tests.fakes import (
    FakeReportSource,
    make_flow,
    make_message,
    make_report_row,
)


# ============================================================
# PYTEST PLUGINS CONFIGURATION
# ============================================================

pytest_plugins: List[str] = ['pytest_asyncio']


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: large synthetic inputs (deselect with -m "not slow")
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def settings() -> Settings:
    """Settings with a test key, ignoring any .env file."""
    return Settings(_env_file=None, klaviyo_api_key='pk_test_123')


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Keep the get_settings() singleton from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# SAMPLE FLOW FIXTURES
# ============================================================

@pytest.fixture
def window_days() -> List[date]:
    return [date(2026, 1, 5), date(2026, 1, 6), date(2026, 1, 7)]


@pytest.fixture
def fixed_now():
    """Wall clock pinned to the day after the sample window."""
    return lambda: datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_messages() -> Dict[str, List[FlowMessage]]:
    """
    Welcome flow F1 with two email steps and one SMS step.

    Report rows key email steps by action id (A1, A2); the SMS step is
    listed but must never produce output rows.
    """
    return {
        'F1': [
            make_message('M1', 'F1', 1, action_id='A1', name='Welcome 1'),
            make_message('M2', 'F1', 2, action_id='A2', name='Welcome 2'),
            make_message('S1', 'F1', 3, action_id='A3', name='Welcome SMS', channel=Channel.SMS),
        ],
    }


@pytest.fixture
def sample_daily_rows(window_days: List[date]) -> Dict[date, List[ReportRow]]:
    """M1 reports every day; M2 only on the first day."""
    rows: Dict[date, List[ReportRow]] = {}
    for day in window_days:
        rows[day] = [make_report_row('F1', action_id='A1', delivered=1000, revenue=300.0)]
    rows[window_days[0]].append(make_report_row('F1', action_id='A2', delivered=500, revenue=90.0))
    return rows


@pytest.fixture
def fake_source(sample_messages, sample_daily_rows) -> FakeReportSource:
    flows = [
        make_flow('F1', 'Welcome Series'),
        make_flow('F2', 'Browse Abandon (draft)', status=FlowStatus.DRAFT),
    ]
    return FakeReportSource(flows, sample_messages, daily_rows=sample_daily_rows)

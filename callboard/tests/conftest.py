"""
Pytest Configuration and Shared Fixtures for Callboard Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async test execution with pytest-asyncio (``@pytest.mark.asyncio``)
- Virtual-time scheduling so polling intervals and alert display durations can
  be advanced deterministically
- A controllable clock pinned to a fixed "today"
- AsyncMock statistics fetchers standing in for the upstream client
- Sample statistics rows and raw call records in the upstream wire shape

All fixtures pin the display timezone to UTC so expectations do not depend on
the machine or on the DISPLAY_TIMEZONE environment variable.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from callboard.core.config import Settings
from callboard.models.schemas import StatisticsFilter, StatisticsRow
from callboard.services.notifications import NotificationSequencer
from callboard.services.polling import PollingController
from callboard.services.scheduler import VirtualScheduler


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - slow: Marks tests as slow (deselect with -m "not slow")
    - integration: Marks tests requiring a reachable upstream API
    - state_machine: Marks polling controller state machine scenarios
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests requiring a reachable upstream API'
    )
    config.addinivalue_line(
        'markers',
        'state_machine: marks polling controller state machine scenarios'
    )


# ============================================================
# TIME FIXTURES
# ============================================================

TODAY = date(2025, 9, 15)
YESTERDAY = TODAY - timedelta(days=1)


class FakeClock:
    """Callable clock returning a settable aware datetime."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to 14:30 UTC on TODAY."""
    return FakeClock(datetime(2025, 9, 15, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with UTC display time and no .env influence."""
    return Settings(
        _env_file=None,
        upstream_base_url='http://upstream.test',
        display_timezone='UTC',
    )


# ============================================================
# SAMPLE DATA
# ============================================================

def make_row(
    agent_id: str = 'agent-1',
    project_id: str = 'project-1',
    day: Optional[date] = TODAY,
    **outcomes: int,
) -> StatisticsRow:
    """Build one statistics row; outcome counts are passed as keyword arguments."""
    return StatisticsRow(
        agentId=agent_id,
        projectId=project_id,
        date=day.isoformat() if day else None,
        outcomes=dict(outcomes),
    )


@pytest.fixture
def row_factory() -> Callable[..., StatisticsRow]:
    return make_row


@pytest.fixture
def valid_filters() -> StatisticsFilter:
    return StatisticsFilter(
        agentIds=['agent-1'],
        projectIds=['project-1'],
        dateFrom=TODAY.isoformat(),
        dateTo=TODAY.isoformat(),
    )


@pytest.fixture
def raw_call_records() -> List[Dict[str, Any]]:
    """
    Raw detail records in the shapes seen upstream.

    Two records share contact c-1 in campaign k-1 on the same day; one of them
    has the hyphenated time-of-day malformation. The third record has no usable
    timestamp at all.
    """
    return [
        {
            'id': 'r1',
            'contactsId': 'c-1',
            'contactsCampaignId': 'k-1',
            'callStart': '2025-09-15T09:15:00Z',
            'durationInSeconds': 42.4,
            'outcome': 'KI Ansprechpartner',
        },
        {
            'id': 'r2',
            'contacts_id': 'c-1',
            'contacts_campaign_id': 'k-1',
            'callStart': '2025-09-15T11-59-41-424Z',
            'duration': '61',
            'outcome': 'Termin',
        },
        {
            'id': 'r3',
            'contactsId': 'c-2',
            'contactsCampaignId': 'k-1',
            'callStart': 'not a timestamp',
            'outcome': '$none',
        },
    ]


# ============================================================
# ENGINE FIXTURES
# ============================================================

@pytest.fixture
def fetcher() -> AsyncMock:
    """Statistics fetcher returning no rows; tests set return_value/side_effect."""
    return AsyncMock(return_value=[])


@pytest.fixture
def sequencer(scheduler: VirtualScheduler) -> NotificationSequencer:
    return NotificationSequencer(
        scheduler,
        default_display_seconds=5.0,
        milestone_display_seconds=7.0,
        milestone_outcomes=['Termin'],
    )


@pytest.fixture
def controller(
    fetcher: AsyncMock,
    sequencer: NotificationSequencer,
    scheduler: VirtualScheduler,
    clock: FakeClock,
) -> PollingController:
    """Polling controller on virtual time with a 10 s interval and a 300 s fetch bound."""
    return PollingController(
        fetch_statistics=fetcher,
        sequencer=sequencer,
        scheduler=scheduler,
        poll_interval_seconds=10.0,
        statistics_timeout_seconds=300.0,
        fetch_timeout_retries=1,
        tz=timezone.utc,
        clock=clock,
    )

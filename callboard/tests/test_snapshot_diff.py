"""
Snapshot Diff Test Module

Tests for callboard/services/snapshot_diff.py.

Test Coverage:
- Folding statistics rows into snapshots (per-day sums, latest day wins)
- No alerts on the first observation of a session
- One event per increased counter with the exact delta
- Silent adoption of new counters and silent decreases
- The "today" eligibility rule for both the query window and the statistic date
- Alert labels (names, clock time, date range, milestone flag)
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from callboard.models.enums import OutcomeCategory
from callboard.models.schemas import StatisticsFilter
from callboard.services.snapshot_diff import (
    EventLabeler,
    NameDirectory,
    OutcomeCounterKey,
    Snapshot,
    build_snapshot,
    describe_date_range,
    diff_snapshots,
    statistic_date,
)
from callboard.tests.conftest import TODAY, YESTERDAY, make_row

UTC = timezone.utc
CAPTURED = datetime(2025, 9, 15, 14, 30, tzinfo=UTC)
TERMIN = OutcomeCounterKey('agent-1', 'project-1', 'Termin')
KEIN_INTERESSE = OutcomeCounterKey('agent-1', 'project-1', 'Kein Interesse')


def snapshot(counts, active_today=True, day=TODAY, captured_at=CAPTURED) -> Snapshot:
    return Snapshot(
        counts=dict(counts),
        captured_at=captured_at,
        date_range_active_today=active_today,
        stat_dates={key: day for key in counts},
    )


def labeler(**kwargs) -> EventLabeler:
    kwargs.setdefault('tz', UTC)
    return EventLabeler(**kwargs)


# =============================================================================
# Snapshot Construction
# =============================================================================


class TestBuildSnapshot:

    def test_counts_per_outcome(self):
        snap = build_snapshot(
            [make_row(Termin=2, **{'Kein Interesse': 4})],
            CAPTURED,
            True,
            tz=UTC,
        )
        assert snap.counts == {TERMIN: 2, KEIN_INTERESSE: 4}
        assert snap.stat_dates[TERMIN] == TODAY
        assert snap.date_range_active_today is True
        assert len(snap) == 2

    def test_same_key_same_day_is_summed(self):
        snap = build_snapshot([make_row(Termin=2), make_row(Termin=3)], CAPTURED, True, tz=UTC)
        assert snap.counts[TERMIN] == 5

    def test_latest_day_wins(self):
        rows = [make_row(day=TODAY, Termin=1), make_row(day=YESTERDAY, Termin=9)]
        snap = build_snapshot(rows, CAPTURED, True, tz=UTC)

        assert snap.counts[TERMIN] == 1
        assert snap.stat_dates[TERMIN] == TODAY

    def test_undated_row_has_no_stat_date(self):
        snap = build_snapshot([make_row(day=None, Termin=1)], CAPTURED, True, tz=UTC)
        assert snap.stat_dates[TERMIN] is None

    def test_key_order_follows_rows(self):
        rows = [
            make_row(agent_id='b', Termin=1),
            make_row(agent_id='a', Termin=1),
        ]
        snap = build_snapshot(rows, CAPTURED, True, tz=UTC)
        assert [key.agent_id for key in snap.counts] == ['b', 'a']

    def test_empty_rows(self):
        snap = build_snapshot([], CAPTURED, False, tz=UTC)
        assert snap.counts == {}
        assert snap.date_range_active_today is False

    def test_statistic_date_uses_display_timezone(self):
        assert statistic_date('2025-09-15T22:30:00Z', UTC) == date(2025, 9, 15)
        assert statistic_date('2025-09-15T22:30:00Z', ZoneInfo('Europe/Nicosia')) == date(2025, 9, 16)
        assert statistic_date(None, UTC) is None


# =============================================================================
# Diff Rules
# =============================================================================


class TestDiffSnapshots:

    def test_first_observation_emits_nothing(self):
        current = snapshot({TERMIN: 4, KEIN_INTERESSE: 7})

        result = diff_snapshots(None, current, today=TODAY, labeler=labeler())

        assert result.events == []
        assert result.baseline.counts == {TERMIN: 4, KEIN_INTERESSE: 7}

    def test_suppress_all_adopts_without_events(self):
        previous = snapshot({TERMIN: 1})
        current = snapshot({TERMIN: 4})

        result = diff_snapshots(previous, current, suppress_all=True, today=TODAY, labeler=labeler())

        assert result.events == []
        assert result.baseline.counts[TERMIN] == 4

    def test_single_increase_emits_one_event_with_delta(self):
        previous = snapshot({TERMIN: 2})
        current = snapshot({TERMIN: 5})

        result = diff_snapshots(previous, current, today=TODAY, labeler=labeler())

        assert len(result.events) == 1
        event = result.events[0]
        assert event.delta == 3
        assert event.newCount == 5
        assert event.outcomeName == 'Termin'
        assert event.category == OutcomeCategory.POSITIVE
        assert event.observedAt == CAPTURED
        assert result.baseline.counts[TERMIN] == 5

    def test_no_repeat_after_baseline_update(self):
        first = diff_snapshots(snapshot({TERMIN: 2}), snapshot({TERMIN: 5}), today=TODAY, labeler=labeler())
        second = diff_snapshots(first.baseline, snapshot({TERMIN: 5}), today=TODAY, labeler=labeler())
        assert second.events == []

    def test_decrease_is_silent(self):
        result = diff_snapshots(snapshot({TERMIN: 5}), snapshot({TERMIN: 3}), today=TODAY, labeler=labeler())

        assert result.events == []
        assert result.baseline.counts[TERMIN] == 3

    def test_new_key_is_adopted_silently(self):
        result = diff_snapshots(
            snapshot({TERMIN: 1}),
            snapshot({TERMIN: 1, KEIN_INTERESSE: 3}),
            today=TODAY,
            labeler=labeler(),
        )
        assert result.events == []
        assert result.baseline.counts[KEIN_INTERESSE] == 3

    def test_keys_missing_from_current_keep_baseline(self):
        result = diff_snapshots(
            snapshot({TERMIN: 1, KEIN_INTERESSE: 3}),
            snapshot({TERMIN: 2}),
            today=TODAY,
            labeler=labeler(),
        )
        assert result.baseline.counts == {TERMIN: 2, KEIN_INTERESSE: 3}

    def test_previous_snapshot_is_not_mutated(self):
        previous = snapshot({TERMIN: 2})
        diff_snapshots(previous, snapshot({TERMIN: 5}), today=TODAY, labeler=labeler())
        assert previous.counts[TERMIN] == 2

    def test_window_not_covering_today_updates_silently(self):
        result = diff_snapshots(
            snapshot({TERMIN: 2}),
            snapshot({TERMIN: 5}, active_today=False),
            today=TODAY,
            labeler=labeler(),
        )
        assert result.events == []
        assert result.baseline.counts[TERMIN] == 5

    def test_statistic_dated_yesterday_updates_silently(self):
        result = diff_snapshots(
            snapshot({TERMIN: 2}, day=YESTERDAY),
            snapshot({TERMIN: 5}, day=YESTERDAY),
            today=TODAY,
            labeler=labeler(),
        )
        assert result.events == []
        assert result.baseline.counts[TERMIN] == 5

    def test_today_defaults_to_capture_date(self):
        late_evening = datetime(2025, 9, 15, 22, 30, tzinfo=UTC)
        previous = snapshot({TERMIN: 1}, captured_at=late_evening)
        current = snapshot({TERMIN: 2}, captured_at=late_evening)

        # In Nicosia it is already the 16th, so a statistic dated the 15th is history
        nicosia = diff_snapshots(previous, current, labeler=labeler(tz=ZoneInfo('Europe/Nicosia')))
        utc = diff_snapshots(previous, current, labeler=labeler())

        assert nicosia.events == []
        assert len(utc.events) == 1

    def test_events_follow_snapshot_key_order(self):
        other = OutcomeCounterKey('agent-2', 'project-1', 'Termin')
        result = diff_snapshots(
            snapshot({TERMIN: 1, other: 1}),
            snapshot({other: 2, TERMIN: 3}),
            today=TODAY,
            labeler=labeler(),
        )
        assert [(e.subjectId, e.delta) for e in result.events] == [('agent-2', 1), ('agent-1', 2)]


# =============================================================================
# Labels
# =============================================================================


class TestEventLabels:

    def test_names_from_directory_with_id_fallback(self):
        directory = NameDirectory(agents={'agent-1': 'Anna'}, projects={})
        result = diff_snapshots(
            snapshot({TERMIN: 1}),
            snapshot({TERMIN: 2}),
            today=TODAY,
            labeler=labeler(directory=directory),
        )
        event = result.events[0]
        assert event.subjectName == 'Anna'
        assert event.contextName == 'project-1'

    def test_time_label_and_milestone(self):
        result = diff_snapshots(
            snapshot({TERMIN: 1, KEIN_INTERESSE: 1}),
            snapshot({TERMIN: 2, KEIN_INTERESSE: 2}),
            today=TODAY,
            labeler=labeler(date_range_label='seit 01.09.2025'),
        )
        termin, declined = result.events

        assert termin.timeLabel == '14:30'
        assert termin.isMilestone is True
        assert termin.dateRangeLabel == 'seit 01.09.2025'
        assert declined.isMilestone is False
        assert declined.category == OutcomeCategory.NEGATIVE

    @pytest.mark.parametrize('date_from,date_to,expected', [
        ('2025-09-15', '2025-09-15', ''),
        ('2025-09-15', None, ''),
        ('2025-09-14', '2025-09-14', 'am 14.09.2025'),
        ('2025-09-01', '2025-09-15', 'im Zeitraum 01.09.2025 - 15.09.2025'),
        ('2025-09-01', None, 'seit 01.09.2025'),
        (None, '2025-09-15', ''),
    ])
    def test_describe_date_range(self, date_from, date_to, expected):
        filters = StatisticsFilter(agentIds=['a'], projectIds=['p'], dateFrom=date_from, dateTo=date_to)
        assert describe_date_range(filters, TODAY) == expected

    def test_describe_without_filters(self):
        assert describe_date_range(None, TODAY) == ''

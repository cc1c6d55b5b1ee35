"""
Snapshot Diff Service

Detects which cumulative outcome counters increased between two snapshots of
aggregate statistics, without any server-side push mechanism.

A Snapshot maps (agent, project, outcome) to a cumulative count. The differ
keeps a retained baseline and compares every new snapshot against it:

1. First observation of a filter session (no baseline) or an explicit
   suppression: the whole snapshot becomes the baseline and nothing is
   reported. Pre-existing historical counts must never produce alerts.
2. Otherwise, per key of the new snapshot:
   - key never tracked: adopted silently
   - count increased: one NotificationEvent with delta = new - old
   - count decreased: upstream correction, baseline lowered silently
   The baseline always takes the new count.
3. Events are only produced when the query window covers today AND the
   statistic itself is dated today. Backfilled history is never announced.

Functions here are pure: diff_snapshots() returns the next baseline rather than
mutating the previous one.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import pandas as pd

from callboard.models.schemas import NotificationEvent, StatisticsFilter, StatisticsRow
from callboard.services.normalization import EPOCH, parse_timestamp, resolve_timezone
from callboard.services.outcome_classifier import (
    DEFAULT_CLASSIFIER,
    OutcomeClassifier,
)

logger = logging.getLogger(__name__)


class OutcomeCounterKey(NamedTuple):
    """Identity of one cumulative counter."""
    agent_id: str
    project_id: str
    outcome_name: str


@dataclass(frozen=True)
class Snapshot:
    """
    Point-in-time counts per (agent, project, outcome).

    Attributes:
        counts: Cumulative count per counter key
        captured_at: When the underlying rows were received
        date_range_active_today: Whether today lies inside the query window
        stat_dates: Date of the statistic each count was taken from
    """
    counts: Mapping[OutcomeCounterKey, int]
    captured_at: datetime
    date_range_active_today: bool
    stat_dates: Mapping[OutcomeCounterKey, Optional[date]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.counts)


@dataclass(frozen=True)
class DiffResult:
    """Next baseline plus the events detected against the previous one."""
    baseline: Snapshot
    events: List[NotificationEvent]


@dataclass
class NameDirectory:
    """
    Display names for agents and projects.

    Unknown ids are labeled with the id itself so an increase is never lost
    just because the lookup lists are out of date.
    """
    agents: Dict[str, str] = field(default_factory=dict)
    projects: Dict[str, str] = field(default_factory=dict)

    def agent_name(self, agent_id: str) -> str:
        return self.agents.get(agent_id, agent_id)

    def project_name(self, project_id: str) -> str:
        return self.projects.get(project_id, project_id)


# =============================================================================
# Labels
# =============================================================================

def _format_day(iso_day: str) -> str:
    """'2025-09-15' -> '15.09.2025'; unparseable values are returned unchanged."""
    try:
        return date.fromisoformat(iso_day).strftime('%d.%m.%Y')
    except ValueError:
        return iso_day


def describe_date_range(filters: Optional[StatisticsFilter], today: date) -> str:
    """
    Human-readable description of the query window for alert text.

    Empty when the window is exactly today; otherwise "am <day>",
    "im Zeitraum <from> - <to>" or "seit <from>".
    """
    if filters is None:
        return ''

    iso_today = today.isoformat()
    date_from, date_to = filters.dateFrom, filters.dateTo

    if date_from == iso_today and (not date_to or date_to == iso_today):
        return ''
    if date_from and date_to:
        if date_from == date_to:
            return f"am {_format_day(date_from)}"
        return f"im Zeitraum {_format_day(date_from)} - {_format_day(date_to)}"
    if date_from:
        return f"seit {_format_day(date_from)}"
    return ''


@dataclass
class EventLabeler:
    """
    Turns a detected increase into a NotificationEvent.

    Attributes:
        directory: Agent/project display names
        classifier: Outcome category strategy
        milestone_outcomes: Outcome labels shown with the longer display duration
        tz: Display timezone for the clock label
        date_range_label: Description of the active query window
    """
    directory: NameDirectory = field(default_factory=NameDirectory)
    classifier: OutcomeClassifier = DEFAULT_CLASSIFIER
    milestone_outcomes: Sequence[str] = ('Termin',)
    tz: Optional[tzinfo] = None
    date_range_label: str = ''

    def build(
        self,
        key: OutcomeCounterKey,
        new_count: int,
        delta: int,
        observed_at: datetime,
    ) -> NotificationEvent:
        zone = resolve_timezone(self.tz)
        local = observed_at if observed_at.tzinfo else observed_at.replace(tzinfo=timezone.utc)
        return NotificationEvent(
            subjectId=key.agent_id,
            subjectName=self.directory.agent_name(key.agent_id),
            contextId=key.project_id,
            contextName=self.directory.project_name(key.project_id),
            outcomeName=key.outcome_name,
            category=self.classifier.classify(key.outcome_name),
            newCount=new_count,
            delta=delta,
            observedAt=observed_at,
            timeLabel=local.astimezone(zone).strftime('%H:%M'),
            dateRangeLabel=self.date_range_label,
            isMilestone=key.outcome_name in self.milestone_outcomes,
        )


# =============================================================================
# Snapshot Construction
# =============================================================================

def statistic_date(raw_date: Optional[str], tz: Optional[tzinfo] = None) -> Optional[date]:
    """Local calendar date of a statistics row, or None when it has no usable date."""
    timestamp = parse_timestamp(raw_date, tz)
    if timestamp is None:
        return None
    try:
        return (EPOCH + timedelta(milliseconds=timestamp)).astimezone(resolve_timezone(tz)).date()
    except (OverflowError, ValueError):
        return None


_KEY_COLUMNS = ['agent_id', 'project_id', 'outcome_name']


def build_snapshot(
    rows: Iterable[StatisticsRow],
    captured_at: datetime,
    date_range_active_today: bool,
    tz: Optional[tzinfo] = None,
) -> Snapshot:
    """
    Fold statistics rows into a Snapshot.

    Rows are per agent/project/day with an outcome -> count map. Counts for the
    same key and day are summed; when a key appears on several days the most
    recent day's count is kept, so the snapshot tracks the live day once it
    appears.

    Args:
        rows: Statistics rows in response order
        captured_at: Receipt time of the rows
        date_range_active_today: Whether today is inside the query window
        tz: Display timezone for the statistic dates

    Returns:
        Snapshot
    """
    zone = resolve_timezone(tz)
    records = []
    for row in rows:
        stat_day = statistic_date(row.date, zone)
        for outcome_name, count in row.outcomes.items():
            records.append({
                'agent_id': row.agentId,
                'project_id': row.projectId,
                'outcome_name': outcome_name,
                # -1 sorts undated rows before any real day
                'day_ordinal': stat_day.toordinal() if stat_day else -1,
                'count': int(count or 0),
            })

    if not records:
        return Snapshot(counts={}, captured_at=captured_at, date_range_active_today=date_range_active_today)

    df = pd.DataFrame.from_records(records)
    per_day = df.groupby(_KEY_COLUMNS + ['day_ordinal'], as_index=False, sort=False)['count'].sum()
    latest = (
        per_day.sort_values('day_ordinal', kind='stable')
        .drop_duplicates(subset=_KEY_COLUMNS, keep='last')
    )

    # Re-establish first-seen key order for deterministic event ordering
    first_seen = df.drop_duplicates(subset=_KEY_COLUMNS)[_KEY_COLUMNS]
    latest = first_seen.merge(latest, on=_KEY_COLUMNS, how='left')

    counts: Dict[OutcomeCounterKey, int] = {}
    stat_dates: Dict[OutcomeCounterKey, Optional[date]] = {}
    for agent_id, project_id, outcome_name, ordinal, count in latest[
        _KEY_COLUMNS + ['day_ordinal', 'count']
    ].itertuples(index=False, name=None):
        key = OutcomeCounterKey(str(agent_id), str(project_id), str(outcome_name))
        counts[key] = int(count)
        stat_dates[key] = date.fromordinal(int(ordinal)) if int(ordinal) > 0 else None

    return Snapshot(
        counts=counts,
        captured_at=captured_at,
        date_range_active_today=date_range_active_today,
        stat_dates=stat_dates,
    )


# =============================================================================
# Diff
# =============================================================================

def diff_snapshots(
    previous: Optional[Snapshot],
    current: Snapshot,
    suppress_all: bool = False,
    today: Optional[date] = None,
    labeler: Optional[EventLabeler] = None,
) -> DiffResult:
    """
    Compare a new snapshot against the retained baseline.

    Args:
        previous: Retained baseline, or None on the first observation of a session
        current: Newly built snapshot
        suppress_all: Adopt `current` as baseline without reporting anything
        today: The caller's local date (defaults to current.captured_at's date
            in the display timezone)
        labeler: Builds NotificationEvents for detected increases

    Returns:
        DiffResult with the next baseline and the detected events, in
        snapshot key order
    """
    labeler = labeler or EventLabeler()

    if previous is None or suppress_all:
        logger.info(f"Adopting {len(current)} counters as baseline without notifications")
        return DiffResult(
            baseline=Snapshot(
                counts=dict(current.counts),
                captured_at=current.captured_at,
                date_range_active_today=current.date_range_active_today,
                stat_dates=dict(current.stat_dates),
            ),
            events=[],
        )

    if today is None:
        captured = current.captured_at
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=timezone.utc)
        today = captured.astimezone(resolve_timezone(labeler.tz)).date()

    counts = dict(previous.counts)
    stat_dates = dict(previous.stat_dates)
    events: List[NotificationEvent] = []

    for key, new_count in current.counts.items():
        stat_day = current.stat_dates.get(key)
        old_count = counts.get(key)

        if old_count is None:
            logger.debug(f"Discovered counter {key} at {new_count}")
        elif new_count > old_count:
            eligible = current.date_range_active_today and stat_day == today
            if eligible:
                events.append(labeler.build(key, new_count, new_count - old_count, current.captured_at))
            else:
                logger.debug(f"Counter {key} rose {old_count} -> {new_count} outside today; not announced")
        elif new_count < old_count:
            logger.info(f"Counter {key} corrected {old_count} -> {new_count}")

        counts[key] = new_count
        stat_dates[key] = stat_day

    if events:
        logger.info(f"Detected {len(events)} counter increases")

    return DiffResult(
        baseline=Snapshot(
            counts=counts,
            captured_at=current.captured_at,
            date_range_active_today=current.date_range_active_today,
            stat_dates=stat_dates,
        ),
        events=events,
    )

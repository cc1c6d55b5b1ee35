"""
Callboard Services Module

This module contains the live-update engine. Everything except the polling
controller and the upstream client is a pure, synchronous function over
already-fetched data.

Services:
- outcome_classifier: pluggable outcome label -> category strategies
- normalization: raw call records -> CanonicalCallRecord
- grouping: canonical records -> CallGroup with representative selection
- snapshot_diff: statistics rows -> Snapshot, baseline diff -> NotificationEvent
- scheduler: timers with cancellation handles (event loop and virtual time)
- notifications: one-at-a-time alert sequencer
- upstream: async HTTP client for the upstream dashboard API
- polling: the live session state machine

All services are consumed by the API layer (callboard/api/).
"""

# =============================================================================
# Outcome Classification Exports
# =============================================================================

from callboard.services.outcome_classifier import (
    OutcomeClassifier,
    KeywordOutcomeClassifier,
    LookupOutcomeClassifier,
    compare_classifiers,
    log_classifier_conflicts,
    normalize_label,
    DEFAULT_CLASSIFIER,
    DEFAULT_OUTCOME_TABLE,
)

# =============================================================================
# Record Normalization and Grouping Exports
# =============================================================================

from callboard.services.normalization import (
    normalize_record,
    normalize_records,
    parse_timestamp,
    parse_duration,
)
from callboard.services.grouping import (
    group_records,
    normalize_and_group,
    merge_records,
    format_clock,
    format_duration,
)

# =============================================================================
# Snapshot Diff Exports
# =============================================================================

from callboard.services.snapshot_diff import (
    OutcomeCounterKey,
    Snapshot,
    DiffResult,
    NameDirectory,
    EventLabeler,
    build_snapshot,
    diff_snapshots,
    describe_date_range,
)

# =============================================================================
# Live Session Exports
# =============================================================================

from callboard.services.scheduler import (
    Scheduler,
    AsyncioScheduler,
    VirtualScheduler,
    IntervalTimer,
)
from callboard.services.notifications import NotificationSequencer
from callboard.services.polling import LiveSession, PollingController
from callboard.services.upstream import UpstreamClient

__all__ = [
    # ----- Outcome Classification -----
    'OutcomeClassifier',
    'KeywordOutcomeClassifier',
    'LookupOutcomeClassifier',
    'compare_classifiers',
    'log_classifier_conflicts',
    'normalize_label',
    'DEFAULT_CLASSIFIER',
    'DEFAULT_OUTCOME_TABLE',
    # ----- Normalization / Grouping -----
    'normalize_record',
    'normalize_records',
    'parse_timestamp',
    'parse_duration',
    'group_records',
    'normalize_and_group',
    'merge_records',
    'format_clock',
    'format_duration',
    # ----- Snapshot Diff -----
    'OutcomeCounterKey',
    'Snapshot',
    'DiffResult',
    'NameDirectory',
    'EventLabeler',
    'build_snapshot',
    'diff_snapshots',
    'describe_date_range',
    # ----- Live Session -----
    'Scheduler',
    'AsyncioScheduler',
    'VirtualScheduler',
    'IntervalTimer',
    'NotificationSequencer',
    'LiveSession',
    'PollingController',
    'UpstreamClient',
]

"""
Call Grouping Service

Clusters canonical call records into logical interaction groups (same explicit
group id, or same contact + campaign + day) and picks one representative record
per group for collapsed list views.

Representative selection is applied left to right over input order:
- a record with a valid timestamp replaces a representative without one
- between two valid timestamps the more recent one wins
- between two invalid timestamps the later arrival wins
- a valid representative is never displaced by an invalid record

Groups are returned newest first by representative timestamp, with timeless
representatives sorted as timestamp 0 and ties kept in first-seen order.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from callboard.models.enums import OutcomeCategory
from callboard.models.schemas import CallGroup, CanonicalCallRecord
from callboard.services.normalization import EPOCH, resolve_timezone, normalize_records
from callboard.services.outcome_classifier import OutcomeClassifier

logger = logging.getLogger(__name__)


@dataclass
class _GroupAccumulator:
    """Mutable build state for one group; frozen into a CallGroup at the end."""
    key: str
    representative: CanonicalCallRecord
    members: List[CanonicalCallRecord] = field(default_factory=list)
    first_timestamp: Optional[int] = None
    total_duration: int = 0
    has_positive: bool = False

    def freeze(self, tz: Optional[tzinfo] = None) -> CallGroup:
        return CallGroup(
            key=self.key,
            members=list(self.members),
            representative=self.representative,
            firstTimestamp=self.first_timestamp,
            totalDurationSeconds=self.total_duration,
            hasPositiveOutcome=self.has_positive,
            timeLabel=format_clock(self.representative.startTimestamp, tz),
            durationLabel=format_duration(self.total_duration),
        )


def outranks(candidate: CanonicalCallRecord, current: CanonicalCallRecord) -> bool:
    """
    Decide whether `candidate` (arriving later) replaces `current` as representative.

    Args:
        candidate: The record being added
        current: The group's representative so far

    Returns:
        True if candidate should become the representative
    """
    if candidate.hasValidTime and not current.hasValidTime:
        return True
    if candidate.hasValidTime and current.hasValidTime:
        return candidate.startTimestamp > current.startTimestamp
    if not candidate.hasValidTime and not current.hasValidTime:
        return True
    # current is valid, candidate is not
    return False


def group_records(
    records: Iterable[CanonicalCallRecord],
    tz: Optional[tzinfo] = None,
) -> List[CallGroup]:
    """
    Group canonical records and select a representative per group.

    Deterministic for a fixed input order. Totals and the positive-outcome flag
    cover every member, not just the representative.

    Args:
        records: Canonical records in source order
        tz: Timezone for the groups' clock labels

    Returns:
        List of CallGroup sorted by representative timestamp, newest first
    """
    zone = resolve_timezone(tz)
    groups: Dict[str, _GroupAccumulator] = {}

    for record in records:
        acc = groups.get(record.groupKey)
        if acc is None:
            acc = _GroupAccumulator(key=record.groupKey, representative=record)
            groups[record.groupKey] = acc
        elif outranks(record, acc.representative):
            acc.representative = record

        acc.members.append(record)
        acc.total_duration += record.durationSeconds
        if record.outcomeCategory == OutcomeCategory.POSITIVE:
            acc.has_positive = True
        if record.startTimestamp is not None and (
            acc.first_timestamp is None or record.startTimestamp < acc.first_timestamp
        ):
            acc.first_timestamp = record.startTimestamp

    # sorted() is stable, so ties keep first-seen order
    return sorted(
        (acc.freeze(zone) for acc in groups.values()),
        key=lambda g: g.representative.startTimestamp or 0,
        reverse=True,
    )


def normalize_and_group(
    raw_records: Iterable[Any],
    classifier: Optional[OutcomeClassifier] = None,
    tz: Optional[tzinfo] = None,
) -> List[CallGroup]:
    """
    Normalize raw detail records and group them for a detail view.

    Args:
        raw_records: Raw records as returned by the call-details endpoint
        classifier: Outcome classification strategy
        tz: Timezone for naive timestamps

    Returns:
        Grouped records, newest first
    """
    normalized = normalize_records(raw_records, classifier=classifier, tz=tz)
    groups = group_records(normalized, tz=tz)
    logger.debug(f"Grouped {len(normalized)} call records into {len(groups)} groups")
    return groups


def merge_records(existing: List[Any], incoming: Iterable[Any]) -> List[Any]:
    """
    Append raw records whose id is not yet present.

    Used for incremental detail refreshes: records already on screen keep their
    position and newly seen ids are added at the end in arrival order. Records
    without an id are always appended.
    """
    seen = {r.get('id') for r in existing if isinstance(r, dict) and r.get('id') is not None}
    merged = list(existing)
    for record in incoming:
        record_id = record.get('id') if isinstance(record, dict) else None
        if record_id is not None and record_id in seen:
            continue
        if record_id is not None:
            seen.add(record_id)
        merged.append(record)
    return merged


def format_clock(timestamp: Optional[int], tz: Optional[tzinfo] = None) -> str:
    """Epoch milliseconds -> 'HH:MM' in the display timezone, '--:--' when unknown."""
    if timestamp is None:
        return '--:--'
    try:
        moment = (EPOCH + timedelta(milliseconds=timestamp)).astimezone(resolve_timezone(tz))
    except (OverflowError, ValueError):
        return '--:--'
    return moment.strftime('%H:%M')


def format_duration(duration_seconds: int) -> str:
    """Seconds -> 'MM:SS' (minutes are not wrapped into hours)."""
    seconds = max(0, int(duration_seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"

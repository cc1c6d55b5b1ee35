"""
Call Record Normalization Service

Converts raw per-call detail records from the upstream dialer export into
CanonicalCallRecord instances with a reliable sort key.

Raw records are inconsistently shaped: the start time may be a proper ISO
string, an ISO string whose time-of-day uses hyphens instead of colons
("2025-09-04T11-59-41-424Z"), a separate date + "HH:mm" pair, or only a date.
Ids arrive in camelCase or snake_case depending on the export path.

Timestamp resolution order (first success wins):
1. callStart, after repairing the hyphenated time-of-day, parsed as ISO and
   then with the general pandas date parser
2. recordingsDate + uhrzeit ("YYYY-MM-DD" + "HH:mm")
3. recordingsDate alone (midnight)
4. None, with hasValidTime = False

Normalization is total: a record that cannot be parsed falls back to a null
timestamp, zero duration and a neutral outcome instead of raising.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from callboard.core.config import get_settings
from callboard.models.schemas import CanonicalCallRecord
from callboard.services.outcome_classifier import DEFAULT_CLASSIFIER, OutcomeClassifier

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# "T11-59-41-424Z" -> "T11:59:41.424Z"
_HYPHENATED_TIME = re.compile(r'T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z')

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Placeholder the export uses for "no time of day"
_MISSING_TIME_MARKERS = ('', '-')


def resolve_timezone(tz: Optional[tzinfo]) -> tzinfo:
    return tz if tz is not None else get_settings().tzinfo


def _to_epoch_ms(value: datetime, tz: tzinfo) -> int:
    """Convert a datetime to epoch milliseconds, reading naive values in `tz`."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return (value - EPOCH) // timedelta(milliseconds=1)


def repair_timestamp_string(raw: str) -> str:
    """Fix the known hyphenated time-of-day malformation and trim whitespace."""
    return _HYPHENATED_TIME.sub(r'T\1:\2:\3.\4Z', raw.strip())


def parse_timestamp(raw: Any, tz: Optional[tzinfo] = None) -> Optional[int]:
    """
    Parse a timestamp in any of the encodings seen upstream.

    Args:
        raw: ISO-like string, datetime/date, or epoch milliseconds
        tz: Timezone for naive values (defaults to the display timezone)

    Returns:
        Epoch milliseconds, or None when the value is missing or unparseable
    """
    if raw is None or isinstance(raw, bool):
        return None

    zone = resolve_timezone(tz)

    if isinstance(raw, (int, float)):
        # 0 is the upstream placeholder for "no start time"
        if not raw or (isinstance(raw, float) and (math.isnan(raw) or math.isinf(raw))):
            return None
        return int(raw)

    if isinstance(raw, datetime):
        return _to_epoch_ms(raw, zone)

    if isinstance(raw, date):
        return _to_epoch_ms(datetime(raw.year, raw.month, raw.day), zone)

    if not isinstance(raw, str):
        return None

    sanitized = repair_timestamp_string(raw)
    if not sanitized:
        return None

    try:
        return _to_epoch_ms(datetime.fromisoformat(sanitized), zone)
    except ValueError:
        pass

    # General date-string parsing for everything ISO rejects
    try:
        parsed = pd.to_datetime(sanitized)
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Unparseable timestamp {raw!r}")
        return None

    if pd.isna(parsed):
        return None
    return _to_epoch_ms(parsed.to_pydatetime(), zone)


def _combine_date_time(date_part: Any, time_part: Any) -> Optional[str]:
    """'2025-09-15' + '16:23' -> '2025-09-15 16:23'; None when either side is missing."""
    if not date_part or time_part is None:
        return None
    time_str = str(time_part).strip()
    if time_str in _MISSING_TIME_MARKERS:
        return None
    return f"{str(date_part).strip()} {time_str}"


def _first_present(raw: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = raw.get(name)
        if value is not None and value != '':
            return value
    return None


def parse_duration(raw: Mapping[str, Any]) -> int:
    """
    Duration in whole seconds.

    Takes the first non-null of durationInSeconds / duration, rounds half up
    and floors at zero. Unparseable values count as zero.
    """
    value = None
    for name in ('durationInSeconds', 'duration'):
        if raw.get(name) is not None:
            value = raw.get(name)
            break

    if value is None:
        return 0

    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable duration {value!r}")
        return 0

    if math.isnan(seconds) or math.isinf(seconds):
        return 0
    return max(0, math.floor(seconds + 0.5))


def resolve_start_timestamp(raw: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Optional[int]:
    """Apply the timestamp resolution order to one raw record."""
    timestamp = parse_timestamp(raw.get('callStart'), tz)

    recordings_date = raw.get('recordingsDate')
    if timestamp is None and recordings_date:
        combined = _combine_date_time(recordings_date, raw.get('uhrzeit'))
        if combined is not None:
            timestamp = parse_timestamp(combined, tz)

    if timestamp is None and recordings_date:
        timestamp = parse_timestamp(recordings_date, tz)

    return timestamp


def derive_date_key(
    timestamp: Optional[int],
    raw: Mapping[str, Any],
    tz: Optional[tzinfo] = None
) -> str:
    """YYYY-MM-DD from the resolved timestamp, else the date part of recordingsDate."""
    if timestamp is not None:
        zone = resolve_timezone(tz)
        try:
            return (EPOCH + timedelta(milliseconds=timestamp)).astimezone(zone).strftime('%Y-%m-%d')
        except (OverflowError, ValueError):
            logger.debug(f"Timestamp {timestamp} out of range for a date key")

    recordings_date = raw.get('recordingsDate')
    if isinstance(recordings_date, str):
        return recordings_date.split('T')[0].strip()
    if isinstance(recordings_date, (datetime, date)):
        return recordings_date.strftime('%Y-%m-%d')
    return ''


def normalize_record(
    raw: Any,
    classifier: Optional[OutcomeClassifier] = None,
    tz: Optional[tzinfo] = None,
    fallback_id: str = '',
) -> CanonicalCallRecord:
    """
    Normalize one raw call record.

    Never raises: missing or malformed fields degrade to a null timestamp,
    zero duration and a neutral outcome.

    Args:
        raw: Raw record (non-mapping values are treated as empty records)
        classifier: Outcome classification strategy
        tz: Timezone for naive timestamps and the date key
        fallback_id: Id used when the record carries none

    Returns:
        CanonicalCallRecord
    """
    record: Dict[str, Any] = (
        {str(k): v for k, v in raw.items()} if isinstance(raw, Mapping) else {}
    )
    classifier = classifier or DEFAULT_CLASSIFIER

    timestamp = resolve_start_timestamp(record, tz)
    date_key = derive_date_key(timestamp, record, tz)

    contact_id = _first_present(record, 'contactsId', 'contacts_id')
    campaign_id = _first_present(record, 'contactsCampaignId', 'contacts_campaign_id')
    contact_id = '' if contact_id is None else str(contact_id)
    campaign_id = '' if campaign_id is None else str(campaign_id)

    explicit_group = _first_present(record, 'groupId', 'group_id')
    if explicit_group is not None:
        group_key = str(explicit_group)
    else:
        group_key = f"{contact_id}|{campaign_id}|{date_key}"

    record_id = record.get('id')
    outcome = record.get('outcome')
    outcome_label = '' if outcome is None else str(outcome)

    return CanonicalCallRecord(
        id=str(record_id) if record_id is not None else fallback_id,
        groupKey=group_key,
        startTimestamp=timestamp,
        durationSeconds=parse_duration(record),
        outcomeCategory=classifier.classify(outcome_label),
        hasValidTime=timestamp is not None,
        contactId=contact_id,
        campaignId=campaign_id,
        dateKey=date_key,
        outcome=outcome_label,
        original=record,
    )


def normalize_records(
    raw_records: Iterable[Any],
    classifier: Optional[OutcomeClassifier] = None,
    tz: Optional[tzinfo] = None,
) -> List[CanonicalCallRecord]:
    """Normalize a batch, preserving source order."""
    zone = resolve_timezone(tz)
    return [
        normalize_record(raw, classifier=classifier, tz=zone, fallback_id=f"row-{index}")
        for index, raw in enumerate(raw_records)
    ]

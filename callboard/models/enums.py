"""
Enumeration definitions for the Callboard live-update service.

All enums inherit from both `str` and `Enum` to ensure JSON serialization compatibility
with Pydantic models, enabling automatic serialization/deserialization in API responses.
"""

from enum import Enum


class OutcomeCategory(str, Enum):
    """
    Coarse classification of a call outcome label.

    - positive: booking, appointment or other success
    - neutral: open items such as callbacks, follow-ups or no outcome yet
    - negative: gatekeeper, wrong target, non-existent contact or decline
    """
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class PollingState(str, Enum):
    """
    States of the polling controller.

    - idle: no valid filter combination has been entered yet
    - awaiting_manual_trigger: filters are valid but no search was ever run
    - fetching: a statistics fetch for the current generation is in flight
    - auto_polling: the last fetch succeeded and the interval timer is armed
    - suspended: fetching is blocked, see SuspendReason
    """
    IDLE = "idle"
    AWAITING_MANUAL_TRIGGER = "awaiting_manual_trigger"
    FETCHING = "fetching"
    AUTO_POLLING = "auto_polling"
    SUSPENDED = "suspended"


class SuspendReason(str, Enum):
    """
    Why the controller is suspended.

    - dirty: a filter field changed since the last explicit search
    - error: the last fetch failed; a search or refresh is required
    """
    DIRTY = "dirty"
    ERROR = "error"


class FetchOutcome(str, Enum):
    """
    Result of one statistics fetch task.

    - applied: the response was current and has been folded into the session
    - stale: the response belonged to a superseded generation/filter set and was dropped
    - failed: the fetch timed out or errored; the session is suspended
    """
    APPLIED = "applied"
    STALE = "stale"
    FAILED = "failed"

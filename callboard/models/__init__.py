"""
Package initialization file for Callboard models.

This module exports all Pydantic schemas and enumerations from schemas.py and enums.py,
making them importable from callboard.models directly.

Usage:
    from callboard.models import (
        OutcomeCategory,
        StatisticsFilter,
        NotificationEvent,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from callboard.models.enums import (
    OutcomeCategory,
    PollingState,
    SuspendReason,
    FetchOutcome,
)


# =============================================================================
# Schemas
# =============================================================================

from callboard.models.schemas import (
    # Filter session
    StatisticsFilter,
    # Upstream wire models
    StatisticsRow,
    DirectoryEntry,
    # Canonical call records
    CanonicalCallRecord,
    CallGroup,
    # Notifications
    NotificationEvent,
    ActiveNotificationResponse,
    # Session view
    SessionView,
    FetchTicketResponse,
)


__all__ = [
    # ----- Enums -----
    'OutcomeCategory',
    'PollingState',
    'SuspendReason',
    'FetchOutcome',
    # ----- Schemas -----
    'StatisticsFilter',
    'StatisticsRow',
    'DirectoryEntry',
    'CanonicalCallRecord',
    'CallGroup',
    'NotificationEvent',
    'ActiveNotificationResponse',
    'SessionView',
    'FetchTicketResponse',
]

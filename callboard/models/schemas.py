"""
Pydantic request/response models for the Callboard live-update service.

This module provides type-safe data validation and serialization for the wire
shapes exchanged with the upstream dashboard API (statistics rows, lookups,
filter bodies) and for the canonical shapes produced by the live-update engine
(normalized call records, call groups, notification events, session views).

Field names follow the upstream camelCase JSON contract so that rows can be
validated straight from the response body and echoed back unchanged.

All models use Pydantic v2 syntax.
"""

import hashlib
import json
from datetime import date as DateType, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from callboard.models.enums import (
    FetchOutcome,
    OutcomeCategory,
    PollingState,
    SuspendReason,
)


# =============================================================================
# Filter Session Models
# =============================================================================


class StatisticsFilter(BaseModel):
    """
    Editable filter set for the statistics query.

    Dates are inclusive `YYYY-MM-DD` strings, times are `HH:MM`. The same body
    is posted to the upstream statistics endpoint.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "agentIds": ["a-1", "a-2"],
                "projectIds": ["p-9"],
                "dateFrom": "2025-09-15",
                "dateTo": "2025-09-15",
            }
        }
    )

    agentIds: List[str] = Field(
        default_factory=list,
        description="Selected agent identifiers"
    )
    projectIds: List[str] = Field(
        default_factory=list,
        description="Selected project/campaign identifiers"
    )
    dateFrom: Optional[str] = Field(
        default=None,
        description="Inclusive lower date bound (YYYY-MM-DD)",
        pattern=r"^\d{4}-\d{2}-\d{2}$"
    )
    dateTo: Optional[str] = Field(
        default=None,
        description="Inclusive upper date bound (YYYY-MM-DD)",
        pattern=r"^\d{4}-\d{2}-\d{2}$"
    )
    timeFrom: Optional[str] = Field(
        default=None,
        description="Optional lower time-of-day bound (HH:MM)",
        pattern=r"^\d{2}:\d{2}$"
    )
    timeTo: Optional[str] = Field(
        default=None,
        description="Optional upper time-of-day bound (HH:MM)",
        pattern=r"^\d{2}:\d{2}$"
    )

    @field_validator("dateFrom", "dateTo", "timeFrom", "timeTo", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Form fields arrive as "" when cleared
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def is_valid(self) -> bool:
        """
        Check whether the filter set may drive a statistics query.

        Valid means at least one agent, at least one project and at least one
        date bound.
        """
        return bool(self.agentIds) and bool(self.projectIds) and bool(self.dateFrom or self.dateTo)

    def fingerprint(self) -> str:
        """
        Stable digest of the filter contents.

        Id lists are compared as sets so that re-ordering a selection does not
        count as a different query.
        """
        payload = self.model_dump()
        payload["agentIds"] = sorted(set(self.agentIds))
        payload["projectIds"] = sorted(set(self.projectIds))
        encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
        return hashlib.sha1(encoded).hexdigest()

    def includes_day(self, day: DateType) -> bool:
        """Return True when `day` lies inside the (inclusive, possibly open) date window."""
        iso = day.isoformat()
        if self.dateFrom and self.dateFrom > iso:
            return False
        if self.dateTo and self.dateTo < iso:
            return False
        return True

    def clamped_to(self, today: DateType) -> "StatisticsFilter":
        """
        Return a copy with future date bounds pulled back to today.

        A lower bound in the future becomes today and drops the upper bound;
        otherwise an upper bound in the future becomes today.
        """
        iso = today.isoformat()
        if self.dateFrom and self.dateFrom > iso:
            return self.model_copy(update={"dateFrom": iso, "dateTo": None})
        if self.dateTo and self.dateTo > iso:
            return self.model_copy(update={"dateTo": iso})
        return self.model_copy()


# =============================================================================
# Upstream Wire Models
# =============================================================================


class StatisticsRow(BaseModel):
    """
    One aggregate statistics row as returned by the upstream statistics endpoint.

    A row covers one agent, one project and one day. Only the fields the
    live-update engine needs are declared; everything else is kept as extra
    data and passed through to the presentation layer.
    """
    model_config = ConfigDict(extra="allow")

    agentId: str = Field(..., description="Agent identifier")
    projectId: str = Field(..., description="Project/campaign identifier")
    date: Optional[str] = Field(
        default=None,
        description="Statistic date (ISO date or timestamp string)"
    )
    outcomes: Dict[str, int] = Field(
        default_factory=dict,
        description="Cumulative count per outcome label"
    )

    @field_validator("outcomes", mode="before")
    @classmethod
    def _drop_null_counts(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {name: (count or 0) for name, count in value.items()}
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        if isinstance(value, (datetime, DateType)):
            return value.isoformat()
        return value


class DirectoryEntry(BaseModel):
    """An agent or project from the upstream lookup endpoints."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Identifier")
    name: str = Field(..., description="Display name")


# =============================================================================
# Canonical Call Records
# =============================================================================


class CanonicalCallRecord(BaseModel):
    """
    A raw per-call record normalized into a canonical shape.

    `groupKey` is the explicit group id when the source carries one, otherwise
    `contactId|campaignId|dateKey`. `startTimestamp` is epoch milliseconds or
    None when no timestamp source could be parsed.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Record identifier within the source")
    groupKey: str = Field(..., description="Interaction group key")
    startTimestamp: Optional[int] = Field(
        default=None,
        description="Call start as epoch milliseconds; None when unknown"
    )
    durationSeconds: int = Field(default=0, ge=0, description="Call duration in whole seconds")
    outcomeCategory: OutcomeCategory = Field(
        default=OutcomeCategory.NEUTRAL,
        description="Classified outcome"
    )
    hasValidTime: bool = Field(default=False, description="True iff startTimestamp is not None")
    contactId: str = Field(default="", description="Contact identifier")
    campaignId: str = Field(default="", description="Campaign identifier")
    dateKey: str = Field(default="", description="YYYY-MM-DD of the call, or empty")
    outcome: str = Field(default="", description="Raw outcome label")
    original: Dict[str, Any] = Field(
        default_factory=dict,
        description="Untouched source record for detail display"
    )


class CallGroup(BaseModel):
    """
    A logical interaction: all records sharing one group key.

    Totals and the positive flag are accumulated over every member; the
    representative is chosen by timestamp validity and recency.
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Group key")
    members: List[CanonicalCallRecord] = Field(..., description="Members in source order")
    representative: CanonicalCallRecord = Field(..., description="Record summarizing the group")
    firstTimestamp: Optional[int] = Field(
        default=None,
        description="Earliest member timestamp (epoch ms) or None"
    )
    totalDurationSeconds: int = Field(default=0, ge=0, description="Sum of member durations")
    hasPositiveOutcome: bool = Field(default=False, description="Any member classified positive")
    timeLabel: str = Field(
        default="--:--",
        description="Representative start as HH:MM in the display timezone"
    )
    durationLabel: str = Field(default="00:00", description="Total duration as MM:SS")


# =============================================================================
# Notifications
# =============================================================================


class NotificationEvent(BaseModel):
    """
    A detected counter increase ready for display.

    Created by the snapshot differ, shown once by the sequencer and then
    discarded.
    """
    subjectId: str = Field(..., description="Agent identifier")
    subjectName: str = Field(..., description="Agent display name")
    contextId: str = Field(..., description="Project identifier")
    contextName: str = Field(..., description="Project display name")
    outcomeName: str = Field(..., description="Outcome label whose count increased")
    category: OutcomeCategory = Field(..., description="Classified outcome")
    newCount: int = Field(..., ge=0, description="Count after the increase")
    delta: int = Field(..., ge=1, description="Increase since the baseline")
    observedAt: datetime = Field(..., description="When the increase was observed")
    timeLabel: str = Field(default="", description="HH:MM in the display timezone")
    dateRangeLabel: str = Field(default="", description="Human-readable query window")
    isMilestone: bool = Field(default=False, description="Shown with the longer display duration")


class ActiveNotificationResponse(BaseModel):
    """Response model for the active notification endpoint."""
    active: Optional[NotificationEvent] = Field(default=None, description="Currently visible alert")
    queued: int = Field(default=0, ge=0, description="Alerts waiting behind the active one")


# =============================================================================
# Session View
# =============================================================================


class SessionView(BaseModel):
    """Snapshot of the live session for the presentation layer."""
    state: PollingState = Field(..., description="Polling controller state")
    suspendReason: Optional[SuspendReason] = Field(default=None, description="Why fetching is blocked")
    searchGeneration: int = Field(..., ge=0, description="Explicit search counter")
    isDirty: bool = Field(..., description="Filters changed since the last search")
    filters: StatisticsFilter = Field(..., description="Current editable filters")
    appliedFilters: Optional[StatisticsFilter] = Field(
        default=None,
        description="Filters of the last successfully applied fetch"
    )
    lastError: Optional[str] = Field(default=None, description="Message of the last failed fetch")
    lastFetchedAt: Optional[datetime] = Field(default=None, description="Completion time of the last applied fetch")
    statistics: List[StatisticsRow] = Field(
        default_factory=list,
        description="Last successfully fetched rows; kept while filters are dirty"
    )


class FetchTicketResponse(BaseModel):
    """Response model for search/refresh: what was issued."""
    searchGeneration: int = Field(..., ge=0)
    state: PollingState = Field(...)
    outcome: Optional[FetchOutcome] = Field(
        default=None,
        description="Set when the caller waited for the fetch to finish"
    )

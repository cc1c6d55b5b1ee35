"""
Polling Controller

Owns the live filter session and decides when aggregate statistics are fetched.

State machine:

    IDLE --(valid filters, no search yet)--> AWAITING_MANUAL_TRIGGER
    any --(filter edit after a search)-----> SUSPENDED(dirty)
    any --(explicit search / refresh)------> FETCHING
    FETCHING --(applied response)----------> AUTO_POLLING (interval armed)
    AUTO_POLLING --(interval tick)---------> fetch, state unchanged
    FETCHING/AUTO_POLLING --(failure)------> SUSPENDED(error)

No fetch is issued while the session is dirty. Every fetch is tagged with the
search generation and filter fingerprint current at issue time; a response
that no longer matches on arrival is discarded instead of applied, so
snapshots reach the differ in completion order for the current session only.

Statistics fetches are bounded by a timeout. A timeout is retried a fixed
number of times (one by default); other upstream failures are not retried.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Awaitable, Callable, List, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from callboard.core.config import Settings
from callboard.core.errors import FetchTimeout, NoUsableFiltersError, UpstreamError
from callboard.models.enums import FetchOutcome, PollingState, SuspendReason
from callboard.models.schemas import (
    NotificationEvent,
    SessionView,
    StatisticsFilter,
    StatisticsRow,
)
from callboard.services.notifications import NotificationSequencer
from callboard.services.normalization import resolve_timezone
from callboard.services.outcome_classifier import DEFAULT_CLASSIFIER, OutcomeClassifier
from callboard.services.scheduler import IntervalTimer, Scheduler
from callboard.services.snapshot_diff import (
    EventLabeler,
    NameDirectory,
    Snapshot,
    build_snapshot,
    describe_date_range,
    diff_snapshots,
)

logger = logging.getLogger(__name__)

StatisticsFetcher = Callable[[StatisticsFilter], Awaitable[List[StatisticsRow]]]
StatisticsListener = Callable[[List[StatisticsRow], List[NotificationEvent]], None]
ErrorListener = Callable[[str], None]


@dataclass
class LiveSession:
    """
    Mutable state of one live filter session.

    Attributes:
        filters: Current editable filters
        query: Filters the current search generation fetches with
        applied_filters: Filters of the last applied response
        search_generation: Bumped by every explicit search or refresh
        is_dirty: Filters edited since the last search
        baseline: Retained snapshot for the differ; None starts a fresh session
        baseline_fingerprint: Fingerprint of the filters the baseline belongs to
        last_rows: Last applied statistics rows, kept while dirty or failed
        last_error: Message of the last failed fetch
        last_fetched_at: When the last response was applied
        state: Controller state
        suspend_reason: Set while state is SUSPENDED
    """
    filters: StatisticsFilter = field(default_factory=StatisticsFilter)
    query: Optional[StatisticsFilter] = None
    applied_filters: Optional[StatisticsFilter] = None
    search_generation: int = 0
    is_dirty: bool = False
    baseline: Optional[Snapshot] = None
    baseline_fingerprint: Optional[str] = None
    last_rows: List[StatisticsRow] = field(default_factory=list)
    last_error: Optional[str] = None
    last_fetched_at: Optional[datetime] = None
    state: PollingState = PollingState.IDLE
    suspend_reason: Optional[SuspendReason] = None

    def reset_baseline(self) -> None:
        self.baseline = None
        self.baseline_fingerprint = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PollingController:
    """
    Drives statistics fetching for one live session.

    Args:
        fetch_statistics: Coroutine function returning rows for a filter set
        sequencer: Receives the detected notification events
        scheduler: Timer source for the auto-poll interval
        poll_interval_seconds: Auto-poll period
        statistics_timeout_seconds: Bound on one fetch attempt
        fetch_timeout_retries: Extra attempts after a timeout
        directory: Agent/project names for alert labels
        classifier: Outcome category strategy for alerts
        milestone_outcomes: Outcome labels flagged as milestones
        tz: Display timezone ("today" and clock labels)
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        fetch_statistics: StatisticsFetcher,
        sequencer: NotificationSequencer,
        scheduler: Scheduler,
        poll_interval_seconds: float = 10.0,
        statistics_timeout_seconds: float = 300.0,
        fetch_timeout_retries: int = 1,
        directory: Optional[NameDirectory] = None,
        classifier: Optional[OutcomeClassifier] = None,
        milestone_outcomes: Sequence[str] = ('Termin',),
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._fetch = fetch_statistics
        self.sequencer = sequencer
        self.scheduler = scheduler
        self.statistics_timeout_seconds = statistics_timeout_seconds
        self.fetch_timeout_retries = max(0, fetch_timeout_retries)
        self.directory = directory or NameDirectory()
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self.milestone_outcomes = tuple(milestone_outcomes)
        self.tz = resolve_timezone(tz)
        self.clock = clock

        self.session = LiveSession()
        self._interval = IntervalTimer(scheduler, poll_interval_seconds, self._on_interval)
        self._inflight: Optional[asyncio.Task] = None
        self._on_statistics: List[StatisticsListener] = []
        self._on_error: List[ErrorListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetch_statistics: StatisticsFetcher,
        sequencer: NotificationSequencer,
        scheduler: Scheduler,
        **kwargs,
    ) -> "PollingController":
        return cls(
            fetch_statistics=fetch_statistics,
            sequencer=sequencer,
            scheduler=scheduler,
            poll_interval_seconds=settings.poll_interval_seconds,
            statistics_timeout_seconds=settings.statistics_timeout_seconds,
            fetch_timeout_retries=settings.fetch_timeout_retries,
            milestone_outcomes=settings.milestone_outcomes,
            tz=settings.tzinfo,
            **kwargs,
        )

    # =========================================================================
    # Subscriptions and views
    # =========================================================================

    def subscribe(
        self,
        on_statistics: Optional[StatisticsListener] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> None:
        if on_statistics is not None:
            self._on_statistics.append(on_statistics)
        if on_error is not None:
            self._on_error.append(on_error)

    @property
    def state(self) -> PollingState:
        return self.session.state

    @property
    def polling(self) -> bool:
        """True while the auto-poll interval is armed."""
        return self._interval.running

    @property
    def fetch_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def view(self) -> SessionView:
        s = self.session
        return SessionView(
            state=s.state,
            suspendReason=s.suspend_reason,
            searchGeneration=s.search_generation,
            isDirty=s.is_dirty,
            filters=s.filters,
            appliedFilters=s.applied_filters,
            lastError=s.last_error,
            lastFetchedAt=s.last_fetched_at,
            statistics=list(s.last_rows),
        )

    # =========================================================================
    # Presentation-layer operations
    # =========================================================================

    def mark_dirty(self, filters: StatisticsFilter) -> None:
        """
        Record a filter edit.

        Stops auto-polling, drops pending alerts and the baseline, and keeps the
        last fetched rows visible. Nothing is fetched until the next search.
        """
        s = self.session
        s.filters = filters
        s.is_dirty = True
        s.reset_baseline()
        self._interval.stop()
        self.sequencer.clear()

        if s.search_generation == 0:
            state = PollingState.AWAITING_MANUAL_TRIGGER if filters.is_valid() else PollingState.IDLE
            self._transition(state)
        else:
            self._transition(PollingState.SUSPENDED, SuspendReason.DIRTY)

    def fetch_now(self, filters: Optional[StatisticsFilter] = None) -> "asyncio.Task[FetchOutcome]":
        """
        Explicit search: start a fresh session and issue exactly one fetch.

        Future date bounds are clamped to today before the query is issued.

        Args:
            filters: Filters to search with; defaults to the current editable set

        Returns:
            The fetch task, resolving to its FetchOutcome

        Raises:
            NoUsableFiltersError: If the filters cannot drive a query
        """
        s = self.session
        query = (filters if filters is not None else s.filters).clamped_to(self.today())
        if not query.is_valid():
            raise NoUsableFiltersError("Select at least one agent, one project and a date bound")

        s.filters = query
        s.query = query
        s.search_generation += 1
        s.is_dirty = False
        s.reset_baseline()
        self._interval.stop()
        self.sequencer.clear()

        logger.info(f"Search generation {s.search_generation} issued")
        self._transition(PollingState.FETCHING)
        return self._spawn_fetch(query, s.search_generation)

    search = fetch_now

    def refresh(self) -> "asyncio.Task[FetchOutcome]":
        """
        Force one fetch regardless of the current state.

        Uses the current filters when they are valid, otherwise the last applied
        set. The baseline survives when the resulting query matches the one it
        was built from, so a refresh does not replay or lose alerts.

        Raises:
            NoUsableFiltersError: If neither filter set is usable
        """
        s = self.session
        today = self.today()
        if s.filters.is_valid():
            query = s.filters.clamped_to(today)
            s.filters = query
        elif s.applied_filters is not None:
            query = s.applied_filters.clamped_to(today)
        else:
            raise NoUsableFiltersError("No valid or previously applied filters to refresh with")

        if s.baseline_fingerprint != query.fingerprint():
            s.reset_baseline()
            self.sequencer.clear()

        s.query = query
        s.search_generation += 1
        s.is_dirty = False
        self._interval.stop()

        logger.info(f"Refresh issued as generation {s.search_generation}")
        self._transition(PollingState.FETCHING)
        return self._spawn_fetch(query, s.search_generation)

    async def wait_idle(self) -> None:
        """Wait until the most recently issued fetch has finished."""
        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})

    async def shutdown(self) -> None:
        self._interval.stop()
        self.sequencer.clear()
        if self.fetch_in_flight:
            self._inflight.cancel()
            await asyncio.wait({self._inflight})

    # =========================================================================
    # Fetch pipeline
    # =========================================================================

    def _spawn_fetch(self, query: StatisticsFilter, generation: int) -> "asyncio.Task[FetchOutcome]":
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(query, generation, query.fingerprint())
        )
        self._inflight = task
        return task

    def _on_interval(self) -> None:
        s = self.session
        if s.state != PollingState.AUTO_POLLING or s.is_dirty or s.query is None:
            self._interval.stop()
            return
        if self.fetch_in_flight:
            logger.debug("Previous fetch still running; skipping poll tick")
            return
        self._spawn_fetch(s.query, s.search_generation)

    def _is_stale(self, generation: int, fingerprint: str) -> bool:
        s = self.session
        return (
            s.is_dirty
            or generation != s.search_generation
            or s.query is None
            or s.query.fingerprint() != fingerprint
        )

    async def _fetch_once(self, query: StatisticsFilter) -> List[StatisticsRow]:
        try:
            return await asyncio.wait_for(self._fetch(query), timeout=self.statistics_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FetchTimeout(
                f"Statistics request timed out after {self.statistics_timeout_seconds:g}s"
            ) from e

    async def _fetch_with_retry(self, query: StatisticsFilter) -> List[StatisticsRow]:
        rows: List[StatisticsRow] = []
        retryer = AsyncRetrying(
            stop=stop_after_attempt(self.fetch_timeout_retries + 1),
            retry=retry_if_exception_type(FetchTimeout),
            reraise=True,
        )
        async for attempt in retryer:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(f"Retrying statistics fetch (attempt {attempt.retry_state.attempt_number})")
                rows = await self._fetch_once(query)
        return rows

    async def _run_fetch(self, query: StatisticsFilter, generation: int, fingerprint: str) -> FetchOutcome:
        try:
            rows = await self._fetch_with_retry(query)
        except UpstreamError as e:
            if self._is_stale(generation, fingerprint):
                logger.debug(f"Discarding failure of superseded generation {generation}: {e.message}")
                return FetchOutcome.STALE
            self._fail(e.message)
            return FetchOutcome.FAILED

        if self._is_stale(generation, fingerprint):
            logger.debug(f"Discarding stale response of generation {generation}")
            return FetchOutcome.STALE

        self._apply(query, fingerprint, rows)
        return FetchOutcome.APPLIED

    def _apply(self, query: StatisticsFilter, fingerprint: str, rows: List[StatisticsRow]) -> None:
        s = self.session
        now = self.clock()
        today = now.astimezone(self.tz).date()

        snapshot = build_snapshot(rows, now, query.includes_day(today), tz=self.tz)
        labeler = EventLabeler(
            directory=self.directory,
            classifier=self.classifier,
            milestone_outcomes=self.milestone_outcomes,
            tz=self.tz,
            date_range_label=describe_date_range(query, today),
        )
        result = diff_snapshots(s.baseline, snapshot, today=today, labeler=labeler)

        s.baseline = result.baseline
        s.baseline_fingerprint = fingerprint
        s.last_rows = list(rows)
        s.applied_filters = query
        s.last_error = None
        s.last_fetched_at = now

        self.sequencer.enqueue_all(result.events)
        self._transition(PollingState.AUTO_POLLING)
        self._interval.start()

        logger.info(
            f"Applied {len(rows)} statistics rows for generation {s.search_generation} "
            f"({len(result.events)} new notifications)"
        )
        for listener in list(self._on_statistics):
            listener(s.last_rows, result.events)

    def _fail(self, message: str) -> None:
        s = self.session
        s.last_error = message
        self._interval.stop()
        self._transition(PollingState.SUSPENDED, SuspendReason.ERROR)
        logger.warning(f"Statistics fetch failed for generation {s.search_generation}: {message}")
        for listener in list(self._on_error):
            listener(message)

    def _transition(self, state: PollingState, reason: Optional[SuspendReason] = None) -> None:
        s = self.session
        if s.state == state and s.suspend_reason == reason:
            return
        label = f"{state.value}({reason.value})" if reason else state.value
        logger.info(f"Polling state {s.state.value} -> {label}")
        s.state = state
        s.suspend_reason = reason

"""
Notification Sequencer

Presents detected counter increases one at a time, in arrival order.

The sequencer holds a FIFO queue and a single active slot. An event is
activated as soon as the slot is free, stays active for its display duration
(longer for milestone outcomes such as bookings) and then retires, which
activates the next queued event. Every filter-session transition calls clear()
so alerts from a previous session never leak into a new one.
"""

import logging
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Sequence

from callboard.models.schemas import NotificationEvent
from callboard.services.scheduler import ScheduledHandle, Scheduler

logger = logging.getLogger(__name__)

NotificationListener = Callable[[NotificationEvent], None]


class NotificationSequencer:
    """
    FIFO alert queue with one active slot and timed retirement.

    Args:
        scheduler: Timer source for display durations
        default_display_seconds: How long a regular alert stays active
        milestone_display_seconds: How long a milestone alert stays active
        milestone_outcomes: Outcome labels treated as milestones
    """

    def __init__(
        self,
        scheduler: Scheduler,
        default_display_seconds: float = 5.0,
        milestone_display_seconds: float = 7.0,
        milestone_outcomes: Sequence[str] = ('Termin',),
    ):
        self.scheduler = scheduler
        self.default_display_seconds = default_display_seconds
        self.milestone_display_seconds = milestone_display_seconds
        self.milestone_outcomes = tuple(milestone_outcomes)

        self._queue: Deque[NotificationEvent] = deque()
        self._active: Optional[NotificationEvent] = None
        self._retire_handle: Optional[ScheduledHandle] = None
        self._on_activate: List[NotificationListener] = []
        self._on_retire: List[NotificationListener] = []

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        on_activate: Optional[NotificationListener] = None,
        on_retire: Optional[NotificationListener] = None,
    ) -> None:
        if on_activate is not None:
            self._on_activate.append(on_activate)
        if on_retire is not None:
            self._on_retire.append(on_retire)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def active(self) -> Optional[NotificationEvent]:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._queue)

    def pending(self) -> List[NotificationEvent]:
        """Queued events in display order, excluding the active one."""
        return list(self._queue)

    def display_seconds(self, event: NotificationEvent) -> float:
        if event.isMilestone or event.outcomeName in self.milestone_outcomes:
            return self.milestone_display_seconds
        return self.default_display_seconds

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def enqueue(self, event: NotificationEvent) -> None:
        """Append one event; activates it immediately when the slot is free."""
        self._queue.append(event)
        if self._active is None:
            self._activate_next()

    def enqueue_all(self, events: Iterable[NotificationEvent]) -> None:
        for event in events:
            self.enqueue(event)

    def dismiss(self) -> Optional[NotificationEvent]:
        """
        Retire the active event early.

        Returns:
            The retired event, or None if nothing was active
        """
        return self._retire()

    def clear(self) -> None:
        """Drop the active event and everything queued. No retire callbacks fire."""
        if self._retire_handle is not None:
            self._retire_handle.cancel()
            self._retire_handle = None
        dropped = len(self._queue) + (1 if self._active is not None else 0)
        self._queue.clear()
        self._active = None
        if dropped:
            logger.debug(f"Cleared {dropped} pending notifications")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _activate_next(self) -> None:
        if not self._queue:
            return

        event = self._queue.popleft()
        self._active = event
        self._retire_handle = self.scheduler.call_later(self.display_seconds(event), self._retire)
        logger.debug(
            f"Showing {event.outcomeName} +{event.delta} for {event.subjectName} "
            f"({len(self._queue)} queued)"
        )
        for listener in list(self._on_activate):
            listener(event)

    def _retire(self) -> Optional[NotificationEvent]:
        event = self._active
        if event is None:
            return None

        if self._retire_handle is not None:
            self._retire_handle.cancel()
            self._retire_handle = None
        self._active = None

        for listener in list(self._on_retire):
            listener(event)

        self._activate_next()
        return event

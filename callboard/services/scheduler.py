"""
Timer Scheduling

The polling interval and the notification display timeouts are explicit timers
with cancellation handles so that every session transition can stop them
deterministically.

- AsyncioScheduler: wall-clock timers on the running event loop.
- VirtualScheduler: manually advanced virtual time for tests; nothing fires
  until advance() is called.
- IntervalTimer: a repeating timer with start/stop/reset on top of either.
"""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class ScheduledHandle(ABC):
    """Cancellation handle for a single scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Runs callbacks after a delay, in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> ScheduledHandle:
        ...

    @abstractmethod
    def now(self) -> float:
        ...


# =============================================================================
# Event Loop Scheduler
# =============================================================================


class _LoopHandle(ScheduledHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by loop.call_later.

    Args:
        loop: Event loop to schedule on; defaults to the running loop at call time
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callback) -> ScheduledHandle:
        return _LoopHandle(self._get_loop().call_later(max(0.0, delay), callback))

    def now(self) -> float:
        return self._get_loop().time()


# =============================================================================
# Virtual Time Scheduler
# =============================================================================


class _VirtualHandle(ScheduledHandle):
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class VirtualScheduler(Scheduler):
    """
    Deterministic scheduler driven by advance().

    Callbacks due at the same instant run in scheduling order. Callbacks
    scheduled while advancing run in the same advance() call if they fall due
    inside the advanced window.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, _VirtualHandle, Callback]] = []

    def call_later(self, delay: float, callback: Callback) -> ScheduledHandle:
        handle = _VirtualHandle()
        heapq.heappush(self._queue, (self._now + max(0.0, delay), next(self._seq), handle, callback))
        return handle

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have neither fired nor been cancelled."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move virtual time forward and run every callback that falls due.

        Returns:
            Number of callbacks run
        """
        if seconds < 0:
            raise ValueError("Cannot move virtual time backwards")

        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._now = due
            if handle.cancelled:
                continue
            # Mark consumed so a late cancel() is harmless
            handle.cancel()
            callback()
            fired += 1
        self._now = target
        return fired


# =============================================================================
# Interval Timer
# =============================================================================


class IntervalTimer:
    """
    Repeating timer with explicit start/stop/reset.

    The next tick is armed before the callback runs, so stop() from inside the
    callback cancels it.
    """

    def __init__(self, scheduler: Scheduler, interval: float, callback: Callback):
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self.scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self._handle: Optional[ScheduledHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def start(self) -> None:
        """Arm the timer; a running timer is left as is."""
        if self.running:
            return
        self._arm()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self) -> None:
        """Restart the countdown from now."""
        self.stop()
        self._arm()

    def _arm(self) -> None:
        self._handle = self.scheduler.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self._arm()
        self.callback()

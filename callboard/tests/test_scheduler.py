"""
Scheduler Test Module

Tests for callboard/services/scheduler.py: virtual time ordering and
cancellation, the interval timer, and the event-loop scheduler.
"""

import asyncio

import pytest

from callboard.services.scheduler import AsyncioScheduler, IntervalTimer, VirtualScheduler


class TestVirtualScheduler:

    def test_nothing_fires_until_advanced(self, scheduler):
        fired = []
        scheduler.call_later(1.0, lambda: fired.append('a'))

        assert fired == []
        assert scheduler.pending == 1

    def test_runs_due_callbacks_in_time_then_scheduling_order(self, scheduler):
        fired = []
        scheduler.call_later(2.0, lambda: fired.append('late'))
        scheduler.call_later(1.0, lambda: fired.append('first'))
        scheduler.call_later(1.0, lambda: fired.append('second'))

        assert scheduler.advance(1.5) == 2
        assert fired == ['first', 'second']
        assert scheduler.now() == 1.5

        scheduler.advance(1.0)
        assert fired == ['first', 'second', 'late']

    def test_cancelled_callback_never_runs(self, scheduler):
        fired = []
        handle = scheduler.call_later(1.0, lambda: fired.append('x'))
        handle.cancel()

        assert handle.cancelled is True
        assert scheduler.advance(5.0) == 0
        assert fired == []
        assert scheduler.pending == 0

    def test_callbacks_scheduled_while_advancing(self, scheduler):
        fired = []

        def chain():
            fired.append(scheduler.now())
            scheduler.call_later(1.0, lambda: fired.append(scheduler.now()))

        scheduler.call_later(1.0, chain)
        scheduler.advance(3.0)

        assert fired == [1.0, 2.0]

    def test_cannot_go_backwards(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.advance(-1)


class TestIntervalTimer:

    def test_fires_every_interval_until_stopped(self, scheduler):
        ticks = []
        timer = IntervalTimer(scheduler, 10.0, lambda: ticks.append(scheduler.now()))

        timer.start()
        scheduler.advance(35.0)
        assert ticks == [10.0, 20.0, 30.0]

        timer.stop()
        assert timer.running is False
        scheduler.advance(100.0)
        assert len(ticks) == 3

    def test_start_is_idempotent(self, scheduler):
        ticks = []
        timer = IntervalTimer(scheduler, 10.0, lambda: ticks.append(1))

        timer.start()
        timer.start()
        scheduler.advance(10.0)

        assert ticks == [1]

    def test_reset_restarts_countdown(self, scheduler):
        ticks = []
        timer = IntervalTimer(scheduler, 10.0, lambda: ticks.append(scheduler.now()))

        timer.start()
        scheduler.advance(8.0)
        timer.reset()
        scheduler.advance(8.0)
        assert ticks == []

        scheduler.advance(2.0)
        assert ticks == [18.0]

    def test_stop_from_inside_callback(self, scheduler):
        ticks = []

        def tick():
            ticks.append(1)
            timer.stop()

        timer = IntervalTimer(scheduler, 5.0, tick)
        timer.start()
        scheduler.advance(50.0)

        assert ticks == [1]

    def test_rejects_non_positive_interval(self, scheduler):
        with pytest.raises(ValueError):
            IntervalTimer(scheduler, 0, lambda: None)


class TestAsyncioScheduler:

    @pytest.mark.asyncio
    async def test_callback_runs_on_loop(self):
        fired = asyncio.Event()
        AsyncioScheduler().call_later(0.01, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        handle = AsyncioScheduler().call_later(0.01, lambda: fired.append(1))
        handle.cancel()

        await asyncio.sleep(0.05)
        assert fired == []
        assert handle.cancelled is True

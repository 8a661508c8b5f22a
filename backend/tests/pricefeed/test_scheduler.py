"""Tests for BackoffScheduler and BackoffState."""

import asyncio

import pytest

from pricefeed.models import PricePoint, PriceSnapshot
from pricefeed.scheduler import BackoffScheduler, BackoffState, SchedulerState

PRICED = PriceSnapshot({"bitcoin": PricePoint(value=65000.0, timestamp=1.0)})
EMPTY = PriceSnapshot()


def scripted(outcomes):
    """Fetch function returning PRICED/EMPTY per outcome, then EMPTY forever."""
    remaining = list(outcomes)

    async def fetch():
        ok = remaining.pop(0) if remaining else False
        return PRICED if ok else EMPTY

    return fetch


async def run_cycles(clock, count):
    """Let the scheduler complete ``count`` sleeps on the virtual clock."""
    await clock.wait_for_sleepers(1)
    for _ in range(count - 1):
        await clock.advance(clock.sleeps[-1])
        await clock.wait_for_sleepers(1)


class TestBackoffState:
    """Interval arithmetic."""

    def test_growth_and_cap(self):
        """Consecutive failures give 5, 10, 20, 40, then the 60s cap."""
        state = BackoffState(floor=5, ceiling=60, multiplier=2)
        assert [state.record_failure() for _ in range(7)] == [5, 10, 20, 40, 60, 60, 60]

    def test_success_resets_to_floor(self):
        """A success after any streak resets to the floor."""
        state = BackoffState(floor=5, ceiling=60, multiplier=2)
        for _ in range(10):
            state.record_failure()
        assert state.record_success() == 5
        assert state.consecutive_failures == 0
        assert state.record_failure() == 5

    def test_ceiling_never_below_floor(self):
        """A floor above the ceiling lifts the ceiling."""
        state = BackoffState(floor=90, ceiling=60)
        assert state.record_failure() == 90
        assert state.record_failure() == 90

    @pytest.mark.parametrize("kwargs", [{"floor": 0}, {"floor": -1}, {"multiplier": 0.5}])
    def test_invalid_parameters(self, kwargs):
        """Non-positive floors and shrinking multipliers are rejected."""
        with pytest.raises(ValueError):
            BackoffState(**kwargs)


@pytest.mark.asyncio
class TestBackoffScheduler:
    """Scheduling behavior on a virtual clock."""

    async def test_immediate_first_fetch(self, clock):
        """The first fetch happens on start, before any sleep."""
        results = []
        scheduler = BackoffScheduler(scripted([True]), results.append, clock=clock)
        scheduler.start()
        await clock.wait_for_sleepers(1)

        assert results == [PRICED]
        assert clock.sleeps == [5.0]
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_backoff_growth(self, clock):
        """Failures schedule 5, 10, 20 and then cap at 60."""
        scheduler = BackoffScheduler(scripted([]), lambda s: None, clock=clock)
        scheduler.start()
        await run_cycles(clock, 7)

        assert clock.sleeps == [5, 10, 20, 40, 60, 60, 60]
        assert scheduler.backoff.consecutive_failures == 7
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_success_resets_interval(self, clock):
        """A success right after a failure streak schedules the floor again."""
        scheduler = BackoffScheduler(
            scripted([False, False, False, True, False]), lambda s: None, clock=clock
        )
        scheduler.start()
        await run_cycles(clock, 5)

        assert clock.sleeps == [5, 10, 20, 5, 5]
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_custom_policy(self, clock):
        """Floor, ceiling and multiplier are per scheduler."""
        scheduler = BackoffScheduler(
            scripted([]), lambda s: None, floor=1, ceiling=5, multiplier=3, clock=clock
        )
        scheduler.start()
        await run_cycles(clock, 4)

        assert clock.sleeps == [1, 3, 5, 5]
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_fetch_exception_counts_as_failure(self, clock, caplog):
        """An unexpected error is logged and backs off like an empty result."""

        async def broken():
            raise RuntimeError("boom")

        scheduler = BackoffScheduler(broken, lambda s: None, clock=clock)
        scheduler.start()
        await run_cycles(clock, 2)

        assert clock.sleeps == [5, 10]
        assert scheduler.running
        assert "fetch failed" in caplog.text
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_handler_exception_does_not_kill_loop(self, clock):
        """A failing result handler is logged and polling continues."""

        def handler(snapshot):
            raise ValueError("bad handler")

        scheduler = BackoffScheduler(scripted([True, True]), handler, clock=clock)
        scheduler.start()
        await run_cycles(clock, 2)

        assert scheduler.cycles == 2
        assert clock.sleeps == [5, 5]
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_fetches_never_overlap(self, clock):
        """The next fetch waits for the previous one to finish."""
        active = 0
        peak = 0
        gate = asyncio.Event()

        async def slow():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await gate.wait()
            active -= 1
            return PRICED

        scheduler = BackoffScheduler(slow, lambda s: None, clock=clock)
        scheduler.start()
        await asyncio.sleep(0)
        await clock.advance(100)  # Nothing is sleeping yet; time passing must not start a fetch
        assert peak == 1
        gate.set()
        await clock.wait_for_sleepers(1)
        assert scheduler.cycles == 1
        scheduler.stop()
        await scheduler.wait_stopped()

    async def test_stop_does_not_wait_for_in_flight_fetch(self, clock):
        """stop() returns immediately while a fetch is still pending."""
        never = asyncio.Event()
        results = []

        async def hang():
            await never.wait()
            return PRICED

        scheduler = BackoffScheduler(hang, results.append, clock=clock)
        scheduler.start()
        await asyncio.sleep(0)

        scheduler.stop()
        assert scheduler.state is SchedulerState.STOPPED
        await scheduler.wait_stopped()
        assert results == []

    async def test_result_after_stop_is_discarded(self, clock):
        """A result that arrives after stop() never reaches the handler."""
        results = []
        scheduler = None

        async def stop_mid_flight():
            scheduler.stop()
            return PRICED

        scheduler = BackoffScheduler(stop_mid_flight, results.append, clock=clock)
        scheduler.start()
        await scheduler.wait_stopped()

        assert results == []
        assert scheduler.cycles == 0
        assert clock.sleeps == []

    async def test_state_machine(self, clock):
        """IDLE -> RUNNING -> STOPPED, and STOPPED is terminal."""
        scheduler = BackoffScheduler(scripted([True]), lambda s: None, clock=clock)
        assert scheduler.state is SchedulerState.IDLE

        scheduler.start()
        assert scheduler.state is SchedulerState.RUNNING
        with pytest.raises(RuntimeError):
            scheduler.start()

        scheduler.stop()
        scheduler.stop()  # Idempotent
        assert scheduler.state is SchedulerState.STOPPED
        with pytest.raises(RuntimeError):
            scheduler.start()
        await scheduler.wait_stopped()

    async def test_independent_schedulers(self, clock):
        """A failing scheduler does not throttle a healthy one."""
        healthy = BackoffScheduler(scripted([True] * 10), lambda s: None, clock=clock, name="healthy")
        failing = BackoffScheduler(scripted([]), lambda s: None, clock=clock, name="failing")
        healthy.start()
        failing.start()
        await clock.wait_for_sleepers(2)
        for _ in range(3):
            await clock.advance(5)
            await clock.wait_for_sleepers(2)

        assert healthy.backoff.current_interval == 5
        assert failing.backoff.current_interval > 5
        healthy.stop()
        failing.stop()
        await healthy.wait_stopped()
        await failing.wait_stopped()

"""Time sources for schedulers.

Production code uses SystemClock. Tests inject VirtualClock so backoff and
grace periods can be exercised without real waits.
"""

from __future__ import annotations

import asyncio
import time


class Clock:
    """Wall-clock time plus an awaitable sleep."""

    def now(self) -> float:
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock(Clock):
    """Manually advanced clock.

    ``sleep()`` blocks until ``advance()`` moves time past the sleeper's
    deadline. Every requested delay is recorded in ``sleeps``.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._sleepers: list[tuple[float, asyncio.Future]] = []
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        future = asyncio.get_running_loop().create_future()
        entry = (self._now + seconds, future)
        self._sleepers.append(entry)
        try:
            await future
        finally:
            if entry in self._sleepers:
                self._sleepers.remove(entry)

    @property
    def pending(self) -> int:
        """Number of tasks currently sleeping on this clock."""
        return sum(1 for _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        """Move time forward and wake every sleeper whose deadline has passed."""
        self._now += seconds
        due = [entry for entry in self._sleepers if entry[0] <= self._now]
        for entry in due:
            self._sleepers.remove(entry)
            if not entry[1].done():
                entry[1].set_result(None)
        await settle()

    async def wait_for_sleepers(self, count: int = 1, max_rounds: int = 1000) -> None:
        """Yield to the loop until at least ``count`` tasks are sleeping."""
        for _ in range(max_rounds):
            if self.pending >= count:
                return
            await asyncio.sleep(0)
        raise RuntimeError(f"Expected {count} sleepers, found {self.pending}")


async def settle(rounds: int = 50) -> None:
    """Let ready tasks run without advancing time."""
    for _ in range(rounds):
        await asyncio.sleep(0)

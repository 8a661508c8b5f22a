"""Adaptive polling loop with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from .clock import Clock, SystemClock
from .models import PriceSnapshot

logger = logging.getLogger(__name__)

DEFAULT_FLOOR = 5.0
DEFAULT_CEILING = 60.0
DEFAULT_MULTIPLIER = 2.0


@dataclass
class BackoffState:
    """Interval bookkeeping for one poll loop.

    The delay after a success is ``floor``. The delay after the k-th
    consecutive failure is ``floor * multiplier**(k-1)``, capped at
    ``ceiling``: with the defaults 5, 10, 20, 40, 60, 60, ...
    """

    floor: float = DEFAULT_FLOOR
    ceiling: float = DEFAULT_CEILING
    multiplier: float = DEFAULT_MULTIPLIER
    current_interval: float = 0.0
    consecutive_failures: int = 0

    def __post_init__(self) -> None:
        if self.floor <= 0:
            raise ValueError(f"floor must be positive, got {self.floor}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")
        self.ceiling = max(self.ceiling, self.floor)
        self.current_interval = self.floor

    def record_success(self) -> float:
        self.consecutive_failures = 0
        self.current_interval = self.floor
        return self.current_interval

    def record_failure(self) -> float:
        if self.consecutive_failures > 0:
            self.current_interval = min(self.ceiling, self.current_interval * self.multiplier)
        self.consecutive_failures += 1
        return self.current_interval


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class BackoffScheduler:
    """Drives ``fetch`` repeatedly, handing each result to ``on_result``.

    State machine: IDLE -> RUNNING -> STOPPED. STOPPED is terminal; a new
    scheduler must be created to poll again.

    The first fetch happens immediately on start(). Fetches never overlap:
    the next one is only scheduled after the previous result was handled and
    the interval recomputed. A cycle succeeds when the snapshot holds at least
    one price.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[PriceSnapshot]],
        on_result: Callable[[PriceSnapshot], None],
        floor: float = DEFAULT_FLOOR,
        ceiling: float = DEFAULT_CEILING,
        multiplier: float = DEFAULT_MULTIPLIER,
        clock: Clock | None = None,
        name: str = "price-poller",
    ) -> None:
        self._fetch = fetch
        self._on_result = on_result
        self._backoff = BackoffState(floor=floor, ceiling=ceiling, multiplier=multiplier)
        self._clock = clock or SystemClock()
        self._name = name
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task | None = None
        self._cycles = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def backoff(self) -> BackoffState:
        return self._backoff

    @property
    def cycles(self) -> int:
        """Number of completed fetch cycles whose result was handled."""
        return self._cycles

    def start(self) -> None:
        """Begin polling. Must be called from a running event loop, once."""
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler {self._name} cannot start from state {self._state.value}")
        self._state = SchedulerState.RUNNING
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.info("Scheduler %s started (floor %.1fs)", self._name, self._backoff.floor)

    def stop(self) -> None:
        """Stop polling without waiting for an in-flight fetch.

        Safe to call multiple times. A fetch still in progress is abandoned and
        its result, should it arrive, is discarded.
        """
        if self._state is SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        if self._task and not self._task.done():
            self._task.cancel()
        logger.info("Scheduler %s stopped after %d cycles", self._name, self._cycles)

    async def wait_stopped(self) -> None:
        """Wait for the polling task to finish unwinding after stop()."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    # --- Internal ---

    async def _run(self) -> None:
        while self.running:
            success = await self._run_once()
            if not self.running:
                break
            delay = self._backoff.record_success() if success else self._backoff.record_failure()
            if not success:
                logger.info(
                    "Scheduler %s: no prices (%d consecutive failures), retrying in %.1fs",
                    self._name,
                    self._backoff.consecutive_failures,
                    delay,
                )
            await self._clock.sleep(delay)

    async def _run_once(self) -> bool:
        """Execute one fetch cycle. Returns True if any price was obtained."""
        try:
            snapshot = await self._fetch()
        except Exception:
            logger.exception("Scheduler %s: fetch failed", self._name)
            return False

        if not self.running:
            logger.debug("Scheduler %s: discarding result that arrived after stop", self._name)
            return False

        self._cycles += 1
        try:
            self._on_result(snapshot)
        except Exception:
            logger.exception("Scheduler %s: result handler failed", self._name)
        return len(snapshot) > 0

"""Fixed-capacity rolling price history."""

from __future__ import annotations

from collections import deque
from threading import Lock

from .models import PricePoint

DEFAULT_CAPACITY = 60


class RollingBuffer:
    """Time-ordered history of the most recent price points for one symbol.

    Appending beyond capacity evicts the oldest points. Readers get an
    immutable copy, never a live view.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._points: deque[PricePoint] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._points.maxlen or 0

    def append(self, point: PricePoint) -> None:
        with self._lock:
            self._points.append(point)

    def snapshot(self) -> tuple[PricePoint, ...]:
        """Copy of the history, oldest first."""
        with self._lock:
            return tuple(self._points)

    @property
    def latest(self) -> PricePoint | None:
        with self._lock:
            return self._points[-1] if self._points else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

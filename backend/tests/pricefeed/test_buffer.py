"""Tests for RollingBuffer."""

import pytest

from pricefeed.buffer import RollingBuffer
from pricefeed.models import PricePoint


class TestRollingBuffer:
    """Unit tests for the fixed-capacity history."""

    def test_capacity_evicts_oldest(self):
        """Appending 61 points to a 60-point buffer drops only the first."""
        buffer = RollingBuffer(capacity=60)
        points = [PricePoint(value=float(i), timestamp=float(i)) for i in range(61)]
        for point in points:
            buffer.append(point)

        history = buffer.snapshot()
        assert len(history) == 60
        assert points[0] not in history
        assert list(history) == points[1:]

    def test_snapshot_is_a_copy(self):
        """Readers never see later mutations."""
        buffer = RollingBuffer(capacity=3)
        buffer.append(PricePoint(value=1.0, timestamp=1.0))
        history = buffer.snapshot()
        buffer.append(PricePoint(value=2.0, timestamp=2.0))
        assert len(history) == 1
        assert isinstance(history, tuple)

    def test_latest(self):
        """Latest is the most recent point, or None when empty."""
        buffer = RollingBuffer(capacity=2)
        assert buffer.latest is None
        buffer.append(PricePoint(value=1.0, timestamp=1.0))
        buffer.append(PricePoint(value=2.0, timestamp=2.0))
        assert buffer.latest.value == 2.0

    def test_default_capacity(self):
        """Default history length is 60."""
        assert RollingBuffer().capacity == 60

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_invalid_capacity(self, capacity):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            RollingBuffer(capacity=capacity)

"""Fixtures for price feed tests.

Provides scripted in-memory providers so fallback, scheduling and fan-out can
be tested without the network, and a VirtualClock so backoff and grace
periods run without real waits.
"""

from collections.abc import Collection

import pytest

from pricefeed.clock import VirtualClock
from pricefeed.errors import FetchError, FetchErrorKind
from pricefeed.interface import PriceProvider
from pricefeed.models import PricePoint, PriceSnapshot, Symbol
from pricefeed.symbols import SymbolResolver


class FakeProvider(PriceProvider):
    """Provider answering from a dict, or failing with a fixed error kind."""

    def __init__(
        self,
        name: str,
        prices: dict[str, float] | None = None,
        fail: FetchErrorKind | None = None,
    ) -> None:
        self.name = name
        self.prices = dict(prices or {})
        self.fail = fail
        self.calls: list[list[str]] = []
        self.closed = False

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        self.calls.append(sorted(s.canonical for s in symbols))
        if self.fail is not None:
            raise FetchError(self.fail, self.name)
        found = {
            s.canonical: PricePoint(value=self.prices[s.canonical], timestamp=1707580800.0)
            for s in symbols
            if s.canonical in self.prices
        }
        if not found:
            raise FetchError(FetchErrorKind.MALFORMED, self.name, "no prices")
        return PriceSnapshot(found)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""

    def _make(name: str = "fake", prices: dict[str, float] | None = None, fail=None) -> FakeProvider:
        return FakeProvider(name, prices=prices, fail=fail)

    return _make


@pytest.fixture
def clock():
    return VirtualClock(start=1707580800.0)


@pytest.fixture
def resolver():
    return SymbolResolver()

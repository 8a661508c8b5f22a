"""Data models for live price data."""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class Symbol:
    """Canonical, provider-agnostic identifier for a tradable asset.

    Two symbols are equal when their canonical ids match, regardless of the
    raw ticker they were resolved from ("BTC" and "btcusdt" are the same asset).
    """

    canonical: str
    raw: str = field(default="", compare=False)
    base: str = field(default="", compare=False)  # Lower-cased ticker, quote suffix stripped

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True, slots=True)
class PricePoint:
    """Immutable price observation."""

    value: float
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    def to_dict(self) -> dict:
        return {"value": self.value, "timestamp": self.timestamp}


class PriceSnapshot(Mapping[str, PricePoint]):
    """Result of one fetch cycle: canonical id -> PricePoint.

    Built once and never mutated. A symbol whose fetch failed is simply absent.
    """

    __slots__ = ("_prices", "timestamp")

    def __init__(
        self,
        prices: Mapping[str, PricePoint] | None = None,
        timestamp: float | None = None,
    ) -> None:
        self._prices = MappingProxyType(dict(prices or {}))
        self.timestamp = timestamp if timestamp is not None else time.time()

    def __getitem__(self, key: str | Symbol) -> PricePoint:
        return self._prices[_key(key)]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (str, Symbol)):
            return _key(key) in self._prices
        return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self) -> str:
        return f"PriceSnapshot({dict(self._prices)!r})"

    def filter(self, symbols: Iterable[str | Symbol]) -> PriceSnapshot:
        """New snapshot restricted to the given symbols, same timestamp."""
        wanted = {_key(s) for s in symbols}
        return PriceSnapshot(
            {k: v for k, v in self._prices.items() if k in wanted},
            timestamp=self.timestamp,
        )

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {k: v.to_dict() for k, v in self._prices.items()}


def _key(symbol: str | Symbol) -> str:
    return symbol.canonical if isinstance(symbol, Symbol) else symbol


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    """Latest quote for a symbol, with movement relative to the previous one."""

    symbol: str
    price: float
    previous_price: float
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    @property
    def change(self) -> float:
        """Absolute price change from previous update."""
        return self.price - self.previous_price

    @property
    def change_percent(self) -> float:
        """Percentage change from previous update."""
        if self.previous_price == 0:
            return 0.0
        return (self.price - self.previous_price) / self.previous_price * 100

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.price > self.previous_price:
            return "up"
        elif self.price < self.previous_price:
            return "down"
        return "flat"

    @property
    def point(self) -> PricePoint:
        return PricePoint(value=self.price, timestamp=self.timestamp)

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "price": self.price,
            "previous_price": self.previous_price,
            "timestamp": self.timestamp,
            "change": self.change,
            "change_percent": self.change_percent,
            "direction": self.direction,
        }

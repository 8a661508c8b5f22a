"""Thread-safe in-memory cache of the latest quote per symbol."""

from __future__ import annotations

import time
from threading import Lock

from .models import PriceUpdate


class PriceCache:
    """Latest PriceUpdate for each canonical id.

    Writer: the LiveFeedService fetch-result handler.
    Readers: current-value lookups and the HTTP surface.
    """

    def __init__(self) -> None:
        self._prices: dict[str, PriceUpdate] = {}
        self._lock = Lock()

    def update(self, symbol: str, price: float, timestamp: float | None = None) -> PriceUpdate:
        """Record a new price for a symbol. Returns the created PriceUpdate.

        If this is the first update for the symbol, previous_price == price (direction='flat').
        """
        with self._lock:
            ts = timestamp if timestamp is not None else time.time()
            prev = self._prices.get(symbol)
            previous_price = prev.price if prev else price

            update = PriceUpdate(
                symbol=symbol,
                price=price,
                previous_price=previous_price,
                timestamp=ts,
            )
            self._prices[symbol] = update
            return update

    def get(self, symbol: str) -> PriceUpdate | None:
        """Get the latest quote for a single symbol, or None if never priced."""
        with self._lock:
            return self._prices.get(symbol)

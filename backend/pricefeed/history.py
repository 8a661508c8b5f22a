"""Historical price series (CoinGecko market chart)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any

from .errors import FetchError, FetchErrorKind
from .models import PricePoint, Symbol
from .providers import CoinGeckoAuth

logger = logging.getLogger(__name__)


class Timeframe(str, Enum):
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    ONE_DAY = "1d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    ONE_YEAR = "1y"
    THREE_YEARS = "3y"
    ALL_TIME = "all"
    LIVE = "live"  # Served from the rolling buffer, not from history

    @property
    def days(self) -> str:
        """Value of the market_chart ``days`` parameter."""
        if self is Timeframe.LIVE:
            raise ValueError("The live timeframe has no historical series")
        return _DAYS[self]

    @property
    def window(self) -> float | None:
        """Length in seconds of an intraday window, None when the whole series is kept."""
        return _INTRADAY_WINDOWS.get(self)


# The smallest request CoinGecko serves is one day at 5-minute granularity;
# intraday timeframes are cut down from that.
_DAYS: dict[Timeframe, str] = {
    Timeframe.ONE_MINUTE: "1",
    Timeframe.FIVE_MINUTES: "1",
    Timeframe.FIFTEEN_MINUTES: "1",
    Timeframe.THIRTY_MINUTES: "1",
    Timeframe.ONE_HOUR: "1",
    Timeframe.FOUR_HOURS: "1",
    Timeframe.ONE_DAY: "1",
    Timeframe.ONE_WEEK: "7",
    Timeframe.ONE_MONTH: "30",
    Timeframe.THREE_MONTHS: "90",
    Timeframe.ONE_YEAR: "365",
    Timeframe.THREE_YEARS: "1095",
    Timeframe.ALL_TIME: "max",
}

_INTRADAY_WINDOWS: dict[Timeframe, float] = {
    Timeframe.ONE_MINUTE: 60 * 60,  # Too sparse at 5-minute points; show the last hour
    Timeframe.FIVE_MINUTES: 3 * 60 * 60,
    Timeframe.FIFTEEN_MINUTES: 6 * 60 * 60,
    Timeframe.THIRTY_MINUTES: 12 * 60 * 60,
    Timeframe.ONE_HOUR: 24 * 60 * 60,
    Timeframe.FOUR_HOURS: 24 * 60 * 60,
}


def parse_series(pairs: Any) -> list[PricePoint]:
    """Convert ``[[timestamp_ms, price], ...]`` into PricePoints, oldest first.

    Raises FetchError(MALFORMED) when the payload does not have that shape.
    """
    if not isinstance(pairs, Sequence) or isinstance(pairs, (str, bytes)):
        raise FetchError(FetchErrorKind.MALFORMED, "history", "series is not a list")
    points: list[PricePoint] = []
    for pair in pairs:
        try:
            timestamp_ms, price = pair[0], pair[1]
            points.append(PricePoint(value=float(price), timestamp=float(timestamp_ms) / 1000.0))
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise FetchError(FetchErrorKind.MALFORMED, "history", f"bad point {pair!r}") from e
    points.sort(key=lambda p: p.timestamp)
    return points


class HistoricalSeriesClient(CoinGeckoAuth):
    """Fetches price history for charting.

    GET /api/v3/coins/{id}/market_chart?vs_currency=usd&days=N
    """

    vs_currency = "usd"

    async def fetch(self, symbol: Symbol, timeframe: Timeframe) -> list[PricePoint]:
        days = timeframe.days
        data = await self._get_json(
            f"/api/v3/coins/{symbol.canonical}/market_chart",
            {"vs_currency": self.vs_currency, "days": days},
        )
        if not isinstance(data, dict) or "prices" not in data:
            raise self._malformed("missing prices")
        points = parse_series(data["prices"])

        window = timeframe.window
        if window is not None and points:
            cutoff = points[-1].timestamp - window
            points = [p for p in points if p.timestamp >= cutoff]
        logger.debug("History %s %s: %d points", symbol, timeframe.value, len(points))
        return points

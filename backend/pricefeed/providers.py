"""HTTP price providers.

Each provider issues exactly one GET per fetch() and maps every failure to a
FetchError kind. Target currency is always USD.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Collection
from typing import Any

import httpx

from .errors import FetchError, FetchErrorKind
from .interface import PriceProvider
from .models import PricePoint, PriceSnapshot, Symbol

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
RATE_LIMIT_STATUSES = {418, 429}  # Binance answers 418 once an IP is banned for ignoring 429s


class JsonHttpClient:
    """JSON-over-HTTP plumbing shared by providers and the history client.

    A shared httpx.AsyncClient may be injected; otherwise one is created lazily
    and owned (and closed) by this object.
    """

    name: str = "http"
    base_url: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        if base_url is not None:
            self.base_url = base_url

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            # httpx timeouts are per phase; the deadline bounds the whole call
            async with asyncio.timeout(self._timeout):
                response = await self._get_client().get(
                    url, params=params, headers=self._headers(), timeout=self._timeout
                )
        except TimeoutError as e:
            raise FetchError(FetchErrorKind.TIMEOUT, self.name, f"no response within {self._timeout:g}s") from e
        except httpx.TimeoutException as e:
            raise FetchError(FetchErrorKind.TIMEOUT, self.name, str(e)) from e
        except httpx.RequestError as e:
            raise FetchError(FetchErrorKind.UNREACHABLE, self.name, str(e)) from e

        if response.status_code in RATE_LIMIT_STATUSES:
            raise FetchError(FetchErrorKind.RATE_LIMITED, self.name, f"HTTP {response.status_code}")
        if response.status_code != 200:
            raise FetchError(FetchErrorKind.UNREACHABLE, self.name, f"HTTP {response.status_code}")

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise FetchError(FetchErrorKind.MALFORMED, self.name, f"Invalid JSON: {e}") from e

    def _malformed(self, detail: str) -> FetchError:
        return FetchError(FetchErrorKind.MALFORMED, self.name, detail)


class HttpPriceProvider(JsonHttpClient, PriceProvider):
    """Base class for JSON-over-HTTP price providers."""

    def _snapshot(self, prices: dict[str, PricePoint], symbols: Collection[Symbol]) -> PriceSnapshot:
        if not prices:
            raise self._malformed(f"no prices for {', '.join(s.canonical for s in symbols)}")
        logger.debug("%s: priced %d/%d symbols", self.name, len(prices), len(symbols))
        return PriceSnapshot(prices)


class CoinbaseProvider(HttpPriceProvider):
    """Primary trade API: Coinbase exchange rates.

    GET /v2/exchange-rates?currency=USD returns how much of each asset one
    dollar buys, so the USD price is the reciprocal of the rate.
    """

    name = "coinbase"
    base_url = "https://api.coinbase.com"

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        data = await self._get_json("/v2/exchange-rates", {"currency": "USD"})
        try:
            rates = data["data"]["rates"]
        except (KeyError, TypeError) as e:
            raise self._malformed(f"missing rates: {e}") from e

        prices: dict[str, PricePoint] = {}
        for symbol in symbols:
            raw_rate = rates.get(symbol.base.upper()) if isinstance(rates, dict) else None
            if raw_rate is None:
                continue
            try:
                rate = float(raw_rate)
            except (TypeError, ValueError):
                logger.warning("Coinbase: skipping %s, bad rate %r", symbol, raw_rate)
                continue
            if rate > 0:
                prices[symbol.canonical] = PricePoint(value=1.0 / rate)
        return self._snapshot(prices, symbols)


class BinanceProvider(HttpPriceProvider):
    """Secondary exchange API: Binance spot ticker prices against USDT."""

    name = "binance"
    base_url = "https://api.binance.com"
    quote = "USDT"

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        pairs = {f"{s.base.upper()}{self.quote}": s for s in symbols}
        data = await self._get_json(
            "/api/v3/ticker/price",
            {"symbols": json.dumps(sorted(pairs), separators=(",", ":"))},
        )
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise self._malformed(f"unexpected payload type {type(data).__name__}")

        prices: dict[str, PricePoint] = {}
        for item in data:
            try:
                symbol = pairs[item["symbol"]]
                prices[symbol.canonical] = PricePoint(value=float(item["price"]))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Binance: skipping ticker %r: %s", item, e)
        return self._snapshot(prices, symbols)


class CoinGeckoAuth(JsonHttpClient):
    """CoinGecko base URL and optional demo API key header."""

    name = "coingecko"
    base_url = "https://api.coingecko.com"

    def __init__(self, *args: Any, api_key: str = "", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers


class CoinGeckoProvider(CoinGeckoAuth, HttpPriceProvider):
    """Aggregator poll API: CoinGecko simple price.

    Response shape: {"bitcoin": {"usd": 60000.0}, ...}
    """

    vs_currency = "usd"

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        ids = ",".join(sorted({s.canonical for s in symbols}))
        data = await self._get_json(
            "/api/v3/simple/price", {"ids": ids, "vs_currencies": self.vs_currency}
        )
        if not isinstance(data, dict):
            raise self._malformed(f"unexpected payload type {type(data).__name__}")

        prices: dict[str, PricePoint] = {}
        for symbol in symbols:
            entry = data.get(symbol.canonical)
            if not isinstance(entry, dict) or self.vs_currency not in entry:
                continue
            try:
                prices[symbol.canonical] = PricePoint(value=float(entry[self.vs_currency]))
            except (TypeError, ValueError):
                logger.warning("CoinGecko: skipping %s, bad price %r", symbol, entry)
        return self._snapshot(prices, symbols)

"""Ticker normalization into canonical identifiers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import Symbol

# Ticker -> canonical id. Canonical ids follow CoinGecko naming, which is the
# broadest vocabulary among the supported providers.
CANONICAL_IDS: dict[str, str] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "bnb": "binancecoin",
    "usdt": "tether",
    "busd": "binance-usd",
    "usdc": "usd-coin",
    "sol": "solana",
    "ada": "cardano",
    "xrp": "ripple",
    "doge": "dogecoin",
    "dot": "polkadot",
    "avax": "avalanche-2",
    "matic": "matic-network",
    "link": "chainlink",
    "xlm": "stellar",
    "bch": "bitcoin-cash",
    "trx": "tron",
    "uni": "uniswap",
    "etc": "ethereum-classic",
    "wbtc": "wrapped-bitcoin",
    "steth": "staked-ether",
    "wsteth": "wrapped-steth",
    "sui": "sui",
    "hype": "hyperliquid",
    "leo": "leo-token",
    "fil": "filecoin",
}

# Quote-currency suffixes stripped from exchange pair tickers ("BTCUSDT" -> "btc")
QUOTE_SUFFIXES: tuple[str, ...] = ("usdt",)


class SymbolResolver:
    """Maps raw tickers to canonical Symbols.

    Resolution is pure and never fails: unknown tickers map to themselves so a
    provider that understands the raw form can still price them.
    """

    def __init__(
        self,
        table: Mapping[str, str] | None = None,
        quote_suffixes: Iterable[str] = QUOTE_SUFFIXES,
    ) -> None:
        self._table = {k.lower(): v for k, v in (CANONICAL_IDS if table is None else table).items()}
        # Longest first so "usdt" wins over a shorter suffix like "usd"
        self._suffixes = sorted((s.lower() for s in quote_suffixes), key=len, reverse=True)

    def resolve(self, raw: str | Symbol) -> Symbol:
        if isinstance(raw, Symbol):
            return raw
        base = self.normalize(raw)
        canonical = self._table.get(base, base)
        return Symbol(canonical=canonical, raw=raw, base=base)

    def resolve_many(self, raws: Iterable[str | Symbol]) -> list[Symbol]:
        """Resolve several tickers, dropping duplicates and keeping first-seen order."""
        seen: dict[str, Symbol] = {}
        for raw in raws:
            symbol = self.resolve(raw)
            seen.setdefault(symbol.canonical, symbol)
        return list(seen.values())

    def normalize(self, raw: str) -> str:
        """Lower-case the ticker and strip a known quote suffix."""
        lower = raw.strip().lower()
        for suffix in self._suffixes:
            if lower.endswith(suffix) and len(lower) > len(suffix):
                return lower[: -len(suffix)]
        return lower

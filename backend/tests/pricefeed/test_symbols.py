"""Tests for SymbolResolver."""

from pricefeed.models import Symbol
from pricefeed.symbols import SymbolResolver


class TestSymbolResolver:
    """Unit tests for ticker normalization."""

    def test_exchange_pair_resolves_to_canonical(self, resolver):
        """A USDT pair ticker maps to the base asset's canonical id."""
        symbol = resolver.resolve("BTCUSDT")
        assert symbol.canonical == "bitcoin"
        assert symbol.raw == "BTCUSDT"
        assert symbol.base == "btc"

    def test_unknown_ticker_is_identity(self, resolver):
        """Unknown tickers degrade to their normalized form."""
        assert resolver.resolve("xyzabc").canonical == "xyzabc"
        assert resolver.resolve("XYZABC").canonical == "xyzabc"

    def test_case_insensitive(self, resolver):
        """Resolution ignores case and surrounding whitespace."""
        assert resolver.resolve("eth") == resolver.resolve("  ETH ") == resolver.resolve("EthUsdt")

    def test_bare_suffix_is_not_stripped(self, resolver):
        """The quote currency on its own is an asset, not an empty ticker."""
        assert resolver.resolve("USDT").canonical == "tether"

    def test_symbol_passes_through(self, resolver):
        """Already resolved symbols are returned unchanged."""
        symbol = Symbol("bitcoin", raw="BTC", base="btc")
        assert resolver.resolve(symbol) is symbol

    def test_resolve_many_dedupes_in_order(self, resolver):
        """Duplicates collapse to the first occurrence."""
        symbols = resolver.resolve_many(["ETH", "btc", "BTCUSDT", "sol"])
        assert [s.canonical for s in symbols] == ["ethereum", "bitcoin", "solana"]
        assert symbols[1].raw == "btc"

    def test_custom_table_and_suffixes(self):
        """Lookup table and quote suffixes can be injected."""
        resolver = SymbolResolver(table={"XBT": "bitcoin"}, quote_suffixes=["usd", "usdt"])
        assert resolver.resolve("xbtusdt").canonical == "bitcoin"
        assert resolver.resolve("XBTUSD").canonical == "bitcoin"
        assert resolver.resolve("eth").canonical == "eth"

    def test_deterministic(self, resolver):
        """The same input always gives the same canonical id."""
        assert {resolver.resolve("dogeusdt").canonical for _ in range(5)} == {"dogecoin"}

"""Tests for PriceCache."""

from pricefeed.cache import PriceCache


class TestPriceCache:
    """Unit tests for the PriceCache."""

    def test_update_and_get(self):
        """Test updating and getting a price."""
        cache = PriceCache()
        update = cache.update("bitcoin", 65000.50)
        assert update.symbol == "bitcoin"
        assert update.price == 65000.50
        assert cache.get("bitcoin") == update

    def test_first_update_is_flat(self):
        """Test that the first update has flat direction."""
        cache = PriceCache()
        update = cache.update("bitcoin", 65000.0)
        assert update.direction == "flat"
        assert update.previous_price == 65000.0

    def test_previous_price_tracks_last_update(self):
        """Test price movement between updates."""
        cache = PriceCache()
        cache.update("bitcoin", 65000.0)
        update = cache.update("bitcoin", 64000.0)
        assert update.direction == "down"
        assert update.previous_price == 65000.0

    def test_symbols_tracked_independently(self):
        """Each symbol keeps its own previous price."""
        cache = PriceCache()
        cache.update("bitcoin", 65000.0)
        cache.update("ethereum", 3200.0)
        assert cache.update("ethereum", 3300.0).previous_price == 3200.0
        assert cache.get("bitcoin").price == 65000.0

    def test_get_unknown(self):
        """Unknown symbols return None."""
        assert PriceCache().get("bitcoin") is None

    def test_custom_timestamp(self):
        """Test updating with a custom timestamp, including zero."""
        cache = PriceCache()
        assert cache.update("bitcoin", 1.0, timestamp=1234567890.0).timestamp == 1234567890.0
        assert cache.update("bitcoin", 1.0, timestamp=0.0).timestamp == 0.0

    def test_price_not_rounded(self):
        """Cached prices keep full precision."""
        cache = PriceCache()
        assert cache.update("dogecoin", 0.123456789).price == 0.123456789

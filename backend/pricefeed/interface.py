"""Abstract interface for upstream price providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection

from .models import PriceSnapshot, Symbol


class PriceProvider(ABC):
    """Contract for one upstream price source.

    A provider answers a single request with a PriceSnapshot or raises
    FetchError. It never retries on its own: retrying belongs to the
    scheduler, falling back to another source belongs to the FallbackFetcher.

    Lifecycle:
        provider = CoinGeckoProvider()
        snapshot = await provider.fetch([resolver.resolve("btc")])
        # ...
        await provider.aclose()
    """

    name: str = "provider"

    @abstractmethod
    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        """Fetch current prices for the given symbols in one call.

        Symbols the source does not know are omitted from the snapshot. If none
        of the requested symbols can be priced, raises FetchError.
        """

    def release(self, symbols: Collection[Symbol]) -> None:
        """Forget per-symbol state once no feed polls these symbols."""

    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""

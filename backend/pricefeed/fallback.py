"""Ordered provider fallback."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from .errors import AllProvidersFailed, FetchError, FetchErrorKind
from .interface import PriceProvider
from .models import PricePoint, PriceSnapshot, Symbol

logger = logging.getLogger(__name__)


class FallbackFetcher:
    """Tries providers in a fixed priority order until each symbol is priced.

    Stage k receives every symbol still unpriced after stages 0..k-1, in one
    call, so a cycle costs at most one request per provider. No stage is
    retried within one call. The ordering is static so tests can assert
    exactly which providers were consulted.
    """

    def __init__(self, providers: Sequence[PriceProvider]) -> None:
        if not providers:
            raise ValueError("At least one price provider must be supplied")
        self._providers = list(providers)

    @property
    def providers(self) -> list[PriceProvider]:
        return list(self._providers)

    async def fetch_one(self, symbol: Symbol) -> PricePoint:
        """Price one symbol through the chain. Raises AllProvidersFailed."""
        prices, failures = await self._run_chain([symbol])
        if failures:
            raise failures[0]
        return prices[symbol.canonical]

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        """Run the chain for a batch of symbols and build one snapshot.

        Symbols whose whole chain failed are omitted and logged.
        """
        prices, failures = await self._run_chain(list(symbols))
        for failure in failures:
            logger.warning("%s", failure)
        return PriceSnapshot(prices)

    def release(self, symbols: Collection[Symbol]) -> None:
        """Tell every provider the symbols are no longer polled."""
        for provider in self._providers:
            provider.release(symbols)

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()

    async def _run_chain(
        self, symbols: list[Symbol]
    ) -> tuple[dict[str, PricePoint], list[AllProvidersFailed]]:
        prices: dict[str, PricePoint] = {}
        errors: dict[str, list[FetchError]] = {s.canonical: [] for s in symbols}
        remaining = list(symbols)

        for provider in self._providers:
            if not remaining:
                break
            try:
                snapshot = await provider.fetch(remaining)
            except FetchError as e:
                logger.debug("%s failed for %d symbols: %s", provider.name, len(remaining), e)
                for symbol in remaining:
                    errors[symbol.canonical].append(e)
                continue

            missing: list[Symbol] = []
            for symbol in remaining:
                point = snapshot.get(symbol.canonical)
                if point is None:
                    errors[symbol.canonical].append(
                        FetchError(FetchErrorKind.MALFORMED, provider.name, f"{symbol} missing from response")
                    )
                    missing.append(symbol)
                else:
                    prices[symbol.canonical] = point
            remaining = missing

        failures = [AllProvidersFailed(s.canonical, errors[s.canonical]) for s in remaining]
        return prices, failures

"""Error types for the price feed."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum


class FetchErrorKind(str, Enum):
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    UNREACHABLE = "unreachable"
    RATE_LIMITED = "rate_limited"


class PriceFeedError(Exception):
    """Base class for price feed errors."""


class FetchError(PriceFeedError):
    """A single provider call failed."""

    def __init__(self, kind: FetchErrorKind, provider: str = "", detail: str = "") -> None:
        self.kind = kind
        self.provider = provider
        self.detail = detail
        message = f"{provider or 'provider'}: {kind.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AllProvidersFailed(PriceFeedError):
    """Every provider in the fallback chain failed for a symbol.

    Carries the individual errors in chain order. ``kinds`` is for logging and
    classification only.
    """

    def __init__(self, symbol: str, errors: Sequence[FetchError]) -> None:
        self.symbol = symbol
        self.errors = list(errors)
        self.kinds = frozenset(e.kind for e in self.errors)
        kinds = ", ".join(sorted(k.value for k in self.kinds)) or "no providers"
        super().__init__(f"All providers failed for {symbol}: {kinds}")

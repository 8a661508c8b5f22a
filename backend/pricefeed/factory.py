"""Factory for creating price providers and the live feed service."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx

from .buffer import DEFAULT_CAPACITY
from .clock import Clock
from .interface import PriceProvider
from .providers import DEFAULT_TIMEOUT
from .scheduler import DEFAULT_CEILING, DEFAULT_MULTIPLIER
from .service import DEFAULT_GRACE_PERIOD, LiveFeedService

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS = ("coinbase", "binance", "coingecko")
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class FeedSettings:
    """Runtime configuration, normally read from the environment."""

    simulator: bool = False
    providers: tuple[str, ...] = DEFAULT_PROVIDERS
    coingecko_api_key: str = field(default="", repr=False)
    timeout: float = DEFAULT_TIMEOUT
    buffer_capacity: int = DEFAULT_CAPACITY
    backoff_ceiling: float = DEFAULT_CEILING
    backoff_multiplier: float = DEFAULT_MULTIPLIER
    grace_period: float = DEFAULT_GRACE_PERIOD

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FeedSettings:
        """Build settings from PRICEFEED_* variables and COINGECKO_API_KEY.

        Unknown provider names and unparsable numbers are ignored with a warning.
        """
        env = os.environ if environ is None else environ

        names: list[str] = []
        for name in env.get("PRICEFEED_PROVIDERS", ",".join(DEFAULT_PROVIDERS)).split(","):
            name = name.strip().lower()
            if not name:
                continue
            if name not in DEFAULT_PROVIDERS:
                logger.warning("Ignoring unknown provider %r in PRICEFEED_PROVIDERS", name)
            elif name not in names:
                names.append(name)

        return cls(
            simulator=env.get("PRICEFEED_SIMULATOR", "").strip().lower() in _TRUTHY,
            providers=tuple(names) or DEFAULT_PROVIDERS,
            coingecko_api_key=env.get("COINGECKO_API_KEY", "").strip(),
            timeout=_number(env, "PRICEFEED_TIMEOUT", DEFAULT_TIMEOUT),
            buffer_capacity=int(_number(env, "PRICEFEED_BUFFER_CAPACITY", DEFAULT_CAPACITY)),
            backoff_ceiling=_number(env, "PRICEFEED_BACKOFF_CEILING", DEFAULT_CEILING),
            backoff_multiplier=_number(env, "PRICEFEED_BACKOFF_MULTIPLIER", DEFAULT_MULTIPLIER, minimum=1),
            grace_period=_number(env, "PRICEFEED_GRACE_PERIOD", DEFAULT_GRACE_PERIOD, minimum=0),
        )


def _number(env: Mapping[str, str], key: str, default: float, minimum: float | None = None) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", key, raw, default)
        return default
    if minimum is None:
        ok = value > 0
    else:
        ok = value >= minimum
    if not ok:
        logger.warning("Out-of-range %s=%r, using default %s", key, raw, default)
        return default
    return value


def create_providers(
    settings: FeedSettings, client: httpx.AsyncClient | None = None
) -> list[PriceProvider]:
    """Create the provider chain in fallback order.

    - PRICEFEED_SIMULATOR set → SimulatedProvider only (no network)
    - Otherwise → the HTTP providers named in PRICEFEED_PROVIDERS, in that order
    """
    if settings.simulator:
        from .simulator import SimulatedProvider

        logger.info("Price source: GBM simulator")
        return [SimulatedProvider()]

    from .providers import BinanceProvider, CoinbaseProvider, CoinGeckoProvider

    providers: list[PriceProvider] = []
    for name in settings.providers:
        if name == "coinbase":
            providers.append(CoinbaseProvider(client=client, timeout=settings.timeout))
        elif name == "binance":
            providers.append(BinanceProvider(client=client, timeout=settings.timeout))
        elif name == "coingecko":
            providers.append(
                CoinGeckoProvider(
                    client=client, timeout=settings.timeout, api_key=settings.coingecko_api_key
                )
            )
    logger.info("Price sources: %s", " -> ".join(p.name for p in providers))
    return providers


def create_live_feed_service(
    settings: FeedSettings | None = None, clock: Clock | None = None
) -> LiveFeedService:
    """Create an unstarted LiveFeedService; feeds start on the first subscribe()."""
    settings = settings or FeedSettings.from_env()
    return LiveFeedService(
        create_providers(settings),
        clock=clock,
        buffer_capacity=settings.buffer_capacity,
        backoff_ceiling=settings.backoff_ceiling,
        backoff_multiplier=settings.backoff_multiplier,
        grace_period=settings.grace_period,
    )

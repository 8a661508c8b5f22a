"""GBM-based price simulator, usable as an offline PriceProvider."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Collection

import numpy as np

from .interface import PriceProvider
from .models import PricePoint, PriceSnapshot, Symbol
from .seed_prices import (
    ASSET_PARAMS,
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    INTRA_MAJORS_CORR,
    SEED_PRICES,
    STABLECOIN_CORR,
)

logger = logging.getLogger(__name__)


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated asset prices.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Where:
        S(t)   = current price
        mu     = annualized drift (expected return)
        sigma  = annualized volatility
        dt     = time step as fraction of a year
        Z      = correlated standard normal random variable

    Crypto trades around the clock, so a year is 365 full days.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600  # 31,536,000
    DEFAULT_DT = 5.0 / SECONDS_PER_YEAR  # One default poll interval, ~1.6e-7

    def __init__(
        self,
        assets: list[str],
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability

        # Per-asset state
        self._assets: list[str] = []
        self._prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}

        # Cholesky decomposition of the correlation matrix (for correlated moves)
        self._cholesky: np.ndarray | None = None

        for asset in assets:
            self._add_asset_internal(asset)
        self._rebuild_cholesky()

    # --- Public API ---

    def step(self) -> dict[str, float]:
        """Advance all assets by one time step. Returns {asset: new_price}."""
        n = len(self._assets)
        if n == 0:
            return {}

        z_independent = np.random.standard_normal(n)
        if self._cholesky is not None:
            z_correlated = self._cholesky @ z_independent
        else:
            z_correlated = z_independent

        result: dict[str, float] = {}
        for i, asset in enumerate(self._assets):
            params = self._params[asset]
            mu = params["mu"]
            sigma = params["sigma"]

            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z_correlated[i]
            self._prices[asset] *= math.exp(drift + diffusion)

            # Random event: a sudden 2-5% move, never applied to pegged assets
            if sigma > 0.01 and random.random() < self._event_prob:
                shock_magnitude = random.uniform(0.02, 0.05)
                shock_sign = random.choice([-1, 1])
                self._prices[asset] *= 1 + shock_magnitude * shock_sign
                logger.debug(
                    "Random event on %s: %.1f%% %s",
                    asset,
                    shock_magnitude * 100,
                    "up" if shock_sign > 0 else "down",
                )

            result[asset] = self._prices[asset]

        return result

    def add_asset(self, asset: str) -> None:
        """Add an asset to the simulation. Rebuilds the correlation matrix."""
        if asset in self._prices:
            return
        self._add_asset_internal(asset)
        self._rebuild_cholesky()

    def remove_asset(self, asset: str) -> None:
        """Remove an asset from the simulation. Rebuilds the correlation matrix."""
        if asset not in self._prices:
            return
        self._assets.remove(asset)
        del self._prices[asset]
        del self._params[asset]
        self._rebuild_cholesky()

    @property
    def assets(self) -> list[str]:
        return list(self._assets)

    # --- Internals ---

    def _add_asset_internal(self, asset: str) -> None:
        """Add an asset without rebuilding Cholesky (for batch initialization)."""
        if asset in self._prices:
            return
        self._assets.append(asset)
        self._prices[asset] = SEED_PRICES.get(asset, random.uniform(0.5, 200.0))
        self._params[asset] = ASSET_PARAMS.get(asset, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        """Rebuild the Cholesky decomposition of the asset correlation matrix.

        Called whenever assets are added or removed. O(n^2) but n < 50.
        """
        n = len(self._assets)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._assets[i], self._assets[j])
                corr[i, j] = rho
                corr[j, i] = rho

        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(a1: str, a2: str) -> float:
        """Correlation between two assets based on grouping.

          - Stablecoin with anything: 0.0
          - Both majors:              0.8
          - Anything else:            0.5
        """
        majors = CORRELATION_GROUPS["majors"]
        stablecoins = CORRELATION_GROUPS["stablecoins"]

        if a1 in stablecoins or a2 in stablecoins:
            return STABLECOIN_CORR
        if a1 in majors and a2 in majors:
            return INTRA_MAJORS_CORR
        return CROSS_GROUP_CORR


class SimulatedProvider(PriceProvider):
    """PriceProvider backed by the GBM simulator.

    Each fetch() advances the simulation by one step, so all symbols of a
    batch share one correlated draw. Symbols seen for the first time join the
    simulation at their seed price and leave it on release().
    """

    name = "simulator"

    def __init__(self, event_probability: float = 0.001, dt: float = GBMSimulator.DEFAULT_DT) -> None:
        self._sim = GBMSimulator(assets=[], dt=dt, event_probability=event_probability)

    @property
    def simulator(self) -> GBMSimulator:
        return self._sim

    async def fetch(self, symbols: Collection[Symbol]) -> PriceSnapshot:
        for symbol in symbols:
            self._sim.add_asset(symbol.canonical)
        prices = self._sim.step()
        return PriceSnapshot(
            {s.canonical: PricePoint(value=prices[s.canonical]) for s in symbols}
        )

    def release(self, symbols: Collection[Symbol]) -> None:
        for symbol in symbols:
            self._sim.remove_asset(symbol.canonical)
        logger.debug("Simulator tracking %d assets", len(self._sim.assets))

"""Seed prices and per-asset parameters for the price simulator."""

# Realistic starting prices in USD, keyed by canonical id
SEED_PRICES: dict[str, float] = {
    "bitcoin": 65000.00,
    "ethereum": 3200.00,
    "binancecoin": 580.00,
    "solana": 150.00,
    "ripple": 0.52,
    "cardano": 0.45,
    "dogecoin": 0.15,
    "polkadot": 7.00,
    "chainlink": 14.00,
    "avalanche-2": 35.00,
    "tether": 1.00,
    "usd-coin": 1.00,
}

# Per-asset GBM parameters
# sigma: annualized volatility (higher = more price movement)
# mu: annualized drift / expected return
ASSET_PARAMS: dict[str, dict[str, float]] = {
    "bitcoin": {"sigma": 0.55, "mu": 0.10},
    "ethereum": {"sigma": 0.70, "mu": 0.10},
    "binancecoin": {"sigma": 0.65, "mu": 0.08},
    "solana": {"sigma": 0.95, "mu": 0.12},
    "ripple": {"sigma": 0.80, "mu": 0.05},
    "cardano": {"sigma": 0.85, "mu": 0.05},
    "dogecoin": {"sigma": 1.10, "mu": 0.05},  # Meme coin, very high volatility
    "polkadot": {"sigma": 0.85, "mu": 0.04},
    "chainlink": {"sigma": 0.85, "mu": 0.06},
    "avalanche-2": {"sigma": 0.95, "mu": 0.06},
    "tether": {"sigma": 0.005, "mu": 0.0},  # Pegged
    "usd-coin": {"sigma": 0.005, "mu": 0.0},  # Pegged
}

# Default parameters for assets not in the list above (dynamically added)
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.90, "mu": 0.05}

# Correlation groups for the simulator's Cholesky decomposition
CORRELATION_GROUPS: dict[str, set[str]] = {
    "majors": {"bitcoin", "ethereum", "binancecoin", "solana"},
    "stablecoins": {"tether", "usd-coin"},
}

# Correlation coefficients
INTRA_MAJORS_CORR = 0.8  # Large caps track bitcoin closely
CROSS_GROUP_CORR = 0.5  # Altcoins still follow the market
STABLECOIN_CORR = 0.0  # Pegged assets move independently

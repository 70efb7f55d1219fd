"""Seed quotes and per-symbol parameters for the bridge simulator."""

# Mid prices for the symbols the dashboard usually tracks
SEED_PRICES: dict[str, float] = {
    "EURUSD": 1.0850,
    "GBPUSD": 1.2700,
    "AUDUSD": 0.6550,
    "NZDUSD": 0.6050,
    "USDJPY": 151.50,
    "EURJPY": 164.40,
    "GBPJPY": 192.40,
    "USDCHF": 0.9000,
    "USDCAD": 1.3600,
    "XAUUSD": 2350.00,
}

# Per-symbol GBM parameters (annualized)
SYMBOL_PARAMS: dict[str, dict[str, float]] = {
    "EURUSD": {"sigma": 0.07, "mu": 0.0},
    "GBPUSD": {"sigma": 0.08, "mu": 0.0},
    "AUDUSD": {"sigma": 0.10, "mu": 0.0},
    "NZDUSD": {"sigma": 0.11, "mu": 0.0},
    "USDJPY": {"sigma": 0.09, "mu": 0.01},
    "EURJPY": {"sigma": 0.10, "mu": 0.01},
    "GBPJPY": {"sigma": 0.12, "mu": 0.01},
    "USDCHF": {"sigma": 0.08, "mu": 0.0},
    "USDCAD": {"sigma": 0.06, "mu": 0.0},
    "XAUUSD": {"sigma": 0.15, "mu": 0.03},  # Metals move more
}

DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.10, "mu": 0.0}

# Quote precision: JPY crosses quote to 3 decimals, metals to 2, the rest to 5
PRICE_DIGITS: dict[str, int] = {"JPY": 3, "XAU": 2}
DEFAULT_DIGITS = 5

# Correlation groups for the Cholesky decomposition
CORRELATION_GROUPS: dict[str, set[str]] = {
    "usd_quote": {"EURUSD", "GBPUSD", "AUDUSD", "NZDUSD"},
    "yen": {"USDJPY", "EURJPY", "GBPJPY"},
}

INTRA_USD_QUOTE_CORR = 0.6  # Dollar weakness lifts all of them
INTRA_YEN_CORR = 0.5
CROSS_GROUP_CORR = 0.2
GOLD_CORR = 0.1  # XAUUSD mostly does its own thing

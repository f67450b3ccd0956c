from __future__ import annotations

import random
from typing import Dict, Optional, Tuple

from modules.market_data.models import SYNTHETIC_SOURCE, PricePoint

DEFAULT_BASELINE = 100.0
DEFAULT_VOLUME_RANGE: Tuple[int, int] = (1_000_000, 10_000_000)

# Reference levels, January 2025.
BASE_PRICES: Dict[str, float] = {
    # Index ETFs
    "SPY": 598.45,
    "QQQ": 515.2,
    "VIX": 16.25,
    # Single names
    "AAPL": 225.8,
    "NVDA": 145.5,
    "MSFT": 445.2,
    "GOOGL": 185.4,
    "AMZN": 220.15,
    "TSLA": 415.3,
    "META": 595.8,
    "JPM": 245.6,
    "JNJ": 148.9,
    "V": 315.4,
    "XOM": 118.75,
    "BRK.B": 465.2,
    "TSM": 205.3,
    "ASML": 715.6,
}

VOLUME_RANGES: Dict[str, Tuple[int, int]] = {
    "SPY": (50_000_000, 120_000_000),
    "QQQ": (30_000_000, 80_000_000),
    "AAPL": (40_000_000, 100_000_000),
    "NVDA": (200_000_000, 500_000_000),
    "TSLA": (80_000_000, 200_000_000),
    "MSFT": (20_000_000, 50_000_000),
    "GOOGL": (15_000_000, 35_000_000),
    "AMZN": (25_000_000, 60_000_000),
}

VOLATILITY_INDEX = 0.08
HIGH_BETA = ("TSLA", "NVDA", "META")
HIGH_BETA_VOL = 0.03
INDEX_ETFS = ("SPY", "QQQ")
INDEX_ETF_VOL = 0.008
DEFAULT_VOL = 0.015


def baseline_price(symbol: str) -> float:
    return BASE_PRICES.get(symbol.upper(), DEFAULT_BASELINE)


def volatility_for(symbol: str) -> float:
    sym = symbol.upper()
    if sym == "VIX":
        return VOLATILITY_INDEX
    if sym in HIGH_BETA:
        return HIGH_BETA_VOL
    if sym in INDEX_ETFS:
        return INDEX_ETF_VOL
    return DEFAULT_VOL


def volume_range(symbol: str) -> Tuple[int, int]:
    return VOLUME_RANGES.get(symbol.upper(), DEFAULT_VOLUME_RANGE)


class SyntheticPriceGenerator:
    """
    Plausible fallback quotes.

    The shape is fixed (baseline table, class volatility, volume ranges);
    values come from the injected RNG, so a seeded ``random.Random`` gives
    reproducible output.

    drift_mode:
    - "walk": the new price moves off the previous cached price.
    - "baseline": every tick moves off the static baseline.
    Change fields are always measured against the static baseline.
    """

    def __init__(self, rng: Optional[random.Random] = None, drift_mode: str = "walk"):
        self.rng = rng or random.Random()
        self.drift_mode = drift_mode

    def movement(self, symbol: str) -> float:
        return (self.rng.random() - 0.5) * volatility_for(symbol) * 2

    def volume(self, symbol: str) -> int:
        low, high = volume_range(symbol)
        return int(self.rng.random() * (high - low) + low)

    def generate(self, symbol: str, previous: Optional[PricePoint] = None) -> PricePoint:
        sym = symbol.upper()
        base = baseline_price(sym)
        anchor = base
        if self.drift_mode == "walk" and previous is not None and previous.price > 0:
            anchor = previous.price
        price = anchor * (1 + self.movement(sym))
        return PricePoint.from_reference(
            symbol=sym,
            price=price,
            reference=base,
            volume=self.volume(sym),
            source=SYNTHETIC_SOURCE,
        )

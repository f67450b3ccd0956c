from __future__ import annotations

from typing import Optional

from modules.market_data.aggregator import MarketDataAggregator
from modules.market_data.config import FeedConfig

_AGGREGATOR: Optional[MarketDataAggregator] = None


def get_aggregator() -> MarketDataAggregator:
    """Process-wide aggregator, built from the environment on first use."""
    global _AGGREGATOR
    if _AGGREGATOR is None:
        _AGGREGATOR = MarketDataAggregator(FeedConfig.from_env())
    return _AGGREGATOR


def set_aggregator(aggregator: Optional[MarketDataAggregator]) -> None:
    global _AGGREGATOR
    _AGGREGATOR = aggregator

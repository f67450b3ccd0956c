from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from modules.market_data.models import EconomicIndicator, now_ms


@dataclass(frozen=True)
class IndicatorBand:
    key: str
    name: str
    value: float
    change: float
    status: str
    step: float
    floor: float
    ceiling: float
    classify: Optional[Callable[[float], str]] = None


def vix_status(value: float) -> str:
    if value < 18:
        return "low"
    if value > 25:
        return "high"
    return "neutral"


INDICATOR_BANDS: List[IndicatorBand] = [
    IndicatorBand("VIX", "VIX", 16.25, -0.85, "low", step=0.3, floor=12.0, ceiling=35.0, classify=vix_status),
    IndicatorBand("10Y_TREASURY", "10Y Treasury", 4.28, 0.03, "neutral", step=0.03, floor=3.5, ceiling=5.0),
    IndicatorBand("DXY", "DXY", 104.12, 0.18, "neutral", step=0.15, floor=100.0, ceiling=108.0),
    IndicatorBand("GOLD", "Gold", 2038.5, -8.3, "high", step=8.0, floor=1900.0, ceiling=2100.0),
]


class IndicatorBoard:
    """Live economic indicator records, one per key, mutated in place each tick."""

    def __init__(self, rng: Optional[random.Random] = None, bands: Optional[List[IndicatorBand]] = None):
        self.rng = rng or random.Random()
        self.bands: Dict[str, IndicatorBand] = {band.key: band for band in (bands or INDICATOR_BANDS)}
        self.records: Dict[str, EconomicIndicator] = {
            band.key: EconomicIndicator(
                name=band.name,
                value=band.value,
                change=band.change,
                status=band.status,
            )
            for band in self.bands.values()
        }

    def tick(self) -> None:
        stamp = now_ms()
        for key, record in self.records.items():
            band = self.bands[key]
            delta = (self.rng.random() - 0.5) * band.step
            record.value = max(band.floor, min(band.ceiling, record.value + delta))
            record.change = delta
            record.timestamp = stamp
            if band.classify is not None:
                record.status = band.classify(record.value)

    def get(self, key: str) -> Optional[EconomicIndicator]:
        return self.records.get(key)

    def snapshot(self) -> List[EconomicIndicator]:
        return [record.model_copy() for record in self.records.values()]

from __future__ import annotations

import time
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

PriceSource = Literal["alpha_vantage", "polygon", "finnhub", "yahoo", "mock"]
Sentiment = Literal["positive", "negative", "neutral"]
Impact = Literal["high", "medium", "low"]
IndicatorStatus = Literal["high", "low", "neutral"]

SYNTHETIC_SOURCE = "mock"


def now_ms() -> int:
    return int(time.time() * 1000)


class PricePoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    price: float
    change: float
    change_percent: float = Field(..., alias="changePercent")
    volume: int = 0
    timestamp: int = Field(default_factory=now_ms)
    source: PriceSource

    @classmethod
    def from_reference(
        cls,
        symbol: str,
        price: float,
        reference: float,
        volume: int,
        source: str,
        timestamp: int | None = None,
    ) -> "PricePoint":
        """Build a point whose change fields are measured against ``reference``."""
        price = round(price, 2)
        change = round(price - reference, 2)
        pct = (change / reference) * 100 if reference else 0.0
        return cls(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=round(pct, 2),
            volume=int(volume or 0),
            timestamp=timestamp if timestamp is not None else now_ms(),
            source=source,
        )

    @property
    def is_synthetic(self) -> bool:
        return self.source == SYNTHETIC_SOURCE

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class NewsItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str
    summary: str
    source: str
    timestamp: int
    relevant_symbols: List[str] = Field(default_factory=list, alias="relevantSymbols")
    sentiment: Sentiment = "neutral"
    impact: Impact = "low"

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EconomicIndicator(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    name: str
    value: float
    change: float
    timestamp: int = Field(default_factory=now_ms)
    status: IndicatorStatus = "neutral"

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

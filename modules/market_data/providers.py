from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Optional

import finnhub
import httpx
import yfinance as yf

from modules.market_data.config import FeedConfig
from modules.market_data.models import PricePoint
from modules.market_data.synthetic import SyntheticPriceGenerator

logger = logging.getLogger(__name__)

# Suppress yfinance and urllib3 noise
logging.getLogger("yfinance").setLevel(logging.CRITICAL)
logging.getLogger("urllib3").setLevel(logging.CRITICAL)


class ProviderError(Exception):
    """A provider answered, but not with a usable quote."""


def _safe_float(value: Any) -> Optional[float]:
    """Float or None; NaN and infinities count as missing."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def is_usable_quote(point: Optional[PricePoint]) -> bool:
    if point is None:
        return False
    return all(math.isfinite(value) for value in (point.price, point.change, point.change_percent))


class PriceProvider:
    """One stage of the provider chain.

    ``fetch`` returns a normalized PricePoint or None. It never raises:
    transport errors, non-2xx statuses and malformed payloads are logged,
    recorded in ``health`` and reported as None so the chain moves on.
    """

    name = "base"
    label = "Base"

    def __init__(self) -> None:
        self.health: Dict[str, Any] = {
            "last_ok": None,
            "last_fail": None,
            "fail_count": 0,
            "last_error": None,
        }

    @property
    def configured(self) -> bool:
        return True

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        raise NotImplementedError

    async def fetch(self, symbol: str) -> Optional[PricePoint]:
        if not self.configured:
            return None
        try:
            point = await self.quote(symbol)
        except (httpx.HTTPError, ProviderError, ValueError, KeyError, TypeError) as exc:
            self._record_failure(exc)
            logger.debug("%s quote failed for %s: %s", self.label, symbol, exc)
            return None
        except Exception as exc:
            self._record_failure(exc)
            logger.warning("%s quote error for %s: %s", self.label, symbol, exc)
            return None
        if point is None:
            self._record_failure(ProviderError("empty quote"))
            return None
        if not is_usable_quote(point):
            self._record_failure(ProviderError("non-finite quote"))
            logger.debug("%s returned a non-finite quote for %s", self.label, symbol)
            return None
        self._record_success()
        return point

    def _record_success(self) -> None:
        self.health["last_ok"] = int(time.time())
        self.health["fail_count"] = 0
        self.health["last_error"] = None

    def _record_failure(self, exc: Exception) -> None:
        self.health["last_fail"] = int(time.time())
        self.health["fail_count"] = int(self.health.get("fail_count", 0) or 0) + 1
        self.health["last_error"] = str(exc)[:200]

    def status(self) -> Dict[str, Any]:
        if not self.configured:
            state = "unconfigured"
        elif self.health["fail_count"]:
            state = "degraded"
        elif self.health["last_ok"]:
            state = "ok"
        else:
            state = "unknown"
        return {
            "id": self.name,
            "label": self.label,
            "configured": self.configured,
            "status": state,
            "health": dict(self.health),
        }


class HttpPriceProvider(PriceProvider):
    def __init__(self, client: httpx.AsyncClient, api_key: Optional[str] = None):
        super().__init__()
        self.client = client
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await self.client.get(url, params=params)
        if resp.status_code != 200:
            raise ProviderError(f"HTTP {resp.status_code}")
        return resp.json()


class AlphaVantageProvider(HttpPriceProvider):
    name = "alpha_vantage"
    label = "Alpha Vantage"
    BASE_URL = "https://www.alphavantage.co/query"

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        payload = await self._get_json(
            self.BASE_URL,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key},
        )
        quote = payload.get("Global Quote") if isinstance(payload, dict) else None
        if not quote or not quote.get("05. price"):
            return None
        pct_raw = str(quote.get("10. change percent") or "0").replace("%", "")
        return PricePoint(
            symbol=symbol,
            price=float(quote["05. price"]),
            change=float(quote.get("09. change") or 0.0),
            change_percent=float(pct_raw),
            volume=int(float(quote.get("06. volume") or 0)),
            source=self.name,
        )


class PolygonProvider(HttpPriceProvider):
    name = "polygon"
    label = "Polygon.io"
    BASE_URL = "https://api.polygon.io/v2/aggs/ticker/{symbol}/prev"

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        payload = await self._get_json(
            self.BASE_URL.format(symbol=symbol),
            params={"adjusted": "true", "apikey": self.api_key},
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            return None
        row = results[0]
        close = _safe_float(row.get("c"))
        open_ = _safe_float(row.get("o"))
        if close is None or not open_:
            return None
        return PricePoint.from_reference(
            symbol=symbol,
            price=close,
            reference=open_,
            volume=int(row.get("v") or 0),
            source=self.name,
        )


class FinnhubProvider(PriceProvider):
    name = "finnhub"
    label = "Finnhub"

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        self.api_key = api_key
        self.client = finnhub.Client(api_key=api_key) if api_key else None

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        data = await asyncio.to_thread(self.client.quote, symbol)
        if not isinstance(data, dict) or data.get("c") is None:
            return None
        if data.get("c") == 0 and data.get("d") == 0:
            return None
        return PricePoint(
            symbol=symbol,
            price=round(float(data["c"]), 2),
            change=round(float(data.get("d") or 0.0), 2),
            change_percent=round(float(data.get("dp") or 0.0), 2),
            volume=0,
            source=self.name,
        )


class YahooProvider(PriceProvider):
    """Unauthenticated Yahoo Finance quotes through yfinance."""

    name = "yahoo"
    label = "Yahoo Finance"

    @staticmethod
    def _fast_info(symbol: str) -> Dict[str, Any]:
        info = yf.Ticker(symbol).fast_info
        return {
            "last_price": info.last_price,
            "previous_close": info.previous_close,
            "last_volume": info.last_volume,
        }

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        info = await asyncio.to_thread(self._fast_info, symbol)
        previous_close = _safe_float(info.get("previous_close"))
        price = _safe_float(info.get("last_price")) or previous_close
        if price is None or not previous_close:
            return None
        return PricePoint.from_reference(
            symbol=symbol,
            price=price,
            reference=previous_close,
            volume=int(_safe_float(info.get("last_volume")) or 0),
            source=self.name,
        )


class SyntheticProvider(PriceProvider):
    """Tail of the chain. Always answers."""

    name = "mock"
    label = "Synthetic"

    def __init__(self, generator: SyntheticPriceGenerator):
        super().__init__()
        self.generator = generator

    async def quote(self, symbol: str) -> Optional[PricePoint]:
        return self.generator.generate(symbol)

    def generate(self, symbol: str, previous: Optional[PricePoint] = None) -> PricePoint:
        point = self.generator.generate(symbol, previous=previous)
        self._record_success()
        return point


def build_default_chain(config: FeedConfig, client: httpx.AsyncClient) -> List[PriceProvider]:
    """Live providers in priority order. The synthetic tail is owned by the aggregator."""
    return [
        AlphaVantageProvider(client, config.alpha_vantage_key),
        PolygonProvider(client, config.polygon_key),
        FinnhubProvider(config.finnhub_key),
        YahooProvider(),
    ]

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

import httpx

from modules.market_data.config import INDEX_SYMBOLS, FeedConfig
from modules.market_data.indicators import IndicatorBoard
from modules.market_data.models import EconomicIndicator, NewsItem, PricePoint
from modules.market_data.news import NewsApiSource, generate_mock_news
from modules.market_data.providers import (
    HttpPriceProvider,
    PriceProvider,
    SyntheticProvider,
    build_default_chain,
    is_usable_quote,
)
from modules.market_data.synthetic import SyntheticPriceGenerator

logger = logging.getLogger(__name__)

PriceCallback = Callable[[PricePoint], None]
Unsubscribe = Callable[[], None]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class MarketDataAggregator:
    """
    Best-effort price, news and indicator data for a watch-list.

    Prices come from an ordered provider chain; the first provider with a
    usable quote wins and a synthetic generator closes the chain, so every
    request yields a PricePoint. Consumers can only tell live from
    synthetic data through ``PricePoint.source``.

    All state lives on this object. It is meant to run on a single asyncio
    loop; per-symbol locks serialize fetches so overlapping ticks for the
    same symbol cannot interleave.
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        providers: Optional[List[PriceProvider]] = None,
        news_source: Optional[NewsApiSource] = None,
        indicators: Optional[IndicatorBoard] = None,
        rng: Optional[random.Random] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or FeedConfig()
        self.rng = rng or random.Random(self.config.seed)
        self._clock = clock

        self._client = client
        self._owns_client = False
        if client is None and (providers is None or news_source is None):
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
            self._owns_client = True

        self.providers: List[PriceProvider] = (
            list(providers) if providers is not None else build_default_chain(self.config, self._client)
        )
        self.synthetic = SyntheticProvider(SyntheticPriceGenerator(self.rng, self.config.drift_mode))
        self.news_source = news_source or NewsApiSource(self._client, self.config.news_api_key)
        self.indicators = indicators or IndicatorBoard(self.rng)

        self._cache: Dict[str, PricePoint] = {}
        self._subscribers: Dict[str, Dict[int, PriceCallback]] = {}
        self._tokens = itertools.count(1)
        self._last_fetch: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._news: List[NewsItem] = []
        self._tasks: List[asyncio.Task] = []
        self._pending: Set[asyncio.Task] = set()

    # ----------------------- Public API -----------------------

    @property
    def watchlist(self) -> List[str]:
        return list(self.config.watchlist)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def subscribe(self, symbol: str, callback: PriceCallback) -> Unsubscribe:
        """
        Register ``callback`` for every future PricePoint of ``symbol``.

        A cached point is delivered on the next loop iteration; without one
        a fetch is scheduled and its result delivered. Outside a running
        loop the first delivery is synchronous with a synthetic point. The
        returned handle detaches the callback and is safe to call twice.
        """
        sym = symbol.strip().upper()
        token = next(self._tokens)
        self._subscribers.setdefault(sym, {})[token] = callback

        cached = self._cache.get(sym)
        loop = _running_loop()
        if cached is not None:
            if loop is not None:
                loop.call_soon(self._deliver, sym, token, cached)
            else:
                self._deliver(sym, token, cached)
        elif loop is not None:
            task = loop.create_task(self._initial_fetch(sym))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            point = self.synthetic.generate(sym)
            self._cache[sym] = point
            self._deliver(sym, token, point)

        def unsubscribe() -> None:
            subs = self._subscribers.get(sym)
            if subs is None:
                return
            subs.pop(token, None)
            if not subs:
                self._subscribers.pop(sym, None)

        return unsubscribe

    def get_current_price(self, symbol: str) -> Optional[PricePoint]:
        return self._cache.get(symbol.strip().upper())

    def get_market_news(self) -> List[NewsItem]:
        return list(self._news)

    def get_economic_indicators(self) -> List[EconomicIndicator]:
        return self.indicators.snapshot()

    def get_market_indices(self) -> List[PricePoint]:
        return [
            self._cache.get(sym) or self.synthetic.generator.generate(sym)
            for sym in INDEX_SYMBOLS
        ]

    def subscriber_count(self, symbol: str) -> int:
        return len(self._subscribers.get(symbol.strip().upper(), {}))

    def provider_status(self) -> List[Dict[str, object]]:
        return [provider.status() for provider in self.providers] + [self.synthetic.status()]

    async def fetch_price(self, symbol: str) -> PricePoint:
        point, _ = await self._fetch(symbol.strip().upper())
        return point

    # ----------------------- Polling -----------------------

    async def refresh_prices(self) -> None:
        symbols = self.watchlist
        size = self.config.batch_size
        batches = [symbols[i:i + size] for i in range(0, len(symbols), size)]
        for idx, batch in enumerate(batches):
            await asyncio.gather(*(self._fetch(sym) for sym in batch))
            if idx < len(batches) - 1 and self.config.batch_delay > 0:
                await asyncio.sleep(self.config.batch_delay)

    async def refresh_news(self) -> None:
        self._reopen_client()
        try:
            items = await self.news_source.fetch()
        except Exception as exc:
            logger.warning("News refresh failed: %s", exc)
            items = generate_mock_news()
        self._news = list(items)

    def tick_indicators(self) -> None:
        self.indicators.tick()

    async def start(self) -> None:
        if self.running:
            return
        self._reopen_client()
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._price_loop(), name="market-prices"),
            loop.create_task(self._news_loop(), name="market-news"),
        ]
        logger.info(
            "Market data polling started (%d symbols, prices every %ss, news every %ss)",
            len(self.config.watchlist),
            self.config.price_interval,
            self.config.news_interval,
        )

    async def stop(self) -> None:
        tasks = self._tasks + list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
        self._pending.clear()
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _price_loop(self) -> None:
        while True:
            try:
                await self.refresh_prices()
                self.tick_indicators()
            except Exception:
                logger.exception("Price refresh tick failed")
            await asyncio.sleep(self.config.price_interval)

    async def _news_loop(self) -> None:
        while True:
            await self.refresh_news()
            await asyncio.sleep(self.config.news_interval)

    # ----------------------- Internals -----------------------

    def _reopen_client(self) -> None:
        """Swap a closed owned client for a fresh one on every stage that shared it."""
        old = self._client
        if not self._owns_client or old is None or not old.is_closed:
            return
        self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        for provider in self.providers:
            if isinstance(provider, HttpPriceProvider) and provider.client is old:
                provider.client = self._client
        if getattr(self.news_source, "client", None) is old:
            self.news_source.client = self._client
        logger.debug("Reopened market data HTTP client")

    def _lock_for(self, symbol: str) -> asyncio.Lock:
        lock = self._locks.get(symbol)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[symbol] = lock
        return lock

    async def _fetch(self, symbol: str) -> Tuple[PricePoint, bool]:
        """Return ``(point, fresh)``; cooldown hits reuse the cache and skip fan-out."""
        async with self._lock_for(symbol):
            now = self._clock()
            cached = self._cache.get(symbol)
            last = self._last_fetch.get(symbol)
            if cached is not None and last is not None and (now - last) < self.config.cooldown:
                return cached, False
            point = await self._run_chain(symbol)
            self._last_fetch[symbol] = now
            self._store(point)
            return point, True

    async def _run_chain(self, symbol: str) -> PricePoint:
        self._reopen_client()
        for provider in self.providers:
            try:
                point = await provider.fetch(symbol)
            except Exception as exc:
                logger.warning("Provider %s raised for %s: %s", provider.name, symbol, exc)
                continue
            if is_usable_quote(point):
                if point.symbol != symbol:
                    point = point.model_copy(update={"symbol": symbol})
                return point
        logger.debug("All providers exhausted for %s; using synthetic quote", symbol)
        return self.synthetic.generate(symbol, previous=self._cache.get(symbol))

    async def _initial_fetch(self, symbol: str) -> None:
        # Any cache write after registration went through _store, which already notified.
        await self._fetch(symbol)

    def _store(self, point: PricePoint) -> None:
        self._cache[point.symbol] = point
        for token in list(self._subscribers.get(point.symbol, {})):
            self._deliver(point.symbol, token, point)

    def _deliver(self, symbol: str, token: int, point: PricePoint) -> None:
        callback = self._subscribers.get(symbol, {}).get(token)
        if callback is None:
            return
        try:
            callback(point)
        except Exception:
            logger.exception("Subscriber callback failed for %s", symbol)

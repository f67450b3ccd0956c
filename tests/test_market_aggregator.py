import asyncio
from unittest import mock

import httpx

from market_fakes import FakeClock, ScriptedProvider, StaticNews, drain, make_aggregator
from modules.market_data.aggregator import MarketDataAggregator
from modules.market_data.config import FeedConfig
from modules.market_data.providers import YahooProvider


def test_subscribe_unknown_symbol_falls_back_when_every_provider_fails():
    providers = [
        ScriptedProvider("alpha_vantage", error=httpx.ConnectError("offline")),
        ScriptedProvider("polygon", error=ValueError("bad json")),
        ScriptedProvider("yahoo", price=None),
    ]
    aggregator = make_aggregator(providers=providers)
    received = []

    async def scenario():
        aggregator.subscribe("zzzz", received.append)
        await drain(aggregator)

    asyncio.run(scenario())
    assert len(received) == 1
    point = received[0]
    assert point.symbol == "ZZZZ"
    assert point.source == "mock"
    assert 98.5 <= point.price <= 101.5
    assert aggregator.get_current_price("ZZZZ") == point
    assert all(provider.calls == ["ZZZZ"] for provider in providers)
    assert providers[0].health["fail_count"] == 1


def test_first_valid_provider_wins_and_rest_are_skipped():
    empty = ScriptedProvider("alpha_vantage", price=None)
    winner = ScriptedProvider("polygon", price=50.0)
    later = ScriptedProvider("yahoo", price=70.0)
    aggregator = make_aggregator(providers=[empty, winner, later])

    point = asyncio.run(aggregator.fetch_price("aapl"))
    assert point.source == "polygon"
    assert point.price == 50.0
    assert point.change == 1.0
    assert later.calls == []


def test_unconfigured_stage_is_skipped_silently():
    keyless = ScriptedProvider("alpha_vantage", price=10.0, configured=False)
    public = ScriptedProvider("yahoo", price=20.0)
    aggregator = make_aggregator(providers=[keyless, public])

    point = asyncio.run(aggregator.fetch_price("MSFT"))
    assert point.source == "yahoo"
    assert keyless.calls == []
    assert keyless.health["fail_count"] == 0


def test_cooldown_reuses_cached_value():
    clock = FakeClock(100.0)
    provider = ScriptedProvider("polygon", price=10.0)
    aggregator = make_aggregator(providers=[provider], clock=clock, cooldown=5.0)

    async def scenario():
        first = await aggregator.fetch_price("SPY")
        clock.now = 103.0
        second = await aggregator.fetch_price("SPY")
        clock.now = 106.0
        third = await aggregator.fetch_price("SPY")
        return first, second, third

    first, second, third = asyncio.run(scenario())
    assert second is first
    assert third is not first
    assert provider.calls == ["SPY", "SPY"]


def test_cached_value_delivered_on_next_iteration():
    aggregator = make_aggregator(providers=[ScriptedProvider("polygon", price=12.0)])
    received = []

    async def scenario():
        await aggregator.fetch_price("QQQ")
        aggregator.subscribe("QQQ", received.append)
        assert received == []
        await asyncio.sleep(0)

    asyncio.run(scenario())
    assert len(received) == 1
    assert received[0] == aggregator.get_current_price("QQQ")


def test_unsubscribe_is_idempotent_and_isolated():
    clock = FakeClock()
    aggregator = make_aggregator(providers=[ScriptedProvider("polygon", price=30.0)], clock=clock)
    first, second, third = [], [], []

    async def scenario():
        stop_first = aggregator.subscribe("TSLA", first.append)
        await drain(aggregator)
        aggregator.subscribe("TSLA", second.append)
        stop_first()
        stop_first()
        aggregator.subscribe("TSLA", third.append)
        await asyncio.sleep(0)
        clock.now += 60
        await aggregator.fetch_price("TSLA")

    asyncio.run(scenario())
    assert len(first) == 1
    assert len(second) == 2
    assert len(third) == 2
    assert aggregator.subscriber_count("TSLA") == 2


def test_failing_subscriber_does_not_block_others():
    aggregator = make_aggregator(providers=[ScriptedProvider("polygon", price=5.0)])
    order = []

    def broken(point):
        order.append("broken")
        raise RuntimeError("subscriber bug")

    async def scenario():
        aggregator.subscribe("META", broken)
        aggregator.subscribe("META", lambda point: order.append("healthy"))
        await aggregator.fetch_price("META")

    asyncio.run(scenario())
    assert order == ["broken", "healthy"]


def test_subscribe_outside_loop_delivers_synthetic_point():
    aggregator = make_aggregator(providers=[ScriptedProvider("polygon", price=99.0)])
    received = []

    aggregator.subscribe("AAPL", received.append)

    assert len(received) == 1
    assert received[0].source == "mock"
    assert 225.8 * 0.985 - 0.01 <= received[0].price <= 225.8 * 1.015 + 0.01
    assert aggregator.get_current_price("AAPL") == received[0]


def test_get_current_price_is_a_pure_cache_read():
    provider = ScriptedProvider("polygon", price=1.0)
    aggregator = make_aggregator(providers=[provider])
    assert aggregator.get_current_price("NVDA") is None
    assert provider.calls == []


def test_refresh_prices_covers_watchlist_in_batch_order():
    provider = ScriptedProvider("polygon", price=42.0)
    watchlist = ["SPY", "QQQ", "AAPL", "MSFT", "NVDA"]
    aggregator = make_aggregator(providers=[provider], watchlist=watchlist, batch_size=2)
    seen = []
    for sym in watchlist:
        aggregator.subscribe(sym, lambda point: seen.append(point.symbol))
    seen.clear()

    asyncio.run(aggregator.refresh_prices())
    assert provider.calls == watchlist
    assert seen == watchlist
    assert all(aggregator.get_current_price(sym).source == "polygon" for sym in watchlist)


def test_refresh_news_replaces_cache_and_falls_back():
    aggregator = make_aggregator(news=StaticNews())
    asyncio.run(aggregator.refresh_news())
    items = aggregator.get_market_news()
    assert len(items) == 5
    items.clear()
    assert len(aggregator.get_market_news()) == 5

    failing = make_aggregator(news=StaticNews(error=RuntimeError("down")))
    asyncio.run(failing.refresh_news())
    fallback = failing.get_market_news()
    assert len(fallback) == 5
    stamps = [item.timestamp for item in fallback]
    assert stamps == sorted(stamps, reverse=True)


def test_market_indices_do_not_populate_cache():
    aggregator = make_aggregator()
    indices = aggregator.get_market_indices()
    assert [point.symbol for point in indices] == ["SPY", "QQQ", "VIX"]
    assert all(point.source == "mock" for point in indices)
    assert aggregator.get_current_price("SPY") is None


def test_start_and_stop_run_background_loops():
    provider = ScriptedProvider("polygon", price=10.0)
    aggregator = make_aggregator(
        providers=[provider],
        watchlist=["SPY", "QQQ", "VIX"],
        price_interval=0.01,
        news_interval=0.01,
    )

    async def scenario():
        await aggregator.start()
        await aggregator.start()
        assert len(aggregator._tasks) == 2
        await asyncio.sleep(0.05)
        await aggregator.stop()

    asyncio.run(scenario())
    assert not aggregator.running
    assert aggregator.get_current_price("VIX").source == "polygon"
    assert aggregator.get_market_news()


def test_aapl_end_to_end_without_any_keys():
    config = FeedConfig(seed=1, batch_delay=0.0)
    received = []

    async def scenario():
        aggregator = MarketDataAggregator(config)
        try:
            aggregator.subscribe("AAPL", received.append)
            await drain(aggregator)
        finally:
            await aggregator.stop()
        return aggregator

    with mock.patch.object(YahooProvider, "_fast_info", side_effect=RuntimeError("offline")):
        aggregator = asyncio.run(scenario())

    assert len(received) == 1
    point = received[0]
    assert point.source == "mock"
    assert 225.8 * 0.985 - 0.01 <= point.price <= 225.8 * 1.015 + 0.01
    statuses = {status["id"]: status for status in aggregator.provider_status()}
    assert statuses["alpha_vantage"]["status"] == "unconfigured"
    assert statuses["yahoo"]["status"] == "degraded"


def test_concurrent_first_subscribers_get_one_delivery_each():
    provider = ScriptedProvider("polygon", price=15.0)
    aggregator = make_aggregator(providers=[provider])
    first, second = [], []

    async def scenario():
        aggregator.subscribe("AMZN", first.append)
        aggregator.subscribe("AMZN", second.append)
        await drain(aggregator)

    asyncio.run(scenario())
    assert len(first) == 1
    assert len(second) == 1
    assert provider.calls == ["AMZN"]


def test_non_finite_quote_falls_through_to_next_stage():
    broken = ScriptedProvider("yahoo", price=float("nan"))
    backup = ScriptedProvider("polygon", price=40.0)
    aggregator = make_aggregator(providers=[broken, backup])

    point = asyncio.run(aggregator.fetch_price("AAPL"))
    assert point.source == "polygon"
    assert point.price == 40.0
    assert broken.health["fail_count"] == 1


def test_restart_after_stop_hands_stages_a_fresh_client():
    config = FeedConfig(alpha_vantage_key="av", polygon_key="pk", news_api_key="news", batch_delay=0.0)

    async def scenario():
        aggregator = MarketDataAggregator(config)
        first = aggregator._client
        await aggregator.start()
        await aggregator.stop()
        assert first.is_closed
        assert aggregator.providers[0].client is first

        await aggregator.start()
        try:
            second = aggregator._client
            assert second is not first
            assert not second.is_closed
            assert aggregator.providers[0].client is second
            assert aggregator.providers[1].client is second
            assert aggregator.news_source.client is second
        finally:
            await aggregator.stop()
        assert second.is_closed

    asyncio.run(scenario())


def test_injected_client_is_never_closed_or_replaced():
    async def scenario():
        async with httpx.AsyncClient() as client:
            aggregator = MarketDataAggregator(FeedConfig(polygon_key="pk"), client=client)
            await aggregator.start()
            await aggregator.stop()
            assert not client.is_closed
            assert aggregator.providers[1].client is client

    asyncio.run(scenario())

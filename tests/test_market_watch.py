import asyncio

from rich.console import Console

from interfaces.market_watch import HISTORY_POINTS, MarketWatch, build_parser
from market_fakes import make_aggregator
from modules.market_data.models import PricePoint


def _point(symbol, price):
    return PricePoint.from_reference(symbol=symbol, price=price, reference=100.0, volume=10, source="polygon")


def test_on_price_keeps_bounded_history():
    watch = MarketWatch(make_aggregator(), symbols=["spy"])
    for step in range(HISTORY_POINTS + 5):
        watch.on_price(_point("SPY", 100.0 + step))
    assert len(watch.history["SPY"]) == HISTORY_POINTS
    assert watch.latest["SPY"].price == 100.0 + HISTORY_POINTS + 4


def test_attach_receives_synthetic_points_and_detach_unsubscribes():
    aggregator = make_aggregator()
    watch = MarketWatch(aggregator, symbols=["AAPL", "ZZZZ"])
    watch.attach()
    assert set(watch.latest) == {"AAPL", "ZZZZ"}
    watch.detach()
    assert aggregator.subscriber_count("AAPL") == 0


def test_render_shows_quotes_indicators_and_news():
    aggregator = make_aggregator()
    asyncio.run(aggregator.refresh_news())
    watch = MarketWatch(aggregator, symbols=["SPY", "QQQ"])
    watch.on_price(_point("SPY", 101.0))
    console = Console(record=True, width=160)
    console.print(watch.render())
    output = console.export_text()
    assert "Market Watch" in output
    assert "SPY" in output
    assert "pending" in output
    assert "10Y Treasury" in output
    assert "S&P 500" in output


def test_parser_defaults():
    args = build_parser().parse_args(["aapl", "--interval", "5"])
    assert args.symbols == ["aapl"]
    assert args.interval == 5.0
    assert args.seed is None

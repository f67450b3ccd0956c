from __future__ import annotations

import argparse
import asyncio
from collections import deque
from typing import Deque, Dict, List, Optional

from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from modules.market_data.aggregator import MarketDataAggregator
from modules.market_data.config import FeedConfig
from modules.market_data.models import EconomicIndicator, PricePoint
from utils.charts import ChartRenderer
from utils.logging_setup import configure_logging

HISTORY_POINTS = 30


class MarketWatch:
    """Live terminal view over an aggregator's subscriptions."""

    def __init__(self, aggregator: MarketDataAggregator, symbols: Optional[List[str]] = None):
        self.aggregator = aggregator
        self.symbols = [sym.upper() for sym in (symbols or aggregator.watchlist)]
        self.latest: Dict[str, PricePoint] = {}
        self.history: Dict[str, Deque[float]] = {}
        self._handles = []

    def on_price(self, point: PricePoint) -> None:
        self.latest[point.symbol] = point
        series = self.history.setdefault(point.symbol, deque(maxlen=HISTORY_POINTS))
        series.append(point.price)

    def attach(self) -> None:
        self._handles = [self.aggregator.subscribe(sym, self.on_price) for sym in self.symbols]

    def detach(self) -> None:
        for unsubscribe in self._handles:
            unsubscribe()
        self._handles = []

    def quotes_table(self) -> Table:
        table = Table(expand=True, box=box.MINIMAL_DOUBLE_HEAD)
        table.add_column("Trend", justify="center", width=5)
        table.add_column("Ticker", style="cyan", justify="left")
        table.add_column("Price", justify="right")
        table.add_column("Change", justify="right")
        table.add_column("% Chg", justify="right")
        table.add_column("Move", justify="center", width=10)
        table.add_column("Chart", justify="center", width=20, no_wrap=True)
        table.add_column("Vol", justify="right", style="dim")
        table.add_column("Source", justify="left")
        for sym in self.symbols:
            point = self.latest.get(sym)
            if point is None:
                table.add_row("", sym, "…", "", "", "", "", "", Text("pending", style="dim"))
                continue
            color = "green" if point.change >= 0 else "red"
            table.add_row(
                ChartRenderer.trend_arrow(point.change),
                sym,
                f"{point.price:,.2f}",
                Text(f"{point.change:+,.2f}", style=color),
                Text(f"{point.change_percent:+.2f}%", style=color),
                ChartRenderer.move_bar(point.change_percent),
                ChartRenderer.price_sparkline(self.history.get(sym, ()), width=20),
                f"{point.volume:,}",
                ChartRenderer.source_badge(point.source),
            )
        return table

    @staticmethod
    def indicators_table(indicators: List[EconomicIndicator]) -> Table:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold cyan")
        table.add_column(justify="right")
        table.add_column(justify="right")
        table.add_column()
        for indicator in indicators:
            color = "green" if indicator.change >= 0 else "red"
            table.add_row(
                indicator.name,
                f"{indicator.value:,.2f}",
                Text(f"{indicator.change:+.3f}", style=color),
                ChartRenderer.status_text(indicator.status),
            )
        return table

    def render(self) -> Panel:
        headlines = Text()
        for item in self.aggregator.get_market_news()[:3]:
            headlines.append(f"[{item.impact}] ", style="bold gold1")
            headlines.append(f"{item.title}\n", style="white")
        return Panel(
            Group(
                self.quotes_table(),
                Panel(self.indicators_table(self.aggregator.get_economic_indicators()), title="Macro", border_style="blue"),
                Panel(headlines or Text("No headlines yet.", style="dim"), title="News", border_style="dim"),
            ),
            border_style="yellow",
            title="[bold]Market Watch[/bold]",
        )

    async def run(self, refresh_per_second: float = 2.0, console: Optional[Console] = None) -> None:
        await self.aggregator.start()
        self.attach()
        try:
            with Live(self.render(), console=console or Console(), refresh_per_second=refresh_per_second) as live:
                while True:
                    await asyncio.sleep(1.0 / refresh_per_second)
                    live.update(self.render())
        finally:
            self.detach()
            await self.aggregator.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live market watch in the terminal.")
    parser.add_argument("symbols", nargs="*", help="Symbols to watch (defaults to the configured watch-list).")
    parser.add_argument("--interval", type=float, default=None, help="Price polling interval in seconds.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for synthetic prices.")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    config = FeedConfig.from_env()
    overrides = {}
    if args.interval is not None:
        overrides["price_interval"] = max(1.0, args.interval)
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.symbols:
        overrides["watchlist"] = [sym.upper() for sym in args.symbols]
    if overrides:
        config = config.with_overrides(**overrides)
    watch = MarketWatch(MarketDataAggregator(config))
    try:
        asyncio.run(watch.run())
    except KeyboardInterrupt:
        Console().print("\n[bold red]>> Market watch closed.[/bold red]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from typing import Sequence

from rich.text import Text

SPARK_LEVELS = " ▂▃▄▅▆▇█"
FLAT = "─"

SOURCE_STYLES = {
    "alpha_vantage": "bold cyan",
    "polygon": "bold magenta",
    "finnhub": "bold blue",
    "yahoo": "bold green",
    "mock": "dim yellow",
}

STATUS_STYLES = {
    "high": "bold red",
    "low": "bold green",
    "neutral": "white",
}


def _direction_style(delta: float) -> str:
    return "bold green" if delta >= 0 else "bold red"


class ChartRenderer:
    """
    Text visualizations for the quote watch view.

    Everything returns a rich ``Text`` so cells can be dropped straight
    into a ``Table`` row.
    """

    @staticmethod
    def price_sparkline(prices: Sequence[float], width: int = 20) -> Text:
        """
        One glyph per price over the last ``width`` points, colored by the
        net move across the window.
        """
        window = list(prices)[-width:]
        if len(window) < 2:
            return Text(FLAT * width, style="dim")
        low, high = min(window), max(window)
        if high == low:
            return Text(FLAT * len(window), style="white")
        top = len(SPARK_LEVELS) - 1
        glyphs = "".join(SPARK_LEVELS[int((price - low) / (high - low) * top)] for price in window)
        return Text(glyphs, style=_direction_style(window[-1] - window[0]))

    @staticmethod
    def move_bar(change_percent: float, width: int = 10, full_scale: float = 3.0) -> Text:
        """Fixed-width bar; a move of ``full_scale`` percent fills it."""
        try:
            pct = float(change_percent)
        except (TypeError, ValueError):
            pct = 0.0
        share = min(abs(pct) / full_scale, 1.0) if full_scale > 0 else 0.0
        filled = int(round(share * width))
        bar = Text("█" * filled, style="green" if pct >= 0 else "red")
        bar.append("░" * (width - filled), style="dim")
        return bar

    @staticmethod
    def trend_arrow(change: float) -> Text:
        if change == 0:
            return Text("▶", style="dim white")
        return Text("▲" if change > 0 else "▼", style=_direction_style(change))

    @staticmethod
    def source_badge(source: str) -> Text:
        return Text(str(source or "?"), style=SOURCE_STYLES.get(source, "white"))

    @staticmethod
    def status_text(status: str) -> Text:
        return Text(str(status or "").upper(), style=STATUS_STYLES.get(status, "dim"))

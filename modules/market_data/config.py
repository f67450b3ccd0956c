from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_WATCHLIST = ["SPY", "QQQ", "VIX", "AAPL", "NVDA", "MSFT", "GOOGL", "AMZN", "TSLA", "META"]
INDEX_SYMBOLS = ["SPY", "QQQ", "VIX"]
DRIFT_MODES = ("walk", "baseline")
SETTINGS_PATH = os.path.join("config", "settings.json")
# Must stay above zero; a zero interval turns a polling loop into a spin.
POSITIVE_FIELDS = ("price_interval", "news_interval", "cooldown", "http_timeout")


def _env_list(key: str) -> List[str]:
    return [item.strip().upper() for item in os.getenv(key, "").split(",") if item.strip()]


def _load_settings_section(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable settings file %s (%s)", path, exc)
        return {}
    section = payload.get("market_data") if isinstance(payload, dict) else None
    return section if isinstance(section, dict) else {}


def _coerce(value: Any, cast, default, name: str):
    if value is None or value == "":
        return default
    try:
        result = cast(value)
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r, using %r", name, value, default)
        return default
    if isinstance(result, (int, float)) and result < 0:
        logger.warning("Negative value for %s: %r, using %r", name, value, default)
        return default
    return result


@dataclass
class FeedConfig:
    """Runtime knobs for the aggregator.

    Intervals are seconds. Provider keys switch chain stages on or off; a
    missing key is not an error, the stage is simply skipped.
    """

    alpha_vantage_key: Optional[str] = None
    polygon_key: Optional[str] = None
    finnhub_key: Optional[str] = None
    news_api_key: Optional[str] = None
    watchlist: List[str] = field(default_factory=lambda: list(DEFAULT_WATCHLIST))
    price_interval: float = 15.0
    news_interval: float = 600.0
    cooldown: float = 5.0
    batch_size: int = 2
    batch_delay: float = 2.0
    http_timeout: float = 8.0
    drift_mode: str = "walk"
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.drift_mode not in DRIFT_MODES:
            logger.warning("Unknown drift mode %r, using 'walk'", self.drift_mode)
            self.drift_mode = "walk"
        if self.batch_size < 1:
            self.batch_size = 1
        defaults = {item.name: item.default for item in fields(self)}
        for name in POSITIVE_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                logger.warning("Non-positive value for %s: %r, using %r", name, value, defaults[name])
                setattr(self, name, defaults[name])
        self.watchlist = [str(sym).strip().upper() for sym in self.watchlist if str(sym).strip()]

    @classmethod
    def from_env(cls, settings_path: str = SETTINGS_PATH) -> "FeedConfig":
        settings = _load_settings_section(settings_path)
        defaults = cls()

        def pick(env_key: str, settings_key: str, cast, default):
            raw = os.getenv(env_key)
            if raw in (None, ""):
                raw = settings.get(settings_key)
            return _coerce(raw, cast, default, env_key)

        watchlist = _env_list("MARKET_WATCHLIST")
        if not watchlist and isinstance(settings.get("watchlist"), list):
            watchlist = [str(sym).upper() for sym in settings["watchlist"]]

        return cls(
            alpha_vantage_key=os.getenv("ALPHA_VANTAGE_KEY") or None,
            polygon_key=os.getenv("POLYGON_KEY") or None,
            finnhub_key=os.getenv("FINNHUB_API_KEY") or None,
            news_api_key=os.getenv("NEWS_API_KEY") or None,
            watchlist=watchlist or list(DEFAULT_WATCHLIST),
            price_interval=pick("MARKET_PRICE_INTERVAL", "price_interval", float, defaults.price_interval),
            news_interval=pick("MARKET_NEWS_INTERVAL", "news_interval", float, defaults.news_interval),
            cooldown=pick("MARKET_COOLDOWN", "cooldown", float, defaults.cooldown),
            batch_size=pick("MARKET_BATCH_SIZE", "batch_size", int, defaults.batch_size),
            batch_delay=pick("MARKET_BATCH_DELAY", "batch_delay", float, defaults.batch_delay),
            http_timeout=pick("MARKET_HTTP_TIMEOUT", "http_timeout", float, defaults.http_timeout),
            drift_mode=str(os.getenv("MARKET_DRIFT_MODE") or settings.get("drift_mode") or defaults.drift_mode),
            seed=pick("MARKET_SEED", "seed", int, None),
        )

    def with_overrides(self, **changes: Any) -> "FeedConfig":
        return replace(self, **changes)

    def redacted(self) -> Dict[str, Any]:
        return {
            "credentials": {
                "alpha_vantage_key_set": bool(self.alpha_vantage_key),
                "polygon_key_set": bool(self.polygon_key),
                "finnhub_key_set": bool(self.finnhub_key),
                "news_api_key_set": bool(self.news_api_key),
            },
            "watchlist": list(self.watchlist),
            "price_interval": self.price_interval,
            "news_interval": self.news_interval,
            "cooldown": self.cooldown,
            "batch_size": self.batch_size,
            "batch_delay": self.batch_delay,
            "http_timeout": self.http_timeout,
            "drift_mode": self.drift_mode,
            "seeded": self.seed is not None,
        }

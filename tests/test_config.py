import json

import pytest

from modules.market_data.config import DEFAULT_WATCHLIST, FeedConfig

ENV_KEYS = [
    "ALPHA_VANTAGE_KEY",
    "POLYGON_KEY",
    "FINNHUB_API_KEY",
    "NEWS_API_KEY",
    "MARKET_WATCHLIST",
    "MARKET_PRICE_INTERVAL",
    "MARKET_NEWS_INTERVAL",
    "MARKET_COOLDOWN",
    "MARKET_BATCH_SIZE",
    "MARKET_BATCH_DELAY",
    "MARKET_HTTP_TIMEOUT",
    "MARKET_DRIFT_MODE",
    "MARKET_SEED",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults_without_env_or_settings(clean_env, tmp_path):
    config = FeedConfig.from_env(str(tmp_path / "missing.json"))
    assert config.watchlist == DEFAULT_WATCHLIST
    assert config.price_interval == 15.0
    assert config.news_interval == 600.0
    assert config.cooldown == 5.0
    assert config.batch_size == 2
    assert config.drift_mode == "walk"
    assert config.alpha_vantage_key is None
    assert config.seed is None


def test_env_overrides(clean_env, tmp_path):
    clean_env.setenv("POLYGON_KEY", "pk")
    clean_env.setenv("MARKET_WATCHLIST", "aapl, msft ,,spy")
    clean_env.setenv("MARKET_PRICE_INTERVAL", "30")
    clean_env.setenv("MARKET_BATCH_SIZE", "4")
    clean_env.setenv("MARKET_DRIFT_MODE", "baseline")
    clean_env.setenv("MARKET_SEED", "7")
    config = FeedConfig.from_env(str(tmp_path / "missing.json"))
    assert config.polygon_key == "pk"
    assert config.watchlist == ["AAPL", "MSFT", "SPY"]
    assert config.price_interval == 30.0
    assert config.batch_size == 4
    assert config.drift_mode == "baseline"
    assert config.seed == 7


def test_invalid_values_fall_back_to_defaults(clean_env, tmp_path):
    clean_env.setenv("MARKET_COOLDOWN", "soon")
    clean_env.setenv("MARKET_NEWS_INTERVAL", "-5")
    clean_env.setenv("MARKET_DRIFT_MODE", "sideways")
    config = FeedConfig.from_env(str(tmp_path / "missing.json"))
    assert config.cooldown == 5.0
    assert config.news_interval == 600.0
    assert config.drift_mode == "walk"


def test_settings_file_section_is_read(clean_env, tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"market_data": {"watchlist": ["nvda", "tsla"], "cooldown": 9, "batch_delay": 0.5}}),
        encoding="utf-8",
    )
    clean_env.setenv("MARKET_COOLDOWN", "3")
    config = FeedConfig.from_env(str(path))
    assert config.watchlist == ["NVDA", "TSLA"]
    assert config.cooldown == 3.0
    assert config.batch_delay == 0.5


def test_unreadable_settings_file_is_ignored(clean_env, tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    config = FeedConfig.from_env(str(path))
    assert config.watchlist == DEFAULT_WATCHLIST


def test_batch_size_floor_and_overrides():
    config = FeedConfig(batch_size=0)
    assert config.batch_size == 1
    faster = config.with_overrides(price_interval=1.0)
    assert faster.price_interval == 1.0
    assert config.price_interval == 15.0


def test_redacted_hides_credentials():
    payload = FeedConfig(alpha_vantage_key="secret", seed=3).redacted()
    assert payload["credentials"]["alpha_vantage_key_set"] is True
    assert payload["credentials"]["news_api_key_set"] is False
    assert payload["seeded"] is True
    assert "secret" not in json.dumps(payload)


def test_zero_intervals_are_rejected():
    config = FeedConfig(price_interval=0, news_interval=-1.0, cooldown=0.0, http_timeout=0)
    assert config.price_interval == 15.0
    assert config.news_interval == 600.0
    assert config.cooldown == 5.0
    assert config.http_timeout == 8.0
    assert FeedConfig(price_interval=0.01).price_interval == 0.01
    assert FeedConfig().with_overrides(price_interval=0).price_interval == 15.0


def test_zero_interval_from_env_uses_default(clean_env, tmp_path):
    clean_env.setenv("MARKET_PRICE_INTERVAL", "0")
    clean_env.setenv("MARKET_COOLDOWN", "0")
    config = FeedConfig.from_env(str(tmp_path / "missing.json"))
    assert config.price_interval == 15.0
    assert config.cooldown == 5.0

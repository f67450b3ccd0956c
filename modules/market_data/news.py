from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from modules.market_data.models import NewsItem, now_ms

logger = logging.getLogger(__name__)

NEWS_API_URL = "https://newsapi.org/v2/everything"
NEWS_QUERY = "(stock market OR S&P 500 OR nasdaq OR federal reserve OR earnings)"
NEWS_PAGE_SIZE = 15
MOCK_STAGGER_MS = 30 * 60 * 1000

KNOWN_SYMBOLS = ["AAPL", "NVDA", "MSFT", "GOOGL", "AMZN", "TSLA", "META", "JPM", "JNJ", "V", "XOM", "SPY", "QQQ"]

COMPANY_SYMBOLS: Dict[str, str] = {
    "apple": "AAPL",
    "nvidia": "NVDA",
    "microsoft": "MSFT",
    "google": "GOOGL",
    "alphabet": "GOOGL",
    "amazon": "AMZN",
    "tesla": "TSLA",
    "meta": "META",
    "facebook": "META",
    "jpmorgan": "JPM",
    "johnson": "JNJ",
    "visa": "V",
    "exxon": "XOM",
    "s&p": "SPY",
    "nasdaq": "QQQ",
}

POSITIVE_WORDS = ["growth", "profit", "beat", "strong", "bullish", "upgrade", "buy", "surge", "rally", "gains"]
NEGATIVE_WORDS = ["loss", "decline", "miss", "weak", "bearish", "downgrade", "sell", "crash", "fall", "drop"]

HIGH_IMPACT_WORDS = [
    "fed",
    "federal reserve",
    "earnings",
    "merger",
    "acquisition",
    "bankruptcy",
    "lawsuit",
    "rate cut",
    "inflation",
]
MEDIUM_IMPACT_WORDS = ["guidance", "forecast", "analyst", "rating", "target", "upgrade", "downgrade"]

MOCK_SOURCE = "Financial Times"
MOCK_HEADLINES: List[Dict[str, Any]] = [
    {
        "title": "S&P 500 Reaches New All-Time High as Tech Stocks Rally",
        "summary": "The S&P 500 index climbed to a fresh record as technology stocks led broad market gains",
        "relevant_symbols": ["SPY", "QQQ", "AAPL", "MSFT", "NVDA"],
        "impact": "high",
        "sentiment": "positive",
    },
    {
        "title": "Federal Reserve Officials Signal Cautious Approach to Rate Changes",
        "summary": "Fed policymakers indicate they will carefully monitor economic data before making rate decisions",
        "relevant_symbols": ["SPY", "QQQ", "JPM", "XOM"],
        "impact": "high",
        "sentiment": "neutral",
    },
    {
        "title": "NVIDIA Reports Strong AI Chip Demand in Latest Quarter",
        "summary": "Graphics chip maker sees continued growth in data center and AI applications",
        "relevant_symbols": ["NVDA", "AMD", "TSM"],
        "impact": "high",
        "sentiment": "positive",
    },
    {
        "title": "Apple iPhone Sales Show Resilience Despite Market Concerns",
        "summary": "Tech giant's latest smartphone lineup continues to perform well in key markets",
        "relevant_symbols": ["AAPL", "GOOGL", "MSFT"],
        "impact": "medium",
        "sentiment": "positive",
    },
    {
        "title": "Energy Sector Faces Headwinds as Oil Prices Fluctuate",
        "summary": "Major energy companies navigate volatile commodity markets and changing demand patterns",
        "relevant_symbols": ["XOM", "CVX", "COP"],
        "impact": "medium",
        "sentiment": "negative",
    },
]


def extract_symbols(text: str) -> List[str]:
    text_l = (text or "").lower()
    found: List[str] = []
    for symbol in KNOWN_SYMBOLS:
        if symbol.lower() in text_l and symbol not in found:
            found.append(symbol)
    for name, symbol in COMPANY_SYMBOLS.items():
        if name in text_l and symbol not in found:
            found.append(symbol)
    return found


def classify_sentiment(text: str) -> str:
    text_l = (text or "").lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in text_l)
    negative = sum(1 for word in NEGATIVE_WORDS if word in text_l)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def assess_impact(title: str) -> str:
    title_l = (title or "").lower()
    if any(word in title_l for word in HIGH_IMPACT_WORDS):
        return "high"
    if any(word in title_l for word in MEDIUM_IMPACT_WORDS):
        return "medium"
    return "low"


def _parse_published_ms(value: Optional[str], fallback: int) -> int:
    if not value:
        return fallback
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return fallback
    return int(parsed.timestamp() * 1000)


def article_to_item(article: Dict[str, Any], index: int, stamp: Optional[int] = None) -> Optional[NewsItem]:
    title = (article.get("title") or "").strip()
    description = (article.get("description") or "").strip()
    if not title or not description:
        return None
    stamp = stamp if stamp is not None else now_ms()
    source = article.get("source") or {}
    text = f"{title} {description}"
    return NewsItem(
        id=f"news_{stamp}_{index}",
        title=title,
        summary=description or title,
        source=str(source.get("name") or "Unknown") if isinstance(source, dict) else str(source),
        timestamp=_parse_published_ms(article.get("publishedAt"), stamp),
        relevant_symbols=extract_symbols(text),
        sentiment=classify_sentiment(text),
        impact=assess_impact(title),
    )


def generate_mock_news(now: Optional[int] = None) -> List[NewsItem]:
    now = now if now is not None else now_ms()
    return [
        NewsItem(
            id=f"mock_news_{now}_{index}",
            title=headline["title"],
            summary=headline["summary"],
            source=MOCK_SOURCE,
            timestamp=now - index * MOCK_STAGGER_MS,
            relevant_symbols=list(headline["relevant_symbols"]),
            sentiment=headline["sentiment"],
            impact=headline["impact"],
        )
        for index, headline in enumerate(MOCK_HEADLINES)
    ]


class NewsApiSource:
    """NewsAPI headlines with a canned fallback.

    ``fetch`` always returns a list: any failure, an empty article list or
    a missing key yields the canned headlines.
    """

    def __init__(self, client: httpx.AsyncClient, api_key: Optional[str] = None):
        self.client = client
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_live(self) -> List[NewsItem]:
        params = {
            "q": NEWS_QUERY,
            "sortBy": "publishedAt",
            "pageSize": NEWS_PAGE_SIZE,
            "language": "en",
            "apiKey": self.api_key,
        }
        resp = await self.client.get(NEWS_API_URL, params=params)
        if resp.status_code != 200:
            raise ValueError(f"NewsAPI HTTP {resp.status_code}")
        payload = resp.json()
        articles = payload.get("articles") if isinstance(payload, dict) else None
        stamp = now_ms()
        items: List[NewsItem] = []
        for index, article in enumerate(articles or []):
            if not isinstance(article, dict):
                continue
            item = article_to_item(article, index, stamp=stamp)
            if item is not None:
                items.append(item)
        return items

    async def fetch(self) -> List[NewsItem]:
        if self.configured:
            try:
                items = await self.fetch_live()
                if items:
                    return items
                logger.info("NewsAPI returned no usable articles; using canned headlines")
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("NewsAPI fetch failed: %s", exc)
        return generate_mock_news()

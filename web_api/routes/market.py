from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from modules.market_data.service import get_aggregator
from web_api.auth import require_api_key
from web_api.view_model import attach_meta, missing_fields, quote_payload, synthetic_warnings

router = APIRouter()


@router.get("/api/market-data")
@router.get("/market-data")
async def market_data_proxy(symbol: Optional[str] = Query(None)):
    """Server-side quote proxy. Always answers with a flat PricePoint."""
    if not symbol or not symbol.strip():
        return JSONResponse(status_code=400, content={"error": "Symbol is required"})
    point = await get_aggregator().fetch_price(symbol)
    return point.to_payload()


@router.get("/api/market/quote/{symbol}")
async def market_quote(
    symbol: str,
    refresh: bool = Query(False),
    _auth: None = Depends(require_api_key),
):
    aggregator = get_aggregator()
    point = None if refresh else aggregator.get_current_price(symbol)
    if point is None:
        point = await aggregator.fetch_price(symbol)
    return quote_payload(point, route="/api/market/quote")


@router.get("/api/market/indices")
def market_indices(_auth: None = Depends(require_api_key)):
    points = get_aggregator().get_market_indices()
    payload = {
        "count": len(points),
        "quotes": [point.to_payload() for point in points],
    }
    return attach_meta(
        payload,
        route="/api/market/indices",
        source="market",
        warnings=synthetic_warnings(points),
    )


@router.get("/api/market/news")
def market_news(
    limit: int = Query(20, ge=1, le=100),
    symbol: Optional[str] = Query(None),
    _auth: None = Depends(require_api_key),
):
    items = get_aggregator().get_market_news()
    if symbol:
        wanted = symbol.strip().upper()
        items = [item for item in items if wanted in item.relevant_symbols]
    payload = {
        "count": len(items[:limit]),
        "items": [item.to_payload() for item in items[:limit]],
    }
    warnings = missing_fields(payload, non_empty=("items",))
    return attach_meta(
        payload,
        route="/api/market/news",
        source="news",
        warnings=warnings,
    )


@router.get("/api/market/indicators")
def market_indicators(_auth: None = Depends(require_api_key)):
    indicators = get_aggregator().get_economic_indicators()
    payload = {
        "count": len(indicators),
        "indicators": [indicator.to_payload() for indicator in indicators],
    }
    return attach_meta(
        payload,
        route="/api/market/indicators",
        source="indicators",
    )


@router.get("/api/market/providers")
def market_providers(_auth: None = Depends(require_api_key)):
    providers = get_aggregator().provider_status()
    warnings = []
    live = [p for p in providers if p["id"] != "mock"]
    if not any(p["configured"] and p["id"] != "yahoo" for p in live):
        warnings.append("No keyed price providers configured.")
    if any(p["status"] == "degraded" for p in live):
        warnings.append("Some price providers are degraded.")
    return attach_meta(
        {"providers": providers},
        route="/api/market/providers",
        source="providers",
        warnings=warnings,
    )

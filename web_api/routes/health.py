from __future__ import annotations

from fastapi import APIRouter

from modules.market_data.service import get_aggregator
from web_api.view_model import attach_meta

router = APIRouter()


@router.get("/api/health")
def health_check():
    aggregator = get_aggregator()
    return attach_meta(
        {
            "status": "ok",
            "polling": aggregator.running,
            "watchlist": aggregator.watchlist,
        },
        route="/api/health",
        source="system",
    )

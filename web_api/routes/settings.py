from __future__ import annotations

from fastapi import APIRouter, Depends

from modules.market_data.service import get_aggregator
from web_api.auth import require_api_key
from web_api.view_model import attach_meta, missing_fields

router = APIRouter()


@router.get("/api/settings")
def settings_view(_auth: None = Depends(require_api_key)):
    aggregator = get_aggregator()
    settings = aggregator.config.redacted()
    response = {
        "settings": settings,
        "providers": [
            {"id": provider["id"], "configured": provider["configured"]}
            for provider in aggregator.provider_status()
        ],
    }
    warnings = missing_fields(response, required=("settings", "providers"))
    if not any(settings["credentials"].values()):
        warnings.append("No provider API keys set; quotes fall back to public and synthetic sources.")
    return attach_meta(
        response,
        route="/api/settings",
        source="settings",
        warnings=warnings,
    )

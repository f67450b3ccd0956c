from __future__ import annotations

from fastapi import APIRouter

from web_api.routes import health, market, settings, stream


def build_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router)
    router.include_router(market.router)
    router.include_router(settings.router)
    router.include_router(stream.router)
    return router

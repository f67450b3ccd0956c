from __future__ import annotations

import asyncio
from functools import partial
from typing import List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from modules.market_data.models import PricePoint
from modules.market_data.service import get_aggregator
from web_api.auth import require_websocket_key
from web_api.view_model import attach_meta

router = APIRouter()

MAX_STREAM_SYMBOLS = 25
STREAM_QUEUE_SIZE = 100


def _parse_symbols(raw: Optional[str], default: List[str]) -> List[str]:
    symbols = []
    for item in (raw or "").split(","):
        sym = item.strip().upper()
        if sym and sym not in symbols:
            symbols.append(sym)
    return (symbols or list(default))[:MAX_STREAM_SYMBOLS]


def _enqueue_latest(queue: "asyncio.Queue[PricePoint]", point: PricePoint) -> None:
    """Put without blocking; a full queue sheds its oldest point first."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(point)


@router.websocket("/ws/market")
async def market_stream(websocket: WebSocket, symbols: Optional[str] = None):
    await websocket.accept()
    if not require_websocket_key(websocket):
        await websocket.close(code=1008, reason="Invalid API key")
        return
    aggregator = get_aggregator()
    queue: "asyncio.Queue[PricePoint]" = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)
    handles = [
        aggregator.subscribe(sym, partial(_enqueue_latest, queue))
        for sym in _parse_symbols(symbols, aggregator.watchlist)
    ]
    try:
        while True:
            point = await queue.get()
            payload = attach_meta(
                point.to_payload(),
                route="/ws/market",
                source=point.source,
            )
            await websocket.send_json(payload)
    except WebSocketDisconnect:
        return
    finally:
        for unsubscribe in handles:
            unsubscribe()

from __future__ import annotations

import hmac
import os
from typing import Optional

from fastapi import Header, HTTPException, Query
from fastapi import WebSocket

API_KEY_ENV = "COPILOT_WEB_API_KEY"


def configured_key() -> str:
    return os.getenv(API_KEY_ENV, "")


def key_accepted(candidate: Optional[str]) -> bool:
    """An unset server key leaves the API open."""
    expected = configured_key()
    if not expected:
        return True
    return bool(candidate) and hmac.compare_digest(candidate, expected)


def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    api_key: Optional[str] = Query(default=None),
) -> None:
    if not key_accepted(x_api_key or api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


def require_websocket_key(websocket: WebSocket) -> bool:
    return key_accepted(websocket.headers.get("x-api-key") or websocket.query_params.get("api_key"))

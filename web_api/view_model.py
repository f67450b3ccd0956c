from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from modules.market_data.models import PricePoint, now_ms


def attach_meta(
    payload: Dict[str, Any],
    *,
    route: str,
    source: str,
    warnings: Optional[Iterable[str]] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """Stamp ``payload`` with a ``meta`` block; status turns "degraded" when warnings exist."""
    notes = list(warnings or [])
    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
    meta.update(
        route=route,
        source=source,
        timestamp=now_ms(),
        status=status or ("degraded" if notes else "ok"),
        warnings=notes,
    )
    payload["meta"] = meta
    return payload


def missing_fields(
    payload: Dict[str, Any],
    *,
    required: Sequence[str] = (),
    non_empty: Sequence[str] = (),
) -> List[str]:
    notes = [f"Missing required field: {key}" for key in required if key not in payload]
    for key in non_empty:
        if payload.get(key) in (None, "", [], {}):
            notes.append(f"Empty field: {key}")
    return notes


def synthetic_warnings(points: Iterable[PricePoint]) -> List[str]:
    synthetic = sorted({point.symbol for point in points if point.is_synthetic})
    if not synthetic:
        return []
    return [f"Synthetic prices for: {', '.join(synthetic)}"]


def quote_payload(point: PricePoint, *, route: str) -> Dict[str, Any]:
    return attach_meta(
        {"quote": point.to_payload()},
        route=route,
        source=point.source,
        warnings=synthetic_warnings([point]),
    )

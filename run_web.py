import argparse
import importlib.util
import os
import sys
import time
from typing import Any, Dict, Optional

import httpx

REQUIRED_MODULES = ("fastapi", "uvicorn", "yfinance", "finnhub")
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def probe_health(host: str, port: int) -> Optional[Dict[str, Any]]:
    """Return the /api/health payload of a running instance, or None."""
    try:
        resp = httpx.get(f"http://{host}:{port}/api/health", timeout=2.0, trust_env=False)
    except httpx.HTTPError:
        return None
    if resp.status_code != 200:
        return None
    return resp.json()


def wait_for_health(host: str, port: int, timeout: float = 8.0) -> Optional[Dict[str, Any]]:
    deadline = time.monotonic() + timeout
    while True:
        payload = probe_health(host, port)
        if payload is not None or time.monotonic() >= deadline:
            return payload
        time.sleep(0.4)


def missing_modules() -> list:
    return [name for name in REQUIRED_MODULES if importlib.util.find_spec(name) is None]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Quant Copilot market data API.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    parser.add_argument("--log-level", default="info")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Probe /api/health of a running instance, report the feed state and exit.",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    base = f"http://{args.host}:{args.port}"
    print(">> Quant Copilot market data API")
    if args.check:
        payload = wait_for_health(args.host, args.port, timeout=2.0)
        if payload is None:
            print(f">> {base} unreachable")
            return 1
        polling = "polling" if payload.get("polling") else "idle"
        symbols = ", ".join(payload.get("watchlist") or []) or "-"
        print(f">> {base} up ({polling}); watch-list: {symbols}")
        return 0
    missing = missing_modules()
    if missing:
        print(">> Missing dependencies:", ", ".join(missing))
        print(">> Install the project first: pip install -e .")
        return 1

    import uvicorn

    # The app configures logging at import time, possibly in a reload child.
    os.environ["COPILOT_LOG_LEVEL"] = args.log_level
    uvicorn.run(
        "web_api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.logging import RichHandler

NOISY_LOGGERS = {
    "yfinance": logging.CRITICAL,
    "urllib3": logging.CRITICAL,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Route stdlib logging through rich. Safe to call more than once."""
    global _CONFIGURED
    name = (level or os.getenv("COPILOT_LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    root = logging.getLogger()
    root.setLevel(resolved)
    if not _CONFIGURED:
        handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
        _CONFIGURED = True
    for logger_name, logger_level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(max(logger_level, resolved))

"""Logging setup shared by the worker scripts."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    # urllib3 retries/connection chatter drowns out per-record progress
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("trafilatura").setLevel(logging.WARNING)


def mask_secret(secret: str) -> str:
    return f"...{secret[-6:]}" if secret and len(secret) > 6 else "***"

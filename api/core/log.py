"""
Process-wide logging setup.
"""

from __future__ import annotations

import logging
import os

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def log_level() -> int:
    raw = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    level = logging.getLevelName(raw)
    # getLevelName returns a "Level X" string for unknown names.
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """
    Configure the root logger once. Safe to call again (no duplicate handlers).
    """
    root = logging.getLogger()
    root.setLevel(log_level())
    if root.handlers:
        return None

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root.addHandler(handler)

"""
Logging setup shared by every module.

Usage:
    logger = get_logger(__name__)
"""

import logging
import sys

from gripp_hours.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("gripp_hours")
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the service's logger hierarchy."""
    _configure_root()
    if not name.startswith("gripp_hours"):
        name = f"gripp_hours.{name}"
    return logging.getLogger(name)

"""
Logging helpers for entry points.

Library modules only call logging.getLogger(__name__); the CLI mains call
configure_logging() once.
"""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level() -> str:
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        return env_level.upper()
    if os.getenv("DEBUG", "0") == "1":
        return "DEBUG"
    return "INFO"


def configure_logging() -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=_resolve_level(), format=LOG_FORMAT)

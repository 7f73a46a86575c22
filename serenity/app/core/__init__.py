"""Core utilities for the proxy."""

from serenity.app.core.config import Settings, settings
from serenity.app.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]

"""Utilities package."""

from .logger import get_app_logger, setup_logger, init_app_logger
from .clock import utc_now
from .keyed_lock import KeyedLock

__all__ = [
    "get_app_logger",
    "setup_logger",
    "init_app_logger",
    "utc_now",
    "KeyedLock",
]

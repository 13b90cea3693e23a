"""Core utilities for the credit engine."""

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.config import settings
from bazar.app.core.logging import get_logger, setup_logging
from bazar.app.core.utils import effective_daily_used, get_current_date

__all__ = [
    "ReadThroughCache",
    "settings",
    "get_logger",
    "setup_logging",
    "effective_daily_used",
    "get_current_date",
]

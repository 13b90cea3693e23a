"""Utility functions for the credit engine."""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from bazar.app.core.config import settings


def get_current_date(tz_name: Optional[str] = None) -> date:
    """Return today's date in the credit-day timezone.

    Args:
        tz_name: IANA timezone name. Defaults to settings.credit_day_timezone.

    Returns:
        The calendar date used for the daily free-listing quota.
    """
    tz = ZoneInfo(tz_name or settings.credit_day_timezone)
    return datetime.now(tz).date()


def effective_daily_used(
    daily_listings_used: int,
    last_listing_date: Optional[date],
    today: date,
) -> int:
    """Apply the lazy daily reset to a stored usage counter.

    The stored counter only counts for the day it was written; on any other
    day it is logically zero.

    Examples:
        >>> effective_daily_used(5, date(2026, 3, 1), date(2026, 3, 2))
        0
        >>> effective_daily_used(3, date(2026, 3, 2), date(2026, 3, 2))
        3
    """
    if last_listing_date != today:
        return 0
    return max(daily_listings_used, 0)

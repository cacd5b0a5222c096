"""
Core Utilities.

Shared utility functions used across the backend.
All modules should import utilities from this module.
"""

import math
import re
import unicodedata
from datetime import datetime, timedelta, timezone

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")

PERIOD_DAYS: dict[str, int | None] = {
    "day": 1,
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
    "all": None,
    "all_time": None,
}


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application should be timezone-naive
    and assumed to be UTC. This ensures consistent behavior across
    the codebase and simplifies database storage.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    """
    Return the start of a reporting period ending at ``now``.

    Returns None for open-ended periods ("all", "all_time").

    Raises:
        KeyError: If period is not a known period name
    """
    days = PERIOD_DAYS[period]
    if days is None:
        return None
    return (now or utc_now()) - timedelta(days=days)


def slugify(value: str) -> str:
    """Convert a display name to a lowercase ASCII slug ("VIP Client" -> "vip-client")."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    return _SLUG_STRIP.sub("-", normalized.lower()).strip("-")


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` items at ``limit`` per page."""
    return math.ceil(total / limit) if limit else 0


def percentage(part: int | float, whole: int | float, digits: int = 1) -> float:
    """Share of ``part`` in ``whole`` as a rounded percentage, 0 when whole is empty."""
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

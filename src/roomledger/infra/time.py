"""Time utilities for consistent timestamp handling."""

import os
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def hotel_timezone(name: str | None = None) -> ZoneInfo:
    """Return the timezone used to map instants onto stay dates.

    Args:
        name: The hotel's own IANA timezone (hotels.timezone). When empty,
            HOTEL_TIMEZONE applies (default UTC).
    """
    return ZoneInfo(name or os.environ.get("HOTEL_TIMEZONE", "UTC"))


def stay_date(at: datetime | None = None, tz_name: str | None = None) -> date:
    """Return the calendar date of `at` (default: now) in the hotel timezone.

    Naive datetimes are treated as UTC.
    """
    if at is None:
        at = utc_now()
    elif at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(hotel_timezone(tz_name)).date()

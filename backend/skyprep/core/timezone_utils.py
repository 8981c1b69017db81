"""
Timezone utilities for the SkyPrep session backend.

All calendar rules run in one operating time zone. Timestamps are stored
in UTC and converted here.
"""

from datetime import date, datetime, time
from typing import Optional

import pytz

from .config import settings


def get_operating_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """
    Get the platform's operating timezone.

    Args:
        name: Optional override (mostly for tests)

    Returns:
        pytz timezone object
    """
    return pytz.timezone(name or settings.operating_timezone)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_operating_time(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """Convert a datetime to the operating timezone."""
    zone = tz or get_operating_timezone()
    return ensure_utc(dt).astimezone(zone)


def combine_local(day: date, at: time, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Build an aware datetime for a wall-clock time on a date.

    Uses ``localize`` so DST offsets are resolved for that date.
    """
    zone = tz or get_operating_timezone()
    return zone.localize(datetime.combine(day, at))


def format_session_moment(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> str:
    """Human-readable local time, e.g. 'Monday, June 10, 2024 at 9:00 AM'."""
    local = to_operating_time(dt, tz)
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{local:%A}, {local:%B} {local.day}, {local:%Y} at {hour}:{local:%M} {local:%p}"

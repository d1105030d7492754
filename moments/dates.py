"""Date keys in the principal's local timezone."""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo


def _now(tz: str, now: Optional[datetime] = None) -> datetime:
    zone = ZoneInfo(tz)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def today_key(tz: str, now: Optional[datetime] = None) -> str:
    """Today's date as YYYY-MM-DD in the given timezone."""
    return _now(tz, now).strftime("%Y-%m-%d")


def date_key_days_ago(days_ago: int, tz: str, now: Optional[datetime] = None) -> str:
    """Date key for N calendar days before today."""
    day = _now(tz, now).date() - timedelta(days=days_ago)
    return day.strftime("%Y-%m-%d")


def time_of_day_stamp(tz: str, now: Optional[datetime] = None) -> str:
    """HHMMSS (24h) in the given timezone, used in image filenames."""
    return _now(tz, now).strftime("%H%M%S")

"""Polling interval policy."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from .models import Device, Screen

logger = logging.getLogger(__name__)

# Local hours during which devices poll half as often
NIGHT_START_HOUR = 23
NIGHT_END_HOUR = 6


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """Look up a timezone, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError covers zone directories such as "America" and over-long names
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return ZoneInfo("UTC")


def is_known_timezone(name: Optional[str]) -> bool:
    """Check a name is an IANA zone, not a zone directory or a typo."""
    return bool(name) and name in available_timezones()


def compute_interval(
    tz_name: Optional[str], base_seconds: int, now: Optional[datetime] = None
) -> int:
    """
    Calculate the refresh rate for the current time of day.

    Args:
        tz_name: Device timezone (e.g., "America/New_York")
        base_seconds: Daytime refresh rate in seconds
        now: Reference time, defaults to the current time

    Returns:
        Double the base rate between 11pm and 6am local time, else the base rate
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    hour = now.astimezone(resolve_timezone(tz_name)).hour

    if hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR:
        return base_seconds * 2
    return base_seconds


def next_update_at(
    tz_name: Optional[str], interval_seconds: int, now: Optional[datetime] = None
) -> datetime:
    """When the device is expected back, in its local timezone."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(resolve_timezone(tz_name)) + timedelta(seconds=interval_seconds)


def base_refresh_rate(device: Device, screen: Optional[Screen], default: int) -> int:
    """Pick the daytime refresh rate: screen config, then device schedule, then default."""
    if screen:
        try:
            rate = int(screen.config.get("refresh_rate") or 0)
        except (TypeError, ValueError):
            rate = 0
        if rate > 0:
            return rate

    schedule = (device.refresh_schedule or "").strip()
    if schedule.isdigit() and int(schedule) > 0:
        return int(schedule)
    return default

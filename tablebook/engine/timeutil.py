"""Wall-clock and time zone helpers

Reservation times are stored as restaurant-local "HH:MM" strings next to a
calendar date. Instants (seated_at, completed_at, ...) are stored as naive UTC.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tablebook.engine.errors import ValidationError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current instant as naive UTC, the storage convention for timestamps"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown time zone: {name}") from e


def time_to_minutes(value: str) -> int:
    """Parse "HH:MM" into minutes after midnight"""
    try:
        hours, minutes = value.split(":")
        h, m = int(hours), int(minutes)
    except (AttributeError, ValueError) as e:
        raise ValidationError(f"Invalid time: {value!r}") from e
    if h < 0 or m < 0 or m > 59:
        raise ValidationError(f"Invalid time: {value!r}")
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """Format minutes after midnight as "HH:MM" (may pass 24:00 for late seatings)"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(value) + minutes)


def local_to_utc(day: date, value: str, zone: ZoneInfo) -> datetime:
    """Convert a restaurant wall-clock date + time into an aware UTC instant"""
    minutes = time_to_minutes(value)
    # Aware + timedelta is wall-clock arithmetic; the zone resolves the offset
    local = datetime.combine(day, time(0, 0), tzinfo=zone) + timedelta(minutes=minutes)
    return local.astimezone(timezone.utc)


def utc_to_local(instant: datetime, zone: ZoneInfo) -> datetime:
    """Convert a stored naive-UTC (or aware) instant into restaurant local time"""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(zone)


def local_now(clock: Clock, zone: ZoneInfo) -> datetime:
    return utc_to_local(clock(), zone)


def round_up_to(minutes: float, step: int = 5) -> int:
    return int(math.ceil(minutes / step) * step)


def format_12h(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d} {suffix}"

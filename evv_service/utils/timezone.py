"""Timezone utilities for the agency's local time"""
from datetime import datetime
import pytz

from evv_service import config


def agency_timezone():
    """Configured agency timezone (handles DST automatically)."""
    return pytz.timezone(config.AGENCY_TIMEZONE)


def convert_to_agency_time(dt: datetime | None) -> datetime | None:
    """
    Convert UTC naive datetime to the agency timezone for display.

    Args:
        dt: Naive datetime assumed to be in UTC, or None

    Returns:
        Naive datetime in agency local time, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        utc_dt = pytz.utc.localize(dt)
        return utc_dt.astimezone(agency_timezone()).replace(tzinfo=None)
    return dt.astimezone(agency_timezone()).replace(tzinfo=None)


def localize_to_utc(dt: datetime, tz_name: str | None = None) -> datetime:
    """Interpret a naive local datetime in tz_name and return it as naive UTC."""
    tz = pytz.timezone(tz_name) if tz_name else agency_timezone()
    local_dt = tz.localize(dt)
    return local_dt.astimezone(pytz.utc).replace(tzinfo=None)


def format_time(dt: datetime | None) -> str:
    """Format a UTC datetime as agency local "9:05 AM"."""
    local = convert_to_agency_time(dt)
    if local is None:
        return ""
    return local.strftime("%I:%M %p").lstrip("0")


def format_date(dt: datetime | None) -> str:
    """Format a UTC datetime as agency local "January 8, 2024"."""
    local = convert_to_agency_time(dt)
    if local is None:
        return ""
    return f"{local:%B} {local.day}, {local.year}"

"""
Recurrence expansion and unit arithmetic for bulk scheduling.

Weekdays are numbered 0=Sunday .. 6=Saturday. Week ``i`` of a bulk request
is the 7-day window starting at ``start_date + 7*i``, so every selected
weekday occurs exactly once per week and the first week may start on any
day.
"""
import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from evv_service.db.models import UnitType
from evv_service.utils.timezone import localize_to_utc

TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


def sunday_based_weekday(day: date) -> int:
    """0=Sunday .. 6=Saturday (Python's weekday() is 0=Monday)."""
    return (day.weekday() + 1) % 7


def generate_bulk_dates(start_date: date, number_of_weeks: int, selected_days: Iterable[int]) -> List[date]:
    """
    Expand a weekday set over a number of weeks, ascending.

    Raises:
        ValueError: number_of_weeks below 1 or a weekday outside 0..6
    """
    if number_of_weeks < 1:
        raise ValueError(f"number_of_weeks must be at least 1, got {number_of_weeks}")
    days = set(selected_days)
    invalid = sorted(d for d in days if not 0 <= d <= 6)
    if invalid:
        raise ValueError(f"Weekdays must be between 0 (Sunday) and 6 (Saturday), got {invalid}")

    dates = []
    for week in range(number_of_weeks):
        week_start = start_date + timedelta(days=7 * week)
        for offset in range(7):
            candidate = week_start + timedelta(days=offset)
            if sunday_based_weekday(candidate) in days:
                dates.append(candidate)
    return dates


def parse_time(value: str) -> time:
    """Parse "HH:MM" (24-hour)."""
    if not TIME_PATTERN.match(value or ""):
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    hours, minutes = int(value[:2]), int(value[3:])
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time: {value!r}")
    return time(hours, minutes)


def combine_date_time(day: date, hhmm: str, tz_name: Optional[str] = None) -> datetime:
    """Agency-local date + "HH:MM" as a naive UTC datetime."""
    return localize_to_utc(datetime.combine(day, parse_time(hhmm)), tz_name)


def calculate_hours_between(start_time: str, end_time: str) -> float:
    """Decimal hours from start_time to end_time; zero or negative if end is not after start."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    return minutes / 60


def calculate_bulk_units(hours_per_shift: float, shift_count: int, unit_type: str) -> float:
    """
    Authorization units consumed by shift_count shifts.

    HOURLY -> hours, QUARTER_HOURLY -> hours x 4, DAILY -> one unit per shift.
    """
    unit = UnitType(unit_type)
    if unit == UnitType.DAILY:
        units = float(shift_count)
    elif unit == UnitType.QUARTER_HOURLY:
        units = hours_per_shift * 4 * shift_count
    else:
        units = hours_per_shift * shift_count
    return round(units, 2)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) overlap; touching boundaries do not overlap."""
    return start_a < end_b and start_b < end_a

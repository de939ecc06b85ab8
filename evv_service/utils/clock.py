"""Clock helpers. All stored timestamps are naive UTC."""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    """UTC midnight of the day containing dt."""
    return datetime(dt.year, dt.month, dt.day)

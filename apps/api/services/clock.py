"""UTC clock used by every rewards operation."""

from datetime import date, datetime, timezone
from typing import Callable, Optional


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today(now: Optional[datetime] = None) -> date:
    """Return the UTC calendar date for ``now`` (defaults to the current time)."""
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(timezone.utc).date()


def get_clock() -> Clock:
    """FastAPI dependency; tests override it to pin "today"."""
    return utc_now

"""Daily visit tracking."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, List, Set

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user_visit import UserVisit


def last_n_dates(today: date, days: int) -> List[date]:
    """Inclusive window of ``days`` calendar dates ending today, oldest first."""
    span = max(int(days), 1)
    return [today - timedelta(days=offset) for offset in range(span - 1, -1, -1)]


async def record_visit(db: AsyncSession, user_id: str, visit_date: date) -> bool:
    """Insert the visit marker unless one exists. Returns True when inserted.

    The unique ``(user_id, visit_date)`` constraint resolves concurrent inserts.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(UserVisit)
    elif dialect == "sqlite":
        stmt = sqlite.insert(UserVisit)
    else:
        raise NotImplementedError(f"Visit logging needs an upsert-capable dialect, got {dialect!r}.")

    result = await db.execute(
        stmt.values(user_id=user_id, visit_date=visit_date).on_conflict_do_nothing(
            index_elements=["user_id", "visit_date"]
        )
    )
    return result.rowcount == 1


async def visited_dates(db: AsyncSession, user_id: str, dates: Iterable[date]) -> Set[date]:
    window = list(dates)
    if not window:
        return set()
    result = await db.execute(
        select(UserVisit.visit_date).where(
            UserVisit.user_id == user_id,
            UserVisit.visit_date.in_(window),
        )
    )
    return {row[0] for row in result.all()}


async def weekly_progress(db: AsyncSession, user_id: str, today: date, days: int) -> int:
    """Number of consecutive visited days ending today (or yesterday)."""
    window = last_n_dates(today, days)
    seen = await visited_dates(db, user_id, window)
    streak = 0
    cursor = today if today in seen else today - timedelta(days=1)
    while cursor in seen and streak < len(window):
        streak += 1
        cursor -= timedelta(days=1)
    return streak

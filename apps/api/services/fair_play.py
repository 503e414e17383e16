"""Weekly fair-play coin award.

Users who visited on every one of the last ``FAIR_PLAY_STREAK_DAYS`` UTC days
earn one fair-play coin. A user is awarded at most once every
``FAIR_PLAY_MIN_DAYS_BETWEEN_AWARDS`` days, so re-running the job (same day or
later in the same week) never pays twice for the same streak window.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker, engine
from models.user import User
from services.clock import utc_now, utc_today
from services.visits import last_n_dates, visited_dates


logger = logging.getLogger(__name__)


def award_cutoff(today: date) -> date:
    """Users awarded on or after this date are not yet eligible again."""
    min_gap = max(int(settings.FAIR_PLAY_MIN_DAYS_BETWEEN_AWARDS), 1)
    return today - timedelta(days=min_gap - 1)


def is_scheduled_award_day(now: datetime) -> bool:
    return utc_today(now).weekday() == int(settings.FAIR_PLAY_AWARD_WEEKDAY) % 7


def batch_timeout_seconds(user_count: int) -> float:
    base = max(float(settings.FAIR_PLAY_BATCH_BASE_TIMEOUT_SECONDS), 0.0)
    per_user = max(float(settings.FAIR_PLAY_BATCH_PER_USER_TIMEOUT_SECONDS), 0.0)
    return base + per_user * max(user_count, 0)


async def _award_if_streak_complete(
    session: AsyncSession,
    user_id: str,
    previous_award: Optional[date],
    window: Sequence[date],
    today: date,
) -> bool:
    seen = await visited_dates(session, user_id, window)
    if not all(day in seen for day in window):
        await session.rollback()
        return False

    if previous_award is None:
        unchanged = User.weekly_fair_play_awarded.is_(None)
    else:
        unchanged = User.weekly_fair_play_awarded == previous_award
    result = await session.execute(
        update(User)
        .where(User.id == user_id, unchanged)
        .values(
            fair_play_coins=User.fair_play_coins + 1,
            weekly_fair_play_awarded=today,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another run awarded this user first.
        await session.rollback()
        return False
    await session.commit()
    return True


async def run_weekly_fair_play_award(
    db: Optional[AsyncSession] = None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Evaluate every eligible user's 7-day visit streak and award fair-play coins."""
    current = now or utc_now()
    today = utc_today(current)
    window = last_n_dates(today, settings.FAIR_PLAY_STREAK_DAYS)
    cutoff = award_cutoff(today)

    awarded = 0
    evaluated = 0
    skipped = 0
    errors: List[str] = []

    async def _run_with_session(session: AsyncSession) -> None:
        nonlocal awarded, evaluated, skipped
        result = await session.execute(
            select(User.id, User.weekly_fair_play_awarded)
            .where(
                or_(
                    User.weekly_fair_play_awarded.is_(None),
                    User.weekly_fair_play_awarded < cutoff,
                )
            )
            .order_by(User.id)
        )
        candidates = result.all()
        await session.rollback()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + batch_timeout_seconds(len(candidates))
        per_user_timeout = max(float(settings.FAIR_PLAY_BATCH_PER_USER_TIMEOUT_SECONDS), 0.1)

        for index, (user_id, previous_award) in enumerate(candidates):
            remaining = deadline - loop.time()
            if remaining <= 0:
                left = len(candidates) - index
                skipped += left
                errors.append(f"batch timeout: {left} users not evaluated")
                logger.warning("fair_play_batch_timeout remaining_users=%s", left)
                break

            evaluated += 1
            try:
                if await asyncio.wait_for(
                    _award_if_streak_complete(session, user_id, previous_award, window, today),
                    timeout=min(per_user_timeout, remaining),
                ):
                    awarded += 1
            except (SQLAlchemyError, asyncio.TimeoutError) as exc:
                skipped += 1
                errors.append(f"{user_id}:{exc.__class__.__name__}")
                logger.warning("fair_play_user_skipped user=%s error=%r", user_id, exc)
                try:
                    await session.rollback()
                except SQLAlchemyError:
                    logger.exception("fair_play_rollback_failed user=%s", user_id)

    if db is not None:
        await _run_with_session(db)
    else:
        async with async_session_maker() as session:
            await _run_with_session(session)

    logger.info(
        "fair_play_weekly_award date=%s awarded=%s evaluated=%s skipped=%s",
        today.isoformat(),
        awarded,
        evaluated,
        skipped,
    )
    return {
        "awarded": awarded,
        "evaluated": evaluated,
        "skipped": skipped,
        "award_date": today.isoformat(),
        "errors": errors[:20],
    }


async def process_weekly_fair_play_award_job_async() -> Dict[str, Any]:
    try:
        return await run_weekly_fair_play_award()
    finally:
        # Each RQ job runs in its own event loop; drop pooled connections bound to this one.
        await engine.dispose()


def process_weekly_fair_play_award_job() -> Dict[str, Any]:
    """RQ worker entrypoint for the weekly fair-play award."""
    return asyncio.run(process_weekly_fair_play_award_job_async())

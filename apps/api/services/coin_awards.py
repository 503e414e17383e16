"""Coin award service: daily-capped credits for user activity."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from services.clock import utc_now, utc_today
from services.coin_policy import (
    ACTIVITY_DESCRIPTIONS,
    award_amount,
    daily_limit,
    effective_daily_earnings,
    is_cap_exempt,
    next_login_streak,
    would_exceed_daily_limit,
)
from services.errors import DailyLimitExceeded, InvalidInput
from services.ledger import BalanceSnapshot, LedgerChange, apply_ledger_change, require_user_id
from services.visits import record_visit


logger = logging.getLogger(__name__)


async def award_coins(
    user_id: Optional[str],
    activity: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Credit the table amount for ``activity`` subject to the daily cap."""
    scoped_user_id = require_user_id(user_id)
    amount = award_amount(activity)
    activity = str(activity).strip()

    current = now or utc_now()
    today = utc_today(current)
    capped = not is_cap_exempt(activity)
    tx_description = description or ACTIVITY_DESCRIPTIONS.get(activity, f"{activity} reward")
    effective_after: Dict[str, int] = {}

    def plan(snapshot: BalanceSnapshot) -> LedgerChange:
        effective = effective_daily_earnings(snapshot.last_visit_date, snapshot.daily_coin_earnings, today)
        values: Dict[str, Any] = {"coins": snapshot.coins + amount}

        if capped:
            if would_exceed_daily_limit(effective, amount):
                logger.warning(
                    "coin_award_rejected user=%s activity=%s earned_today=%s amount=%s",
                    scoped_user_id,
                    activity,
                    effective,
                    amount,
                )
                raise DailyLimitExceeded(
                    daily_coin_earnings=effective,
                    daily_limit=daily_limit(),
                )
            effective += amount
            values["daily_coin_earnings"] = effective
            values["last_visit_date"] = today

        if activity == "visit":
            values["login_streak"] = next_login_streak(snapshot.last_login_date, snapshot.login_streak, today)
            values["last_login_date"] = today

        effective_after["daily_coin_earnings"] = effective

        async def after_write(session: AsyncSession) -> None:
            if activity == "visit":
                await record_visit(session, scoped_user_id, today)

        return LedgerChange(
            values=values,
            tx_type=activity,
            amount=amount,
            description=tx_description,
            after_write=after_write,
        )

    result = await apply_ledger_change(db, scoped_user_id, plan, now=current)
    logger.info(
        "coin_award user=%s activity=%s amount=%s coins=%s daily=%s",
        scoped_user_id,
        activity,
        amount,
        result.coins,
        effective_after["daily_coin_earnings"],
    )
    return {
        "coins": result.coins,
        "daily_coin_earnings": effective_after["daily_coin_earnings"],
    }


async def award_blog_share(
    user_id: Optional[str],
    blog_id: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Share award for a blog post; same cap and amount as ``share``."""
    scoped_user_id = require_user_id(user_id)
    cleaned_blog_id = str(blog_id or "").strip()
    if not cleaned_blog_id:
        raise InvalidInput("blog_id is required.")
    return await award_coins(
        scoped_user_id,
        "share",
        db,
        now=now,
        description=f"Blog share reward (blog_id: {cleaned_blog_id})",
    )

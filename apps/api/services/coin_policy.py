"""Coin award table and the daily-cap policy shared by every award entry point."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, FrozenSet, Optional

from config import settings
from services.errors import InvalidInput


AWARD_TABLE: Dict[str, int] = {
    "visit": settings.COIN_REWARD_VISIT,
    "game": settings.COIN_REWARD_GAME,
    "share": settings.COIN_REWARD_SHARE,
    "referral": settings.COIN_REWARD_REFERRAL,
}

# Referral bonuses neither count toward nor are blocked by the daily cap.
CAP_EXEMPT_ACTIVITIES: FrozenSet[str] = frozenset({"referral"})

ACTIVITY_DESCRIPTIONS: Dict[str, str] = {
    "visit": "Daily visit reward",
    "game": "Game reward",
    "share": "Share reward",
    "referral": "Referral reward",
}

TX_FAIR_COIN_REDEEM = "fair-coin-redeem"
TX_CASH_REDEEM = "redeem"


def daily_limit() -> int:
    return max(int(settings.DAILY_COIN_LIMIT), 0)


def award_amount(activity: Optional[str]) -> int:
    """Return the coin value of ``activity`` or raise ``InvalidInput``."""
    key = str(activity or "").strip()
    if key not in AWARD_TABLE:
        raise InvalidInput(f"Unknown activity: {activity!r}.")
    return int(AWARD_TABLE[key])


def is_cap_exempt(activity: str) -> bool:
    return activity in CAP_EXEMPT_ACTIVITIES


def effective_daily_earnings(last_visit_date: Optional[date], stored_earnings: Optional[int], today: date) -> int:
    """Stored earnings only count when they were recorded today."""
    if last_visit_date != today:
        return 0
    return max(int(stored_earnings or 0), 0)


def would_exceed_daily_limit(effective_earnings: int, amount: int) -> bool:
    return effective_earnings + amount > daily_limit()


def daily_remaining(effective_earnings: int) -> int:
    return max(daily_limit() - effective_earnings, 0)


def next_login_streak(last_login_date: Optional[date], current_streak: Optional[int], today: date) -> int:
    streak = max(int(current_streak or 0), 0)
    if last_login_date == today:
        return max(streak, 1)
    if last_login_date == today - timedelta(days=1):
        return streak + 1
    return 1

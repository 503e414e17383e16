"""Reward account bootstrap and read-side summaries."""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.coin_transaction import CoinTransaction
from models.user import User
from services.clock import utc_now, utc_today
from services.coin_policy import daily_limit, daily_remaining, effective_daily_earnings
from services.errors import InvalidInput, PersistenceFailure, UserNotFound
from services.ledger import require_user_id
from services.visits import weekly_progress


logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 8


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


async def _unused_referral_code(db: AsyncSession) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_referral_code()
        existing = await db.execute(select(User.id).where(User.referral_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise PersistenceFailure("Could not allocate a unique referral code.")


def _serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "coins": int(user.coins or 0),
        "fair_play_coins": int(user.fair_play_coins or 0),
        "daily_coin_earnings": int(user.daily_coin_earnings or 0),
        "login_streak": int(user.login_streak or 0),
        "referral_code": user.referral_code,
    }


async def initialize_user(
    user_id: Optional[str],
    email: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    """Create the reward account for a newly signed-up user (idempotent)."""
    scoped_user_id = require_user_id(user_id)
    cleaned_email = str(email or "").strip().lower() or None

    for attempt in range(MAX_CODE_ATTEMPTS):
        try:
            result = await db.execute(select(User).where(User.id == scoped_user_id))
            user = result.scalar_one_or_none()
            created = user is None
            if created:
                user = User(
                    id=scoped_user_id,
                    email=cleaned_email,
                    coins=0,
                    fair_play_coins=0,
                    daily_coin_earnings=0,
                    login_streak=0,
                    referral_code=await _unused_referral_code(db),
                )
                db.add(user)
            else:
                if not user.referral_code:
                    user.referral_code = await _unused_referral_code(db)
                if cleaned_email and not user.email:
                    user.email = cleaned_email
            await db.commit()
            await db.refresh(user)
            if created:
                logger.info("reward_account_created user=%s", scoped_user_id)
            return {"message": "User initialized successfully", "user": _serialize_user(user)}
        except IntegrityError as exc:
            # Duplicate email, or a concurrent insert/code allocation; retry reads the winner.
            await db.rollback()
            logger.warning("reward_account_init_conflict user=%s attempt=%s: %s", scoped_user_id, attempt + 1, exc)
            if cleaned_email:
                taken = await db.execute(
                    select(User.id).where(User.email == cleaned_email, User.id != scoped_user_id)
                )
                if taken.scalar_one_or_none() is not None:
                    raise InvalidInput("email is already registered to another account.") from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("reward_account_init_failed user=%s", scoped_user_id)
            raise PersistenceFailure() from exc

    raise PersistenceFailure("Could not initialize the reward account.")


async def get_reward_data(
    user_id: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Balances, recent transactions and daily/weekly progress for one user."""
    scoped_user_id = require_user_id(user_id)
    today = utc_today(now or utc_now())

    try:
        result = await db.execute(select(User).where(User.id == scoped_user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFound()

        tx_result = await db.execute(
            select(CoinTransaction)
            .where(CoinTransaction.user_id == scoped_user_id)
            .order_by(CoinTransaction.created_at.desc(), CoinTransaction.id.desc())
            .limit(max(int(settings.TRANSACTION_HISTORY_LIMIT), 1))
        )
        transactions = tx_result.scalars().all()
        streak_days = max(int(settings.FAIR_PLAY_STREAK_DAYS), 1)
        visited_streak = await weekly_progress(db, scoped_user_id, today, streak_days)
    except SQLAlchemyError as exc:
        logger.exception("reward_data_read_failed user=%s", scoped_user_id)
        raise PersistenceFailure("Failed to fetch reward data.") from exc

    earned_today = effective_daily_earnings(user.last_visit_date, user.daily_coin_earnings, today)
    limit = daily_limit()
    return {
        "coins": int(user.coins or 0),
        "fair_play_coins": int(user.fair_play_coins or 0),
        "daily_coin_earnings": earned_today,
        "daily_limit": limit,
        "daily_remaining": daily_remaining(earned_today),
        "daily_progress": min(earned_today / limit, 1.0) if limit else 1.0,
        "login_streak": int(user.login_streak or 0),
        "last_visit_date": user.last_visit_date.isoformat() if user.last_visit_date else None,
        "last_login_date": user.last_login_date.isoformat() if user.last_login_date else None,
        "referral_code": user.referral_code,
        "weekly_progress": min(visited_streak / streak_days, 1.0),
        "days_to_next_fair_coin": max(streak_days - visited_streak, 0),
        "transactions": [
            {
                "type": entry.type,
                "amount": entry.amount,
                "description": entry.description,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in transactions
        ],
    }


async def get_all_rewards(db: AsyncSession) -> Dict[str, Any]:
    """Admin overview of every account's balances and transaction counts."""
    tx_counts = (
        select(
            CoinTransaction.user_id.label("user_id"),
            func.count(CoinTransaction.id).label("transaction_count"),
        )
        .group_by(CoinTransaction.user_id)
        .subquery()
    )
    try:
        result = await db.execute(
            select(
                User.id,
                User.email,
                User.coins,
                User.fair_play_coins,
                func.coalesce(tx_counts.c.transaction_count, 0),
            )
            .outerjoin(tx_counts, tx_counts.c.user_id == User.id)
            .order_by(User.created_at, User.id)
        )
        rows = result.all()
    except SQLAlchemyError as exc:
        logger.exception("admin_rewards_read_failed")
        raise PersistenceFailure("Failed to fetch users.") from exc

    return {
        "users": [
            {
                "id": user_id,
                "email": email,
                "coins": int(coins or 0),
                "fair_play_coins": int(fair_play_coins or 0),
                "transaction_count": int(count or 0),
            }
            for user_id, email, coins, fair_play_coins, count in rows
        ]
    }

"""Referral workflows.

Two distinct operations pay referrers:

* ``create_referral`` / ``confirm_referral``: the referrer registers a referred
  email, receiving a single-use token; confirming the token pays the
  confirmed-referral bonus.
* ``process_referral_code``: a signed-up user enters someone's referral code
  and the code owner is paid immediately, once per referred user.

Both bonuses bypass the daily coin cap.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.referral import REFERRAL_COMPLETED, REFERRAL_PENDING, Referral
from models.user import User
from services.clock import utc_now
from services.errors import (
    AlreadyReferred,
    DuplicateReferral,
    InvalidInput,
    InvalidOrConsumedToken,
    InvalidReferralCode,
    PersistenceFailure,
    ReferredUserNotFound,
    SelfReferral,
    UserNotFound,
)
from services.ledger import BalanceSnapshot, LedgerChange, apply_ledger_change


logger = logging.getLogger(__name__)

TX_REFERRAL = "referral"


def _clean(value: Optional[str]) -> str:
    return str(value or "").strip()


async def _user_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def create_referral(
    referrer_id: Optional[str],
    referred_email: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Register a pending referral and return its confirmation token."""
    referrer = _clean(referrer_id)
    email = _clean(referred_email).lower()
    if not referrer or not email:
        raise InvalidInput("referrer_id and referred_email are required.")

    if not await _user_exists(db, referrer):
        raise UserNotFound("Referrer not found.")

    referred_result = await db.execute(select(User.id).where(func.lower(User.email) == email))
    referred_id = referred_result.scalar_one_or_none()
    if referred_id is None:
        raise ReferredUserNotFound()
    if referred_id == referrer:
        raise SelfReferral()

    existing = await db.execute(
        select(Referral.id).where(
            Referral.referrer_id == referrer,
            Referral.referred_id == referred_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateReferral()

    token = secrets.token_urlsafe(24)
    db.add(
        Referral(
            referrer_id=referrer,
            referred_id=referred_id,
            status=REFERRAL_PENDING,
            token=token,
            created_at=now or utc_now(),
        )
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateReferral() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("referral_create_failed referrer=%s", referrer)
        raise PersistenceFailure() from exc

    logger.info("referral_created referrer=%s referred=%s", referrer, referred_id)
    return {"message": "Referral created. Awaiting confirmation.", "token": token}


async def confirm_referral(
    token: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Complete a pending referral and pay the referrer the confirmed bonus."""
    cleaned_token = _clean(token)
    if not cleaned_token:
        raise InvalidInput("token is required.")

    result = await db.execute(
        select(Referral.id, Referral.referrer_id).where(
            Referral.token == cleaned_token,
            Referral.status == REFERRAL_PENDING,
        )
    )
    row = result.one_or_none()
    if row is None:
        await db.rollback()
        raise InvalidOrConsumedToken()

    referral_id, referrer_id = row.id, row.referrer_id
    current = now or utc_now()
    bonus = max(int(settings.CONFIRMED_REFERRAL_BONUS), 0)

    def plan(snapshot: BalanceSnapshot) -> LedgerChange:
        async def complete_referral(session: AsyncSession) -> None:
            flipped = await session.execute(
                update(Referral)
                .where(Referral.id == referral_id, Referral.status == REFERRAL_PENDING)
                .values(status=REFERRAL_COMPLETED, confirmed_at=current)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount != 1:
                raise InvalidOrConsumedToken()

        return LedgerChange(
            values={"coins": snapshot.coins + bonus},
            tx_type=TX_REFERRAL,
            amount=bonus,
            description="Referral reward (confirmed)",
            after_write=complete_referral,
        )

    ledger = await apply_ledger_change(db, referrer_id, plan, now=current)
    logger.info("referral_confirmed referral=%s referrer=%s bonus=%s", referral_id, referrer_id, bonus)
    return {
        "message": "Referral confirmed and coins awarded.",
        "referrer_id": referrer_id,
        "referrer_coins": ledger.coins,
    }


async def process_referral_code(
    user_id: Optional[str],
    referral_code: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Attach ``user_id`` to the owner of ``referral_code`` and pay the owner."""
    referred = _clean(user_id)
    code = _clean(referral_code).upper()
    if not referred or not code:
        raise InvalidInput("user_id and referral_code are required.")

    referrer_result = await db.execute(select(User.id).where(User.referral_code == code))
    referrer_id = referrer_result.scalar_one_or_none()
    if referrer_id is None:
        raise InvalidReferralCode()
    if referrer_id == referred:
        raise SelfReferral()

    referred_result = await db.execute(select(User.referred_by).where(User.id == referred))
    referred_row = referred_result.one_or_none()
    if referred_row is None:
        raise UserNotFound()
    if referred_row.referred_by:
        raise AlreadyReferred()

    current = now or utc_now()
    reward = max(int(settings.COIN_REWARD_REFERRAL), 0)

    def plan(snapshot: BalanceSnapshot) -> LedgerChange:
        async def link_referred_user(session: AsyncSession) -> None:
            linked = await session.execute(
                update(User)
                .where(User.id == referred, User.referred_by.is_(None))
                .values(referred_by=referrer_id)
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 1:
                raise AlreadyReferred()

        return LedgerChange(
            values={"coins": snapshot.coins + reward},
            tx_type=TX_REFERRAL,
            amount=reward,
            description="Referral reward",
            after_write=link_referred_user,
        )

    ledger = await apply_ledger_change(db, referrer_id, plan, now=current)
    logger.info("referral_code_processed referrer=%s referred=%s reward=%s", referrer_id, referred, reward)
    return {
        "message": "Referral processed successfully",
        "referrer_coins": ledger.coins,
    }

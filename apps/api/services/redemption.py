"""Redemption service: fair-coin exchange and cash-out requests."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from services.clock import utc_now
from services.coin_policy import TX_CASH_REDEEM, TX_FAIR_COIN_REDEEM
from services.errors import InsufficientBalance, InsufficientFairCoins
from services.ledger import BalanceSnapshot, LedgerChange, apply_ledger_change, require_user_id


logger = logging.getLogger(__name__)


async def redeem_fair_coin(
    user_id: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Exchange one fair-play coin for ``FAIR_COIN_EXCHANGE_RATE`` coins."""
    scoped_user_id = require_user_id(user_id)
    rate = max(int(settings.FAIR_COIN_EXCHANGE_RATE), 0)

    def plan(snapshot: BalanceSnapshot) -> LedgerChange:
        if snapshot.fair_play_coins < 1:
            raise InsufficientFairCoins(fair_play_coins=snapshot.fair_play_coins)
        return LedgerChange(
            values={
                "fair_play_coins": snapshot.fair_play_coins - 1,
                "coins": snapshot.coins + rate,
            },
            tx_type=TX_FAIR_COIN_REDEEM,
            amount=rate,
            description="Fair play coin redeemed for coins",
        )

    result = await apply_ledger_change(db, scoped_user_id, plan, now=now or utc_now())
    logger.info(
        "fair_coin_redeemed user=%s coins=%s fair_play_coins=%s",
        scoped_user_id,
        result.coins,
        result.fair_play_coins,
    )
    return {"coins": result.coins, "fair_play_coins": result.fair_play_coins}


async def redeem_cash(
    user_id: Optional[str],
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Record a cash-out request by debiting ``CASH_REDEEM_AMOUNT`` coins.

    The payout itself is handled manually outside this service.
    """
    scoped_user_id = require_user_id(user_id)
    redeem_amount = max(int(settings.CASH_REDEEM_AMOUNT), 1)

    def plan(snapshot: BalanceSnapshot) -> LedgerChange:
        if snapshot.coins < redeem_amount:
            raise InsufficientBalance(coins=snapshot.coins, required=redeem_amount)
        return LedgerChange(
            values={"coins": snapshot.coins - redeem_amount},
            tx_type=TX_CASH_REDEEM,
            amount=-redeem_amount,
            description="Coin redemption",
        )

    result = await apply_ledger_change(db, scoped_user_id, plan, now=now or utc_now())
    logger.info("cash_redeem_recorded user=%s amount=%s coins=%s", scoped_user_id, redeem_amount, result.coins)
    return {"coins": result.coins}

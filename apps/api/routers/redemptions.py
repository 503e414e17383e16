"""Fair-coin and cash redemption endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, ensure_user_scope, get_auth_context
from routers.timeouts import with_request_timeout
from services.clock import Clock, get_clock
from services.errors import InvalidInput, PersistenceFailure
from services.redemption import redeem_cash, redeem_fair_coin

router = APIRouter()
logger = logging.getLogger(__name__)


class FairCoinRedeemRequest(BaseModel):
    redeem: bool = False
    user_id: Optional[str] = None


class CashRedeemRequest(BaseModel):
    user_id: Optional[str] = None


@router.post("/fair-coin")
async def fair_coin(
    request: FairCoinRedeemRequest,
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Exchange one fair-play coin for coins."""
    if not request.redeem:
        raise InvalidInput("redeem must be true.")
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(redeem_fair_coin(scoped_user_id, db, now=clock()))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to redeem fair coin user=%s", scoped_user_id)
        raise PersistenceFailure()


@router.post("/cash")
async def cash(
    request: CashRedeemRequest,
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Record a cash-out request against the coin balance."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(redeem_cash(scoped_user_id, db, now=clock()))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to redeem coins user=%s", scoped_user_id)
        raise PersistenceFailure()

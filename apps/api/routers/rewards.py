"""Coin award and reward summary endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, ensure_user_scope, get_auth_context
from routers.rate_limit import rate_limit
from routers.timeouts import with_request_timeout
from services.accounts import get_reward_data, initialize_user
from services.clock import Clock, get_clock
from services.coin_awards import award_blog_share, award_coins
from services.errors import PersistenceFailure

router = APIRouter()
logger = logging.getLogger(__name__)


class AwardCoinsRequest(BaseModel):
    user_id: Optional[str] = None
    activity: Optional[str] = None


class BlogShareRequest(BaseModel):
    user_id: Optional[str] = None
    blog_id: Optional[str] = None


class RewardDataRequest(BaseModel):
    user_id: Optional[str] = None


class InitializeUserRequest(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None


@router.post("/award")
async def award(
    request: AwardCoinsRequest,
    _rate_limit: None = Depends(rate_limit("rewards_award", limit=300, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Award coins for an activity, enforcing the daily cap."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(
            award_coins(scoped_user_id, request.activity, db, now=clock())
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to award coins user=%s activity=%s", scoped_user_id, request.activity)
        raise PersistenceFailure()


@router.post("/blog-share")
async def blog_share(
    request: BlogShareRequest,
    _rate_limit: None = Depends(rate_limit("rewards_blog_share", limit=120, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Award the share reward for sharing a blog post."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(
            award_blog_share(scoped_user_id, request.blog_id, db, now=clock())
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to award blog share user=%s blog=%s", scoped_user_id, request.blog_id)
        raise PersistenceFailure()


@router.post("/data")
async def reward_data(
    request: RewardDataRequest,
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Balances, the 20 most recent transactions and progress counters."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(get_reward_data(scoped_user_id, db, now=clock()))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch reward data user=%s", scoped_user_id)
        raise PersistenceFailure("Failed to fetch reward data.")


@router.post("/users/initialize")
async def initialize(
    request: InitializeUserRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create the reward account after signup (safe to call repeatedly)."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    email = request.email or auth.email
    try:
        return await with_request_timeout(initialize_user(scoped_user_id, email, db))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to initialize reward account user=%s", scoped_user_id)
        raise PersistenceFailure("Failed to initialize user.")

"""Referral endpoints: token-confirmed flow and code-based flow."""

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
from services.clock import Clock, get_clock
from services.errors import PersistenceFailure
from services.referrals import confirm_referral, create_referral, process_referral_code

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateReferralRequest(BaseModel):
    referrer_id: Optional[str] = None
    referred_email: Optional[str] = None


class ConfirmReferralRequest(BaseModel):
    token: Optional[str] = None


class ProcessReferralRequest(BaseModel):
    user_id: Optional[str] = None
    referral_code: Optional[str] = None


@router.post("")
async def create(
    request: CreateReferralRequest,
    _rate_limit: None = Depends(rate_limit("referral_create", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Register a pending referral; returns the confirmation token."""
    referrer_id = ensure_user_scope(auth.user_id, request.referrer_id)
    try:
        return await with_request_timeout(
            create_referral(referrer_id, request.referred_email, db, now=clock())
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to create referral referrer=%s", referrer_id)
        raise PersistenceFailure("Failed to create referral.")


@router.post("/confirm")
async def confirm(
    request: ConfirmReferralRequest,
    _rate_limit: None = Depends(rate_limit("referral_confirm", limit=60, window_seconds=3600)),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Confirm a pending referral by its single-use token."""
    try:
        return await with_request_timeout(confirm_referral(request.token, db, now=clock()))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to confirm referral")
        raise PersistenceFailure("Failed to confirm referral.")


@router.post("/process")
async def process_code(
    request: ProcessReferralRequest,
    _rate_limit: None = Depends(rate_limit("referral_process", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Apply another user's referral code and pay its owner immediately."""
    scoped_user_id = ensure_user_scope(auth.user_id, request.user_id)
    try:
        return await with_request_timeout(
            process_referral_code(scoped_user_id, request.referral_code, db, now=clock())
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to process referral code user=%s", scoped_user_id)
        raise PersistenceFailure("Failed to process referral.")

"""Admin reward overview."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import require_admin
from services.accounts import get_all_rewards
from services.errors import PersistenceFailure

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/rewards", dependencies=[Depends(require_admin)])
async def all_rewards(db: AsyncSession = Depends(get_db)):
    """Every account with balances and transaction counts."""
    try:
        return await get_all_rewards(db)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to list rewards")
        raise PersistenceFailure("Failed to fetch users.")

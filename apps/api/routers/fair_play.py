"""On-demand trigger for the weekly fair-play award (admin)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import require_admin
from services.clock import Clock, get_clock
from services.errors import PersistenceFailure, ServiceUnavailable
from services.fair_play import run_weekly_fair_play_award
from services.job_queue import enqueue_weekly_fair_play_award

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/weekly-award", dependencies=[Depends(require_admin)])
async def weekly_award(
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Run the weekly award now; the batch carries its own timeout budget."""
    try:
        return await run_weekly_fair_play_award(db, now=clock())
    except HTTPException:
        raise
    except Exception:
        logger.exception("Weekly fair-play award failed")
        raise PersistenceFailure("Weekly fair-play award failed.")


@router.post("/weekly-award/enqueue", dependencies=[Depends(require_admin)])
async def enqueue_weekly_award(clock: Clock = Depends(get_clock)):
    """Queue the weekly award for the RQ worker (one job per UTC day)."""
    try:
        job = enqueue_weekly_fair_play_award(now=clock())
    except Exception:
        logger.exception("Failed to enqueue weekly fair-play award")
        raise ServiceUnavailable("Job queue unavailable.")
    return {"job_id": job.id, "status": job.get_status()}

"""
PlayHub Rewards - FastAPI Backend
Coin ledger, referral and redemption API with the weekly fair-play award loop.
"""

import asyncio
from datetime import date
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    rewards,
    referrals,
    redemptions,
    fair_play,
    admin,
)
from services.clock import utc_now, utc_today
from services.fair_play import is_scheduled_award_day, run_weekly_fair_play_award


async def _periodic_fair_play_award() -> None:
    interval_minutes = max(int(settings.FAIR_PLAY_CHECK_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    last_run: Optional[date] = None
    while True:
        await asyncio.sleep(interval_minutes * 60)
        now = utc_now()
        today = utc_today(now)
        if last_run == today or not is_scheduled_award_day(now):
            continue
        try:
            result = await run_weekly_fair_play_award(now=now)
            last_run = today
            print(
                f"🪙 Weekly fair-play award: awarded={result.get('awarded', 0)} "
                f"evaluated={result.get('evaluated', 0)} skipped={result.get('skipped', 0)}"
            )
        except Exception as exc:
            print(f"⚠️ Weekly fair-play award tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting PlayHub Rewards API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    fair_play_task = None
    if settings.FAIR_PLAY_SCHEDULE_ENABLED:
        fair_play_task = asyncio.create_task(_periodic_fair_play_award())
        print(
            "📅 Weekly fair-play loop enabled "
            f"(weekday={int(settings.FAIR_PLAY_AWARD_WEEKDAY)}, "
            f"check every {int(settings.FAIR_PLAY_CHECK_INTERVAL_MINUTES)} min)."
        )
    yield
    # Shutdown
    if fair_play_task is not None:
        fair_play_task.cancel()
        try:
            await fair_play_task
        except asyncio.CancelledError:
            pass
    print("👋 Shutting down API...")


app = FastAPI(
    title="PlayHub Rewards API",
    description="Virtual coin ledger: daily-capped awards, referrals, fair-play streaks and redemptions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_request_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are invalid input (400), same shape as service errors."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "error": "invalid_input",
                "message": "Invalid request body.",
                "errors": [
                    {"loc": list(error.get("loc", [])), "msg": error.get("msg", "")}
                    for error in exc.errors()
                ],
            }
        },
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(rewards.router, prefix="/rewards", tags=["Rewards"])
app.include_router(referrals.router, prefix="/referrals", tags=["Referrals"])
app.include_router(redemptions.router, prefix="/redemptions", tags=["Redemptions"])
app.include_router(fair_play.router, prefix="/fair-play", tags=["Fair Play"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "PlayHub Rewards API",
        "version": "0.1.0",
        "status": "running"
    }

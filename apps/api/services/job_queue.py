"""Durable rewards job queue helpers (Redis/RQ)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from config import settings
from services.clock import utc_today


REWARDS_QUEUE_NAME = "rewards_jobs"
FAIR_PLAY_JOB_TIMEOUT_SECONDS = 3600


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_rewards_queue() -> Queue:
    """Return the configured rewards queue."""
    return Queue(
        name=REWARDS_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=FAIR_PLAY_JOB_TIMEOUT_SECONDS,
    )


def fair_play_job_id(now: Optional[datetime] = None) -> str:
    return f"fair-play:{utc_today(now).isoformat()}"


def enqueue_weekly_fair_play_award(now: Optional[datetime] = None) -> Job:
    """Enqueue the weekly award; the job id is per UTC day so a day runs once."""
    queue = get_rewards_queue()
    job_id = fair_play_job_id(now)
    existing = queue.fetch_job(job_id)
    if existing is not None:
        return existing
    return queue.enqueue(
        "services.fair_play.process_weekly_fair_play_award_job",
        job_id=job_id,
        retry=Retry(max=3, interval=[60, 300, 900]),
        job_timeout=FAIR_PLAY_JOB_TIMEOUT_SECONDS,
        result_ttl=7 * 86400,
        failure_ttl=7 * 86400,
    )

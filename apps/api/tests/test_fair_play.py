from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from models.user_visit import UserVisit
from services import fair_play
from services.fair_play import award_cutoff, is_scheduled_award_day, run_weekly_fair_play_award
from services.job_queue import enqueue_weekly_fair_play_award, fair_play_job_id


FIXED_NOW = datetime(2025, 3, 9, 12, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()


async def _seed_visits(env, user_id, days_back):
    async with env.session_maker() as session:
        session.add_all(
            [UserVisit(user_id=user_id, visit_date=TODAY - timedelta(days=offset)) for offset in days_back]
        )
        await session.commit()


@pytest.mark.asyncio
async def test_weekly_award_requires_every_day_of_the_window(rewards_env):
    await rewards_env.add_user("complete")
    await rewards_env.add_user("missed-one")
    await rewards_env.add_user("inactive")
    await _seed_visits(rewards_env, "complete", range(7))
    await _seed_visits(rewards_env, "missed-one", [0, 1, 2, 4, 5, 6])

    async with rewards_env.session_maker() as session:
        result = await run_weekly_fair_play_award(session, now=FIXED_NOW)

    assert result["awarded"] == 1
    assert result["evaluated"] == 3
    assert result["skipped"] == 0
    assert result["award_date"] == "2025-03-09"

    complete = await rewards_env.get_user("complete")
    assert complete.fair_play_coins == 1
    assert complete.weekly_fair_play_awarded == TODAY
    assert (await rewards_env.get_user("missed-one")).fair_play_coins == 0
    assert (await rewards_env.get_user("inactive")).fair_play_coins == 0


@pytest.mark.asyncio
async def test_weekly_award_rerun_does_not_pay_twice(rewards_env):
    await rewards_env.add_user("complete")
    await _seed_visits(rewards_env, "complete", range(7))

    async with rewards_env.session_maker() as session:
        first = await run_weekly_fair_play_award(session, now=FIXED_NOW)
    async with rewards_env.session_maker() as session:
        same_day = await run_weekly_fair_play_award(session, now=FIXED_NOW)
    async with rewards_env.session_maker() as session:
        later_in_week = await run_weekly_fair_play_award(session, now=FIXED_NOW + timedelta(days=3))

    assert first["awarded"] == 1
    assert same_day["awarded"] == 0
    assert same_day["evaluated"] == 0
    assert later_in_week["awarded"] == 0
    assert (await rewards_env.get_user("complete")).fair_play_coins == 1


@pytest.mark.asyncio
async def test_weekly_award_pays_again_after_a_full_week(rewards_env):
    await rewards_env.add_user("loyal", fair_play_coins=1, weekly_fair_play_awarded=TODAY - timedelta(days=7))
    await _seed_visits(rewards_env, "loyal", range(7))

    async with rewards_env.session_maker() as session:
        result = await run_weekly_fair_play_award(session, now=FIXED_NOW)

    assert result["awarded"] == 1
    assert (await rewards_env.get_user("loyal")).fair_play_coins == 2


@pytest.mark.asyncio
async def test_weekly_award_skips_a_failing_user_and_keeps_going(rewards_env, monkeypatch):
    await rewards_env.add_user("broken")
    await rewards_env.add_user("complete")
    await _seed_visits(rewards_env, "broken", range(7))
    await _seed_visits(rewards_env, "complete", range(7))
    real_visited_dates = fair_play.visited_dates

    async def flaky_visited_dates(session, user_id, dates):
        if user_id == "broken":
            raise OperationalError("SELECT visit_date FROM user_visits", {}, Exception("disk I/O error"))
        return await real_visited_dates(session, user_id, dates)

    monkeypatch.setattr(fair_play, "visited_dates", flaky_visited_dates)

    async with rewards_env.session_maker() as session:
        result = await run_weekly_fair_play_award(session, now=FIXED_NOW)

    assert result["awarded"] == 1
    assert result["evaluated"] == 2
    assert result["skipped"] == 1
    assert result["errors"] == ["broken:OperationalError"]
    assert (await rewards_env.get_user("broken")).fair_play_coins == 0
    assert (await rewards_env.get_user("complete")).fair_play_coins == 1


@pytest.mark.asyncio
async def test_weekly_award_endpoint_is_admin_only(rewards_env, monkeypatch):
    monkeypatch.setattr("config.settings.ADMIN_API_KEY", "admin-secret")
    await rewards_env.add_user("complete")
    await _seed_visits(rewards_env, "complete", range(7))

    denied = await rewards_env.client.post("/fair-play/weekly-award")
    assert denied.status_code == 403
    assert denied.json()["detail"]["error"] == "forbidden"

    response = await rewards_env.client.post("/fair-play/weekly-award", headers={"X-Admin-Key": "admin-secret"})
    assert response.status_code == 200
    assert response.json()["awarded"] == 1


@pytest.mark.asyncio
async def test_enqueue_endpoint_reports_queue_outage(rewards_env):
    with patch("routers.fair_play.enqueue_weekly_fair_play_award", side_effect=ConnectionError("redis down")):
        response = await rewards_env.client.post("/fair-play/weekly-award/enqueue")
    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "service_unavailable"


def test_award_cutoff_and_schedule_day():
    assert award_cutoff(TODAY) == date(2025, 3, 3)
    assert is_scheduled_award_day(FIXED_NOW)
    assert not is_scheduled_award_day(FIXED_NOW + timedelta(days=1))


def test_enqueue_uses_one_job_per_day():
    queue = MagicMock()
    queue.fetch_job.return_value = None
    queue.enqueue.return_value = MagicMock(id="fair-play:2025-03-09")

    with patch("services.job_queue.get_rewards_queue", return_value=queue):
        job = enqueue_weekly_fair_play_award(now=FIXED_NOW)

    assert job.id == "fair-play:2025-03-09"
    args, kwargs = queue.enqueue.call_args
    assert args[0] == "services.fair_play.process_weekly_fair_play_award_job"
    assert kwargs["job_id"] == fair_play_job_id(FIXED_NOW)


def test_enqueue_returns_existing_job_for_the_same_day():
    existing = MagicMock(id="fair-play:2025-03-09")
    queue = MagicMock()
    queue.fetch_job.return_value = existing

    with patch("services.job_queue.get_rewards_queue", return_value=queue):
        job = enqueue_weekly_fair_play_award(now=FIXED_NOW)

    assert job is existing
    queue.enqueue.assert_not_called()

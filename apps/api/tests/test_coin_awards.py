from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from models.coin_transaction import CoinTransaction
from models.user_visit import UserVisit
from services.visits import record_visit


async def _ledger_total(session_maker, user_id):
    async with session_maker() as session:
        result = await session.execute(
            select(func.coalesce(func.sum(CoinTransaction.amount), 0)).where(CoinTransaction.user_id == user_id)
        )
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_daily_cap_blocks_the_award_that_would_exceed_it(rewards_env):
    await rewards_env.add_user("player")

    for _ in range(24):
        response = await rewards_env.client.post("/rewards/award", json={"user_id": "player", "activity": "game"})
        assert response.status_code == 200

    assert response.json() == {"coins": 1200, "daily_coin_earnings": 1200}

    blocked = await rewards_env.client.post("/rewards/award", json={"user_id": "player", "activity": "game"})
    assert blocked.status_code == 403
    detail = blocked.json()["detail"]
    assert detail["error"] == "daily_limit_exceeded"
    assert detail["daily_coin_earnings"] == 1200
    assert detail["daily_limit"] == 1200

    user = await rewards_env.get_user("player")
    assert user.coins == 1200
    assert user.daily_coin_earnings == 1200
    assert await _ledger_total(rewards_env.session_maker, "player") == 1200


@pytest.mark.asyncio
async def test_small_award_still_rejected_once_cap_is_reached(rewards_env):
    await rewards_env.add_user("capped", coins=1200, daily_coin_earnings=1200, last_visit_date=date(2025, 3, 9))

    response = await rewards_env.client.post("/rewards/award", json={"user_id": "capped", "activity": "visit"})
    assert response.status_code == 403

    user = await rewards_env.get_user("capped")
    assert user.coins == 1200
    assert user.login_streak == 0


@pytest.mark.asyncio
async def test_daily_earnings_reset_lazily_on_a_new_day(rewards_env):
    await rewards_env.add_user("returning", coins=1200, daily_coin_earnings=1200, last_visit_date=date(2025, 3, 8))

    response = await rewards_env.client.post("/rewards/award", json={"user_id": "returning", "activity": "game"})
    assert response.status_code == 200
    assert response.json() == {"coins": 1250, "daily_coin_earnings": 50}

    user = await rewards_env.get_user("returning")
    assert user.last_visit_date == date(2025, 3, 9)


@pytest.mark.asyncio
async def test_reward_data_reports_reset_earnings_without_writing(rewards_env):
    await rewards_env.add_user("idle", coins=500, daily_coin_earnings=900, last_visit_date=date(2025, 3, 7))

    response = await rewards_env.client.post("/rewards/data", json={"user_id": "idle"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["coins"] == 500
    assert payload["daily_coin_earnings"] == 0
    assert payload["daily_remaining"] == 1200
    assert payload["transactions"] == []

    user = await rewards_env.get_user("idle")
    assert user.daily_coin_earnings == 900


@pytest.mark.asyncio
async def test_repeated_visits_keep_one_visit_row_per_day(rewards_env):
    await rewards_env.add_user("visitor")

    for _ in range(3):
        response = await rewards_env.client.post("/rewards/award", json={"user_id": "visitor", "activity": "visit"})
        assert response.status_code == 200

    async with rewards_env.session_maker() as session:
        result = await session.execute(select(UserVisit.visit_date).where(UserVisit.user_id == "visitor"))
        assert result.scalars().all() == [date(2025, 3, 9)]

    user = await rewards_env.get_user("visitor")
    assert user.coins == 30
    assert user.login_streak == 1


@pytest.mark.asyncio
async def test_visit_on_consecutive_days_extends_login_streak(rewards_env):
    await rewards_env.add_user(
        "streaker", login_streak=3, last_visit_date=date(2025, 3, 8), last_login_date=date(2025, 3, 8)
    )

    response = await rewards_env.client.post("/rewards/award", json={"user_id": "streaker", "activity": "visit"})
    assert response.status_code == 200

    user = await rewards_env.get_user("streaker")
    assert user.login_streak == 4
    assert user.last_login_date == date(2025, 3, 9)


@pytest.mark.asyncio
async def test_game_before_visit_still_extends_login_streak(rewards_env):
    await rewards_env.add_user(
        "gamer", login_streak=3, last_visit_date=date(2025, 3, 8), last_login_date=date(2025, 3, 8)
    )

    game = await rewards_env.client.post("/rewards/award", json={"user_id": "gamer", "activity": "game"})
    assert game.status_code == 200
    visit = await rewards_env.client.post("/rewards/award", json={"user_id": "gamer", "activity": "visit"})
    assert visit.status_code == 200

    user = await rewards_env.get_user("gamer")
    assert user.login_streak == 4
    assert user.last_visit_date == date(2025, 3, 9)


@pytest.mark.asyncio
async def test_game_without_visit_does_not_count_as_login(rewards_env):
    await rewards_env.add_user(
        "player", login_streak=2, last_visit_date=date(2025, 3, 8), last_login_date=date(2025, 3, 7)
    )

    response = await rewards_env.client.post("/rewards/award", json={"user_id": "player", "activity": "visit"})
    assert response.status_code == 200

    user = await rewards_env.get_user("player")
    assert user.login_streak == 1


@pytest.mark.asyncio
async def test_referral_activity_ignores_the_daily_cap(rewards_env):
    await rewards_env.add_user("referrer", coins=1200, daily_coin_earnings=1200, last_visit_date=date(2025, 3, 9))

    response = await rewards_env.client.post("/rewards/award", json={"user_id": "referrer", "activity": "referral"})
    assert response.status_code == 200
    assert response.json() == {"coins": 2200, "daily_coin_earnings": 1200}


@pytest.mark.asyncio
async def test_blog_share_records_blog_id_in_description(rewards_env):
    await rewards_env.add_user("blogger")

    response = await rewards_env.client.post("/rewards/blog-share", json={"user_id": "blogger", "blog_id": "post-42"})
    assert response.status_code == 200
    assert response.json()["coins"] == 20

    data = await rewards_env.client.post("/rewards/data", json={"user_id": "blogger"})
    transactions = data.json()["transactions"]
    assert transactions[0]["type"] == "share"
    assert transactions[0]["amount"] == 20
    assert "post-42" in transactions[0]["description"]

    missing_blog = await rewards_env.client.post("/rewards/blog-share", json={"user_id": "blogger"})
    assert missing_blog.status_code == 400


@pytest.mark.asyncio
async def test_transactions_are_newest_first_and_capped_at_twenty(rewards_env):
    await rewards_env.add_user("busy")

    for _ in range(22):
        await rewards_env.client.post("/rewards/award", json={"user_id": "busy", "activity": "share"})
    await rewards_env.client.post("/rewards/award", json={"user_id": "busy", "activity": "game"})

    payload = (await rewards_env.client.post("/rewards/data", json={"user_id": "busy"})).json()
    assert len(payload["transactions"]) == 20
    assert payload["transactions"][0]["type"] == "game"
    assert payload["coins"] == 22 * 20 + 50
    assert payload["coins"] == await _ledger_total(rewards_env.session_maker, "busy")


@pytest.mark.asyncio
async def test_award_input_errors(rewards_env):
    await rewards_env.add_user("someone")

    unknown = await rewards_env.client.post("/rewards/award", json={"user_id": "someone", "activity": "jump"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["error"] == "invalid_input"

    missing_user = await rewards_env.client.post("/rewards/award", json={"activity": "game"})
    assert missing_user.status_code == 400

    malformed = await rewards_env.client.post("/rewards/award", json={"user_id": "someone", "activity": 7})
    assert malformed.status_code == 400
    assert malformed.json()["detail"]["error"] == "invalid_input"

    ghost = await rewards_env.client.post("/rewards/award", json={"user_id": "ghost", "activity": "game"})
    assert ghost.status_code == 404
    assert ghost.json()["detail"]["error"] == "user_not_found"


@pytest.mark.asyncio
async def test_initialize_user_is_idempotent(rewards_env):
    first = await rewards_env.client.post(
        "/rewards/users/initialize",
        json={"user_id": "newbie", "email": "Newbie@Example.com"},
    )
    assert first.status_code == 200
    user = first.json()["user"]
    assert user["coins"] == 0
    assert user["email"] == "newbie@example.com"
    assert len(user["referral_code"]) == 6

    second = await rewards_env.client.post(
        "/rewards/users/initialize",
        json={"user_id": "newbie", "email": "newbie@example.com"},
    )
    assert second.status_code == 200
    assert second.json()["user"]["referral_code"] == user["referral_code"]


@pytest.mark.asyncio
async def test_reward_data_for_unknown_user_is_not_found(rewards_env):
    response = await rewards_env.client.post("/rewards/data", json={"user_id": "nobody"})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "user_not_found"


@pytest.mark.asyncio
async def test_reward_data_reports_weekly_visit_progress(rewards_env):
    await rewards_env.add_user("regular")
    async with rewards_env.session_maker() as session:
        session.add_all(
            [UserVisit(user_id="regular", visit_date=day) for day in (date(2025, 3, 7), date(2025, 3, 8))]
        )
        await session.commit()

    await rewards_env.client.post("/rewards/award", json={"user_id": "regular", "activity": "visit"})

    payload = (await rewards_env.client.post("/rewards/data", json={"user_id": "regular"})).json()
    assert payload["days_to_next_fair_coin"] == 4
    assert payload["weekly_progress"] == pytest.approx(3 / 7)
    assert payload["last_visit_date"] == "2025-03-09"


@pytest.mark.asyncio
async def test_visit_logging_rejects_dialects_without_upsert():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = "mysql"

    with pytest.raises(NotImplementedError):
        await record_visit(db, "someone", date(2025, 3, 9))

    db.execute.assert_not_called()

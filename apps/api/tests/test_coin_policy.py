from datetime import date

import pytest

from services.coin_policy import (
    award_amount,
    daily_remaining,
    effective_daily_earnings,
    is_cap_exempt,
    next_login_streak,
    would_exceed_daily_limit,
)
from services.errors import InvalidInput
from services.visits import last_n_dates


TODAY = date(2025, 3, 9)


def test_award_table_amounts():
    assert award_amount("visit") == 10
    assert award_amount("game") == 50
    assert award_amount("share") == 20
    assert award_amount("referral") == 1000


@pytest.mark.parametrize("activity", [None, "", "jump", "GAME"])
def test_unknown_activity_is_invalid_input(activity):
    with pytest.raises(InvalidInput) as exc_info:
        award_amount(activity)
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["error"] == "invalid_input"


def test_only_referral_bypasses_the_cap():
    assert is_cap_exempt("referral")
    assert not is_cap_exempt("game")
    assert not is_cap_exempt("visit")


def test_stale_daily_earnings_count_as_zero():
    assert effective_daily_earnings(date(2025, 3, 8), 1200, TODAY) == 0
    assert effective_daily_earnings(None, 300, TODAY) == 0
    assert effective_daily_earnings(TODAY, 300, TODAY) == 300


def test_cap_allows_reaching_exactly_the_limit():
    assert not would_exceed_daily_limit(1150, 50)
    assert would_exceed_daily_limit(1200, 10)
    assert would_exceed_daily_limit(1190, 20)
    assert daily_remaining(1150) == 50
    assert daily_remaining(1200) == 0


def test_login_streak_progression():
    assert next_login_streak(None, 0, TODAY) == 1
    assert next_login_streak(date(2025, 3, 8), 4, TODAY) == 5
    assert next_login_streak(TODAY, 5, TODAY) == 5
    assert next_login_streak(date(2025, 3, 6), 9, TODAY) == 1


def test_last_n_dates_is_oldest_first_and_ends_today():
    window = last_n_dates(TODAY, 7)
    assert len(window) == 7
    assert window[0] == date(2025, 3, 3)
    assert window[-1] == TODAY

"""Routers package."""

from . import (
    health,
    rewards,
    referrals,
    redemptions,
    fair_play,
    admin,
)

"""User model."""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class User(Base):
    """Reward account for an externally authenticated user."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=True, index=True)

    coins = Column(Integer, nullable=False, default=0, server_default="0")
    fair_play_coins = Column(Integer, nullable=False, default=0, server_default="0")
    # Only meaningful while last_visit_date is today; readers reset it lazily.
    daily_coin_earnings = Column(Integer, nullable=False, default=0, server_default="0")
    last_visit_date = Column(Date, nullable=True)
    weekly_fair_play_awarded = Column(Date, nullable=True)
    login_streak = Column(Integer, nullable=False, default=0, server_default="0")
    # Moved by visit awards only; drives login_streak.
    last_login_date = Column(Date, nullable=True)

    referral_code = Column(String, unique=True, nullable=True, index=True)
    referred_by = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
        CheckConstraint("fair_play_coins >= 0", name="ck_users_fair_play_coins_non_negative"),
        CheckConstraint("daily_coin_earnings >= 0", name="ck_users_daily_coin_earnings_non_negative"),
        CheckConstraint("login_streak >= 0", name="ck_users_login_streak_non_negative"),
    )

    # Relationships
    transactions = relationship("CoinTransaction", back_populates="user", cascade="all, delete-orphan")
    visits = relationship("UserVisit", back_populates="user", cascade="all, delete-orphan")

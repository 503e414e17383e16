"""create rewards ledger schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("coins", sa.Integer(), server_default="0", nullable=False),
        sa.Column("fair_play_coins", sa.Integer(), server_default="0", nullable=False),
        sa.Column("daily_coin_earnings", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_visit_date", sa.Date(), nullable=True),
        sa.Column("weekly_fair_play_awarded", sa.Date(), nullable=True),
        sa.Column("login_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("referral_code", sa.String(), nullable=True),
        sa.Column("referred_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
        sa.CheckConstraint("fair_play_coins >= 0", name="ck_users_fair_play_coins_non_negative"),
        sa.CheckConstraint("daily_coin_earnings >= 0", name="ck_users_daily_coin_earnings_non_negative"),
        sa.CheckConstraint("login_streak >= 0", name="ck_users_login_streak_non_negative"),
        sa.ForeignKeyConstraint(["referred_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_referral_code"), "users", ["referral_code"], unique=True)
    op.create_index(op.f("ix_users_referred_by"), "users", ["referred_by"], unique=False)

    op.create_table(
        "coin_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_coin_transactions_user_id"), "coin_transactions", ["user_id"], unique=False)
    op.create_index(op.f("ix_coin_transactions_type"), "coin_transactions", ["type"], unique=False)
    op.create_index("ix_coin_transactions_user_created", "coin_transactions", ["user_id", "created_at"], unique=False)

    op.create_table(
        "user_visits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("visit_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "visit_date", name="uq_user_visits_user_date"),
    )
    op.create_index(op.f("ix_user_visits_user_id"), "user_visits", ["user_id"], unique=False)
    op.create_index(op.f("ix_user_visits_visit_date"), "user_visits", ["visit_date"], unique=False)

    op.create_table(
        "referrals",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("referrer_id", sa.String(), nullable=False),
        sa.Column("referred_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["referrer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["referred_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referrer_id", "referred_id", name="uq_referrals_pair"),
    )
    op.create_index(op.f("ix_referrals_referrer_id"), "referrals", ["referrer_id"], unique=False)
    op.create_index(op.f("ix_referrals_referred_id"), "referrals", ["referred_id"], unique=False)
    op.create_index(op.f("ix_referrals_status"), "referrals", ["status"], unique=False)
    op.create_index(op.f("ix_referrals_token"), "referrals", ["token"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_referrals_token"), table_name="referrals")
    op.drop_index(op.f("ix_referrals_status"), table_name="referrals")
    op.drop_index(op.f("ix_referrals_referred_id"), table_name="referrals")
    op.drop_index(op.f("ix_referrals_referrer_id"), table_name="referrals")
    op.drop_table("referrals")

    op.drop_index(op.f("ix_user_visits_visit_date"), table_name="user_visits")
    op.drop_index(op.f("ix_user_visits_user_id"), table_name="user_visits")
    op.drop_table("user_visits")

    op.drop_index("ix_coin_transactions_user_created", table_name="coin_transactions")
    op.drop_index(op.f("ix_coin_transactions_type"), table_name="coin_transactions")
    op.drop_index(op.f("ix_coin_transactions_user_id"), table_name="coin_transactions")
    op.drop_table("coin_transactions")

    op.drop_index(op.f("ix_users_referred_by"), table_name="users")
    op.drop_index(op.f("ix_users_referral_code"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

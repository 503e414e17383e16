"""Atomic balance updates for the coin ledger.

Every balance change follows the same shape: read a snapshot of the user's
balance columns, decide the new values, then write them with a
compare-and-swap ``UPDATE ... WHERE <columns still equal the snapshot>``. The
balance update, the transaction row and any follow-up writes are committed
together. When another request changed the row in between, the CAS matches
zero rows, the session rolls back and the whole read-decide-write cycle runs
again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.coin_transaction import CoinTransaction
from models.user import User
from services.errors import InvalidInput, PersistenceFailure, RewardsError, UserNotFound


logger = logging.getLogger(__name__)


def require_user_id(user_id: Optional[str]) -> str:
    cleaned = str(user_id or "").strip()
    if not cleaned:
        raise InvalidInput("user_id is required.")
    return cleaned


@dataclass(frozen=True)
class BalanceSnapshot:
    user_id: str
    coins: int
    fair_play_coins: int
    daily_coin_earnings: int
    last_visit_date: Optional[date]
    login_streak: int
    last_login_date: Optional[date] = None


@dataclass
class LedgerChange:
    """New column values for the user row plus the transaction to append."""

    values: Dict[str, Any]
    tx_type: str
    amount: int
    description: str
    after_write: Optional[Callable[[AsyncSession], Awaitable[None]]] = None


@dataclass
class LedgerResult:
    snapshot: BalanceSnapshot
    change: LedgerChange
    attempts: int

    @property
    def coins(self) -> int:
        return int(self.change.values.get("coins", self.snapshot.coins))

    @property
    def fair_play_coins(self) -> int:
        return int(self.change.values.get("fair_play_coins", self.snapshot.fair_play_coins))


async def load_snapshot(db: AsyncSession, user_id: str) -> BalanceSnapshot:
    result = await db.execute(
        select(
            User.id,
            User.coins,
            User.fair_play_coins,
            User.daily_coin_earnings,
            User.last_visit_date,
            User.login_streak,
            User.last_login_date,
        ).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise UserNotFound()
    return BalanceSnapshot(
        user_id=row.id,
        coins=int(row.coins or 0),
        fair_play_coins=int(row.fair_play_coins or 0),
        daily_coin_earnings=int(row.daily_coin_earnings or 0),
        last_visit_date=row.last_visit_date,
        login_streak=int(row.login_streak or 0),
        last_login_date=row.last_login_date,
    )


def _date_matches(column, value: Optional[date]):
    return column.is_(None) if value is None else column == value


def _snapshot_clauses(snapshot: BalanceSnapshot) -> list:
    return [
        User.id == snapshot.user_id,
        User.coins == snapshot.coins,
        User.fair_play_coins == snapshot.fair_play_coins,
        User.daily_coin_earnings == snapshot.daily_coin_earnings,
        User.login_streak == snapshot.login_streak,
        _date_matches(User.last_visit_date, snapshot.last_visit_date),
        _date_matches(User.last_login_date, snapshot.last_login_date),
    ]


async def compare_and_swap(db: AsyncSession, snapshot: BalanceSnapshot, values: Dict[str, Any]) -> bool:
    """Write ``values`` only if the row still matches ``snapshot``."""
    result = await db.execute(
        update(User)
        .where(*_snapshot_clauses(snapshot))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def append_transaction(
    db: AsyncSession,
    *,
    user_id: str,
    tx_type: str,
    amount: int,
    description: str,
    created_at: Optional[datetime] = None,
) -> CoinTransaction:
    entry = CoinTransaction(
        user_id=user_id,
        type=tx_type,
        amount=int(amount),
        description=description,
    )
    if created_at is not None:
        entry.created_at = created_at
    db.add(entry)
    return entry


async def apply_ledger_change(
    db: AsyncSession,
    user_id: str,
    plan: Callable[[BalanceSnapshot], LedgerChange],
    *,
    now: Optional[datetime] = None,
) -> LedgerResult:
    """Run ``plan`` against a fresh snapshot and commit its change atomically.

    ``plan`` raises a ``RewardsError`` to reject the operation; nothing is
    written in that case.
    """
    attempts = max(int(settings.LEDGER_MAX_CAS_ATTEMPTS), 1)
    for attempt in range(1, attempts + 1):
        try:
            snapshot = await load_snapshot(db, user_id)
            change = plan(snapshot)
            if not await compare_and_swap(db, snapshot, change.values):
                await db.rollback()
                logger.warning(
                    "ledger_conflict user=%s tx_type=%s attempt=%s/%s",
                    user_id,
                    change.tx_type,
                    attempt,
                    attempts,
                )
                continue
            append_transaction(
                db,
                user_id=user_id,
                tx_type=change.tx_type,
                amount=change.amount,
                description=change.description,
                created_at=now,
            )
            if change.after_write is not None:
                await change.after_write(db)
            await db.commit()
            return LedgerResult(snapshot=snapshot, change=change, attempts=attempt)
        except RewardsError:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("ledger_write_failed user=%s", user_id)
            raise PersistenceFailure() from exc

    raise PersistenceFailure("Balance changed concurrently; retry the request.")

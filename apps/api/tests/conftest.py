from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.user import User
from routers import rate_limit
from services.clock import get_clock


# Sunday, so the configured award weekday matches.
FIXED_NOW = datetime(2025, 3, 9, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class RewardsEnv:
    client: AsyncClient
    session_maker: async_sessionmaker
    clock: FrozenClock

    async def add_user(self, user_id: str, **fields) -> None:
        fields.setdefault("email", f"{user_id}@example.com")
        async with self.session_maker() as session:
            session.add(User(id=user_id, **fields))
            await session.commit()

    async def get_user(self, user_id: str) -> User:
        async with self.session_maker() as session:
            return await session.get(User, user_id)


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def rewards_env(tmp_path):
    db_path = tmp_path / "rewards.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    clock = FrozenClock(FIXED_NOW)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield RewardsEnv(client=client, session_maker=session_maker, clock=clock)

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_clock, None)
    await engine.dispose()

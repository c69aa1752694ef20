"""Shared fixtures: in-memory SQLite, a pinned civil clock and an authenticated client."""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CIVIL_TIMEZONE", "Asia/Singapore")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import cadence.models  # noqa: E402,F401
from cadence.api.v1.auth import get_current_user  # noqa: E402
from cadence.db.base import Base  # noqa: E402
from cadence.db.session import enable_sqlite_foreign_keys, get_db_session  # noqa: E402
from cadence.main import create_app  # noqa: E402
from cadence.models.user import User  # noqa: E402
from cadence.utils.clock import CivilClock, get_clock  # noqa: E402

# 2026-02-01 09:00 in Singapore
FIXED_NOW = datetime(2026, 2, 1, 1, 0, tzinfo=timezone.utc)


class MutableClock(CivilClock):
    """Civil clock whose instant the test controls."""

    def __init__(self, tz_name: str, start: datetime):
        self.current = start
        super().__init__(tz_name, now_fn=lambda: self.current)

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with factory() as session:
        yield session


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock("Asia/Singapore", FIXED_NOW)


@pytest.fixture
async def user(db: AsyncSession) -> User:
    user = User(username="alice", display_name="Alice")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def other_user(db: AsyncSession) -> User:
    user = User(username="bob", display_name="Bob")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def app(db: AsyncSession, clock: MutableClock, user: User):
    app = create_app()

    async def override_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    user_id = user.id

    async def override_current_user() -> User:
        return await db.get(User, user_id)

    app.dependency_overrides[get_current_user] = override_current_user
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

"""Shared fixtures: in-memory SQLite database, services bound to it, HTTP client"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from swap import config
from swap.database import Base, get_db, get_session_factory
import swap.models  # noqa: F401
from swap.services.exchange_engine import ExchangeEngine, get_exchange_engine
from swap.services.ledger import Ledger, admin_adjust
from swap.services.ratings import RatingService, get_rating_service
from swap.services.user_service import UserService, get_user_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(name="db_engine")
async def db_engine_fixture():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(name="ledger")
def ledger_fixture():
    return Ledger()


@pytest.fixture(name="exchange")
def exchange_fixture(session_factory, ledger):
    return ExchangeEngine(session_factory, ledger)


@pytest.fixture(name="user_service")
def user_service_fixture(session_factory, ledger):
    return UserService(session_factory, ledger)


@pytest.fixture(name="rating_service")
def rating_service_fixture(session_factory):
    return RatingService(session_factory)


@pytest.fixture(name="make_user")
def make_user_fixture(user_service, session_factory, monkeypatch):
    """Create a user holding exactly `tokens` tokens"""
    monkeypatch.setattr(config, "INITIAL_TOKEN_GRANT", 0)

    async def _make_user(email: str, tokens: int = 1, **profile):
        user = await user_service.upsert(email, **profile)
        if tokens:
            await admin_adjust(email, tokens, note="test funding", session_factory=session_factory)
        return user

    return _make_user


@pytest.fixture(name="balance_of")
def balance_of_fixture(session_factory, ledger):
    """Cached balance, asserting it still equals the entry sum"""

    async def _balance_of(user) -> int:
        async with session_factory() as db:
            cached = await ledger.balance_of(db, user.id)
            summed = await ledger.entry_sum(db, user.id)
        assert cached == summed, f"balance drift for {user.email}: cached={cached} entries={summed}"
        return cached

    return _balance_of


@pytest.fixture(name="client")
async def client_fixture(session_factory, exchange, user_service, rating_service):
    from main import app

    async def get_db_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_exchange_engine] = lambda: exchange
    app.dependency_overrides[get_user_service] = lambda: user_service
    app.dependency_overrides[get_rating_service] = lambda: rating_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

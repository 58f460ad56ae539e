"""Database connection and session management using SQLAlchemy async ORM"""
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from swap import config

DATABASE_URL = config.DATABASE_URL

# Convert sync postgresql:// to async postgresql+asyncpg://
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

# Pool sizing only applies to server databases (SQLite uses its own pool)
# pool_size=20: Keep 20 connections alive in the pool
# max_overflow=30: Allow 30 additional connections under load (total 50 max)
# pool_recycle=3600: Recycle connections every hour to prevent stale connections
_engine_options = {"echo": False, "pool_pre_ping": True}
if not DATABASE_URL.startswith("sqlite"):
    _engine_options.update(pool_size=20, max_overflow=30, pool_recycle=3600)

engine = create_async_engine(DATABASE_URL, **_engine_options)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for declarative models
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from the database to aware UTC.

    SQLite drops tzinfo on round trip; PostgreSQL returns aware values.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_session_factory() -> async_sessionmaker:
    """Dependency returning the session factory write paths open transactions from"""
    return AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI endpoints to get a read-only database session.

    Write paths go through ExchangeEngine, which opens its own transactions.

    Usage in FastAPI:
        @app.get("/items")
        async def read_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

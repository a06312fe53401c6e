"""
Database engines and sessions.

The API uses the async engine (asyncpg); Celery workers use the sync engine
(psycopg2) through ``SessionLocal``.
"""

from typing import AsyncGenerator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings

Base = declarative_base()


def _async_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _sync_url(url: str) -> str:
    if "+asyncpg" in url:
        return url.replace("postgresql+asyncpg", "postgresql+psycopg2")
    if "+aiosqlite" in url:
        return url.replace("sqlite+aiosqlite", "sqlite")
    return url


DATABASE_URL = settings.database_url or "sqlite+aiosqlite:///./driveassist.db"

_engine_kwargs = {"echo": False, "pool_pre_ping": True}
if DATABASE_URL.startswith("postgresql"):
    _engine_kwargs.update(
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )

engine = create_async_engine(_async_url(DATABASE_URL), **_engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

sync_engine = create_engine(_sync_url(DATABASE_URL), **_engine_kwargs)

SessionLocal = sessionmaker(bind=sync_engine, autoflush=False, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped async session, rolled back if the request fails."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

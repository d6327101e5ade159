"""
Database engine and sessions for the cockpit store

Production runs on Postgres through asyncpg with a bounded pool. Local runs
and the test suite use SQLite through aiosqlite, which keeps the driver's
own pool.

Sessions never expire attributes on commit: services commit once per
mutation and then build their responses from the same ORM objects.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from cockpit_store.core.config import settings


def _pool_options() -> Dict[str, Any]:
    """Pool sizing for the configured database."""
    if settings.DATABASE_URL.startswith("sqlite"):
        return {}
    if settings.ENVIRONMENT == "production":
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    # Shared dev/staging Postgres
    return {"pool_size": 2, "max_overflow": 5, "pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_pool_options(),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Request-scoped session.

    Services commit their own unit of work. Anything still pending when the
    route returns is committed here, and any exception rolls back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Same lifecycle for cron entry points such as scripts/cleanup_carts.py
get_db_session = asynccontextmanager(get_db)

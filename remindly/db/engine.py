"""Async engine, session factory, Redis client, and lifespan helpers.

The local record store runs on SQLAlchemy 2.0 async. SQLite (aiosqlite) is
the default; any async URL works. Redis backs the in-flight reminder guard.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from remindly.config import settings


def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine, applying SQLite connection pragmas when relevant.

    SQLite gets WAL journaling and a busy timeout so a reader never fails
    while a snapshot write is committing.
    """
    kwargs.setdefault("echo", settings.log_level == "DEBUG")
    engine = create_async_engine(url, **kwargs)

    if make_url(url).get_backend_name() == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Process defaults ─────────────────────────────────────────────────

engine: AsyncEngine = build_engine(settings.storage.database_url, pool_pre_ping=True)
async_session_factory = build_session_factory(engine)

redis_client: aioredis.Redis = aioredis.from_url(
    settings.storage.redis_url,
    decode_responses=True,
)


# ── Lifespan ─────────────────────────────────────────────────────────


async def init_db() -> None:
    """Check the database is reachable; outside production, create missing tables.

    Production schemas come from Alembic.
    """
    from remindly.models import Base

    async with engine.begin() as conn:
        if not settings.is_production:
            await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
    await redis_client.aclose()


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open the local database for the app's lifetime.

    Usage in FastAPI lifespan:
        async with db_lifespan():
            yield
    """
    await init_db()
    try:
        yield
    finally:
        await close_db()

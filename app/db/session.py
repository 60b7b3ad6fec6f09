"""
Async SQLAlchemy engine, session factory & scoped transactions (asyncpg driver).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

engine_args = {
    "echo": False,
    "pool_pre_ping": True,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_recycle": 300,
            "pool_timeout": 30,
            # statement timeout so no storage call blocks indefinitely
            "connect_args": {"server_settings": {"statement_timeout": "15000"}},
        }
    )

engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on normal exit; roll back on any exception and re-raise it."""
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise

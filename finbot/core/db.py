# finbot/core/db.py
# Engine, session factory and schema creation for the operations/users tables

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from finbot.core.config import settings


def make_engine(url: str) -> AsyncEngine:
    # in-memory sqlite lives on one connection; a pool would hand out empty databases
    if url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url):
        return create_async_engine(url, poolclass=StaticPool)
    return create_async_engine(url, pool_pre_ping=True)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine = make_engine(settings.database_url)
Session = make_session_factory(engine)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Commit on success, roll back on any error:
    >>> async with session_scope() as s:
    ...     s.add(op)
    """
    session = (factory or Session)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(bind: AsyncEngine | None = None) -> None:
    """create_all over every model; there are no migrations."""
    from finbot.models.user import Base
    import finbot.models.operation  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

"""
Async engine and session helpers for the campus feed store.

The engine and session factory are built lazily and cached, so importing this
module never opens a connection. Endpoints take a request-scoped session from
``get_db_session``; core modules accept an optional session and fall back to a
short-lived one of their own through ``get_db_session_context_manager``.
"""
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from campus_feed.config.settings import settings


@lru_cache
def get_async_engine() -> AsyncEngine:
    """The process-wide async engine for `settings.DATABASE_URL`."""
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@lru_cache
def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM rows readable after the per-operation commit
    return async_sessionmaker(
        bind=get_async_engine(),
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


@asynccontextmanager
async def _owned_session() -> AsyncIterator[AsyncSession]:
    async with get_async_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, committed when the handler returns."""
    async with _owned_session() as session:
        yield session


@asynccontextmanager
async def get_db_session_context_manager(existing_session: Optional[AsyncSession] = None) -> AsyncIterator[AsyncSession]:
    """
    Yield `existing_session` untouched, or a new session owned by this block.

    A caller-supplied session is never committed, rolled back or closed here.
    An owned session commits on a clean exit and rolls back when the block
    raises; leaving the factory's context closes it either way.
    """
    if existing_session is not None:
        yield existing_session
        return
    async with _owned_session() as session:
        yield session

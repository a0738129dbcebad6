"""Database engine and session factory construction.

This module provides SQLAlchemy async engine setup and session factory
construction. Nothing here reads global configuration: the caller passes a
``Settings`` instance and keeps the returned objects for the life of the
process.

Flow Diagram: Database Lifecycle
=================================
::
    ┌─────────────────┐
    │ create_engine() │
    │ (pool created)  │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ create_session_ │
    │ factory()       │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ init_db()       │
    │ creates tables  │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ Store opens one │
    │ session per op  │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ engine.dispose()│
    │ on shutdown     │
    └─────────────────┘

Key Behaviours
===============
- PostgreSQL gets a sized connection pool with pre-ping.
- SQLite (local runs and tests) uses NullPool, one connection per session.
- Sessions do not expire objects on commit, so records stay readable after
  their session closes.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Build the async engine from settings.
    create_session_factory():  Build the async session factory.
    init_db():  Create all tables.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from shortlink.config import Settings

__all__ = ["Base", "create_engine", "create_session_factory", "init_db"]


class Base(DeclarativeBase):
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            poolclass=NullPool,
        )

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Registers the models on Base.metadata before create_all.
    from shortlink import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from data.schema import Base


def make_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False)


engine = make_engine()
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create all tables (idempotent)."""
    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if target.dialect.name == "sqlite":
            # WAL keeps readers unblocked while a report is being written
            await conn.execute(text("PRAGMA journal_mode=WAL"))


@asynccontextmanager
async def get_session(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession]:
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

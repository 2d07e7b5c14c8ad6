"""Async engine, session factory and the request-scoped session dependency."""

from collections.abc import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for the conversation tables."""

    # Matches the index names in alembic/versions
    metadata = MetaData(naming_convention={"ix": "ix_%(column_0_label)s"})


# One API process; chat streams hold a connection only while saving
async_engine = create_async_engine(
    settings.database_url_async,
    echo=settings.debug and settings.app_env == "development",
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=5,
)

async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session for one request, committed when the handler returns.

    Streaming routes commit their own writes before the body starts and
    save the reply through a fresh ``async_session_maker`` session, since
    the response outlives this dependency.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    """Dispose of pooled connections on shutdown."""
    await async_engine.dispose()

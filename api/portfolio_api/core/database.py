"""
Database Configuration and Session Management

Async SQLAlchemy engine and session factory for the credential store
(PostgreSQL via asyncpg). Every connection carries a command timeout so a
stalled database surfaces as an error instead of hanging a login.
"""

import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from portfolio_api.config import Settings, get_settings


def _prepare_asyncpg_url(url: str, timeout: float) -> tuple[str, dict]:
    """
    Prepare a database URL and connect_args for asyncpg.

    asyncpg rejects 'sslmode' as a query parameter, so it is translated into
    an SSL context. The command timeout bounds every statement.

    Args:
        url: PostgreSQL database URL (may contain sslmode parameter)
        timeout: Seconds allowed per statement and per connect

    Returns:
        Tuple of (cleaned_url without sslmode, connect_args dict)
    """
    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)
    connect_args: dict = {"timeout": timeout, "command_timeout": timeout}

    if "sslmode" in query_params:
        sslmode = query_params.pop("sslmode")[0]

        if sslmode in ("require", "verify-ca", "verify-full"):
            ssl_context = ssl.create_default_context()
            if sslmode == "require":
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE
            elif sslmode == "verify-ca":
                ssl_context.check_hostname = False
            connect_args["ssl"] = ssl_context
        elif sslmode == "prefer":
            connect_args["ssl"] = "prefer"

    new_query = urlencode(query_params, doseq=True)
    cleaned_url = urlunparse(parsed._replace(query=new_query))

    return cleaned_url, connect_args


# Global engine and session factory (initialized on startup)
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """
    Get or create the async SQLAlchemy engine.

    Args:
        settings: Optional settings override (for testing)

    Returns:
        AsyncEngine instance
    """
    global _engine

    if _engine is None:
        if settings is None:
            settings = get_settings()

        db_url, connect_args = _prepare_asyncpg_url(
            settings.database_url, settings.database_timeout_seconds
        )

        _engine = create_async_engine(
            db_url,
            echo=settings.debug,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_timeout_seconds,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    return _engine


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Get or create the async session factory.

    Args:
        settings: Optional settings override (for testing)

    Returns:
        async_sessionmaker instance
    """
    global _async_session_factory

    if _async_session_factory is None:
        engine = get_engine(settings)
        _async_session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database sessions in FastAPI routes.

    Yields:
        AsyncSession committed on success and rolled back on error
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions outside of FastAPI routes.

    Used by the startup bootstrap.
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Verify database connectivity and create missing tables.

    Called on application startup.
    """
    from portfolio_api.models.orm import Base

    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close database connections.

    Called on application shutdown.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


def reset_db_state() -> None:
    """Clear the engine and session factory (for testing)."""
    global _engine, _async_session_factory
    _engine = None
    _async_session_factory = None

"""
Database Connection Management

One async engine per process. Report queries only read, so sessions handed
out by ``get_db`` are rolled back on error and never committed.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from retail_reports.config import get_settings
from retail_reports.config.settings import DatabaseSettings

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str, settings: DatabaseSettings) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": True}
    # SQLite files are only used for local runs and tests
    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
        )
    return options


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and verify the database answers.

    Args:
        url: Async database URL; defaults to the configured PostgreSQL URL

    Raises:
        Exception: Whatever the driver raises when the database is unreachable
    """
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    settings = get_settings().database
    url = url or settings.async_url
    engine = create_async_engine(url, **_engine_options(url, settings))

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database unreachable", url=make_url(url).render_as_string(hide_password=True), error=str(e))
        await engine.dispose()
        raise

    _engine = engine
    _session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    logger.info("Database connected", backend=engine.dialect.name, database=engine.url.database)
    return engine


async def close_database() -> None:
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database connections closed")


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-only session scope.

    Example:
        async with get_db() as db:
            result = await db.execute(query)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

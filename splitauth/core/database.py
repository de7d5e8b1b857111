"""splitauth database configuration - async SQLAlchemy.

Engines are built per application from its Settings (see
``splitauth.main.create_app``), which keeps them on ``app.state``.
"""

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from splitauth.core.config import Settings
from splitauth.core.logging import get_logger

logger = get_logger("database")

# Base class for models
Base = declarative_base()


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    Pool sizing only applies to server databases; SQLite (tests, local demos)
    keeps SQLAlchemy's default pool for the driver.
    """
    kwargs: dict[str, Any] = {
        # Only echo SQL when debug is explicitly enabled
        "echo": config.debug and config.log_level == "DEBUG",
    }
    if not config.is_sqlite:
        kwargs.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_timeout=config.db_pool_timeout,
            pool_recycle=config.db_pool_recycle,
            pool_pre_ping=True,
        )
    return create_async_engine(config.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session from the app's session factory."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            # BaseException also covers asyncio.CancelledError, so a cancelled
            # request still rolls back
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet (dev/demo setups)."""
    # Import models so they register with Base.metadata
    import splitauth.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_connection(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """Check if database is reachable."""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False

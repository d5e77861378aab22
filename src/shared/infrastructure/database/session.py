"""
Database Session Factory
Creates async SQLAlchemy sessions with proper configuration
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseSessionFactory:
    """
    Factory for creating async database sessions.

    Manages the async engine and session maker. Pool sizing only applies to
    server databases; SQLite URLs get the driver's default pool.
    """

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 10, max_overflow: int = 10) -> None:
        """
        Initialize session factory with database connection.

        Args:
            database_url: Async SQLAlchemy URL (postgresql+asyncpg, sqlite+aiosqlite)
            echo: Whether to log SQL statements (debug mode)
            pool_size: Connection pool size
            max_overflow: Max overflow connections beyond pool_size
        """
        self.database_url = database_url
        self.echo = echo

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)

        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)

        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info("database_session_factory_initialized", pool_size=pool_size, max_overflow=max_overflow)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database_engine_disposed")

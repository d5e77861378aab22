# src/shared/database.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.shared.infrastructure.database.session import DatabaseSessionFactory

_database: Optional[DatabaseSessionFactory] = None


def create_database_engine(database_url: Optional[str] = None) -> DatabaseSessionFactory:
    """Create the process-wide engine (idempotent)."""
    global _database
    if _database is None:
        _database = DatabaseSessionFactory(
            database_url or settings.effective_database_url,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return _database


async def close_database_engine() -> None:
    global _database
    if _database is not None:
        await _database.dispose()
        _database = None


def get_database() -> DatabaseSessionFactory:
    """Lazy singleton (prevents '_database is unbound' outside the app lifespan)."""
    return create_database_engine()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return get_database().session_factory

"""Database engine and transaction helpers.

Uses SQLAlchemy asyncio with aiosqlite by default. The database URL is
configured via the AGENTSTUDIO_DATABASE_URL environment variable.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from agentstudio.config import get_settings

SessionFactory = async_sessionmaker[AsyncSession]

# Engine instance used by the CLI (lazy initialization)
_engine: AsyncEngine | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine.

    SQLite connections get foreign key enforcement so the
    organizations -> agents cascade holds.
    """
    engine = create_async_engine(database_url, echo=echo, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def transaction(session_factory: SessionFactory) -> AsyncGenerator[AsyncSession]:
    """Open a session that commits on success and rolls back on any error.

    Usage:
        async with transaction(factory) as session:
            session.add(record)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_engine() -> AsyncEngine:
    """Get or create the engine described by the cached settings."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.debug)
    return _engine


async def close_db() -> None:
    """Dispose of the cached engine."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None

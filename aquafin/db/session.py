"""
Async engine and per-request session.

``get_db`` is the FastAPI dependency every endpoint uses; services receive
repositories and a ``UnitOfWork`` built over that one session, so a
distribution's writes share a single transaction.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from aquafin.core.config import settings


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    # aiosqlite wraps a sync connection; "connect" fires on the sync engine.
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine() -> AsyncEngine:
    """
    Create the engine for the configured backend.

    In-memory SQLite uses ``StaticPool`` so every connection sees the same
    database; PostgreSQL gets the tuned pool from settings.
    """
    if settings.USE_SQLITE:
        sqlite_engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_foreign_keys(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = build_engine()

# Attributes stay loaded after commit; async sessions cannot lazy-load.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; closed when the request finishes."""
    async with AsyncSessionLocal() as session:
        yield session

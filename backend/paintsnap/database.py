"""
PaintSnap Backend — Database Engine & Session Management
==========================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   `Database` owns the engine and session factory. `create_app()` builds
       one and stores it on `app.state.database`; nothing is created at import.
Who:   Route handlers receive sessions via `get_db_session`; tests build a
       `Database` pointed at SQLite.
When:  Engine is created by the app factory; sessions are created per-request.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
    SQLite (tests) gets no pool arguments; its dialect rejects them.
"""

import logging
from typing import AsyncGenerator, List, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from paintsnap.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for migrations.
    """
    pass


class Database:
    """
    Owns the async engine and the session factory for one application.

    Lifecycle:
        database = Database(settings)      # engine created, no connection yet
        await database.create_all()        # optional, dev/test only
        ...                                # sessions per request
        await database.dispose()           # close pooled connections
    """

    def __init__(self, settings: Settings, url: Optional[str] = None):
        self.url = url or settings.database_url
        engine_kwargs = {"echo": settings.log_level == "DEBUG"}
        if not self.url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
            )
        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        if self.url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        # expire_on_commit=False: attributes stay readable after the request commits
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table registered on `Base.metadata`."""
        # Models must be imported so their tables are registered
        import paintsnap.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def ping(self) -> bool:
        """Lightweight `SELECT 1` used by the health check."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Gracefully closes all connections in the pool."""
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ── Session Dependency ────────────────────────────────────────────────────
# session.info key holding blob storage keys orphaned during the request
ORPHANED_BLOBS_KEY = "orphaned_blobs"


def queue_blob_release(session: AsyncSession, keys: List[str]) -> None:
    """Queue storage keys to be released once `session` commits."""
    session.info.setdefault(ORPHANED_BLOBS_KEY, []).extend(keys)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the application's factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session
        6. After a successful commit: releases the blobs queued with
           `queue_blob_release`

    Every write a request makes, including a full cascading delete, lands
    in this one transaction. A rolled-back request keeps its files, since
    the rows that reference them survive.
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            orphaned = session.info.pop(ORPHANED_BLOBS_KEY, [])
            await session.close()

    if orphaned:
        await request.app.state.blob_store.release(orphaned)

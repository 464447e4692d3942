"""Database connection and session management."""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from turnover.config import settings
from turnover.observability.metrics import metrics

# Execution option asking SQLite to take the write lock at BEGIN
SQLITE_BEGIN_IMMEDIATE = "turnover_sqlite_begin_immediate"


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool and dialect settings for the URL."""
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        kwargs.update(pool_size=20, max_overflow=10)

    new_engine = create_async_engine(database_url, **kwargs)
    if database_url.startswith("sqlite"):
        _enable_sqlite_savepoints(new_engine)
    _attach_query_metrics(new_engine)
    return new_engine


def _enable_sqlite_savepoints(target_engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT works on pysqlite/aiosqlite."""
    sync_engine = target_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        # Readers in one session must not block a commit in another
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(sync_engine, "begin")
    def do_begin(conn):
        if conn.get_execution_options().get(SQLITE_BEGIN_IMMEDIATE):
            # Waits on the busy timeout instead of failing at the first write
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def _attach_query_metrics(target_engine: AsyncEngine) -> None:
    """Attach SQLAlchemy event listeners for query metrics."""
    sync_engine = target_engine.sync_engine
    if getattr(sync_engine, "_turnover_metrics_attached", False):
        return

    @event.listens_for(sync_engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info.pop("query_start_time", None)
        if start_time is None:
            return
        metrics.inc_counter("db.query.count")
        metrics.observe("db.query.duration_ms", (time.perf_counter() - start_time) * 1000.0)

    sync_engine._turnover_metrics_attached = True


engine = build_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


@asynccontextmanager
async def get_session(immediate: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session that commits on success.

    immediate=True serializes writers on SQLite: the transaction takes the
    write lock when it begins, so a concurrent writer waits for the commit
    and then reads the committed state. Other dialects ignore it.
    """
    async with async_session_factory() as session:
        try:
            if immediate:
                await session.connection(execution_options={SQLITE_BEGIN_IMMEDIATE: True})
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

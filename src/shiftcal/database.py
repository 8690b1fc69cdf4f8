"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

DEFAULT_BUSY_TIMEOUT_MS = 30_000

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _install_sqlite_hooks(engine: AsyncEngine, busy_timeout_ms: int, transactional_ddl: bool) -> None:
    """
    Per-connection SQLite setup.

    Request traffic leaves transaction control to the driver, which opens a
    transaction right before the first write. A writer that finds the database
    locked then waits up to ``busy_timeout_ms`` instead of failing, and WAL
    lets readers proceed while a write is in flight.

    ``transactional_ddl`` is for the migration engine only: the driver would
    otherwise run DDL outside any transaction, so BEGIN is issued explicitly
    and a failing unit rolls back whole.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        if transactional_ddl:
            dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        if not transactional_ddl:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    if transactional_ddl:

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN")


def create_engine(
    url: str,
    echo: bool = False,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    transactional_ddl: bool = False,
) -> AsyncEngine:
    """Create an async engine with dialect-specific connection setup."""
    engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine, busy_timeout_ms, transactional_ddl)
    return engine


async def init_db(url: str, echo: bool = False, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
    """Initialize the database engine and session factory."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_engine(url, echo=echo, busy_timeout_ms=busy_timeout_ms)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Dispose of the database engine."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory (used by background jobs outside a request)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_session_factory()() as session:
        yield session

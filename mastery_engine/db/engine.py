"""Database engine configuration."""

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from mastery_engine.core.config import settings


def _connect_args(url: str, timeout_ms: int) -> dict[str, Any]:
    """Driver-level timeouts so a stuck lock surfaces as an error instead of blocking."""
    if url.startswith("sqlite"):
        return {"timeout": timeout_ms / 1000.0, "check_same_thread": False}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}"}
    return {}


def _use_immediate_transactions(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, which lets two readers both
    try to upgrade and fail with "database is locked" without waiting.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str | None = None, timeout_ms: int | None = None) -> Engine:
    """Create SQLAlchemy engine."""
    url = url or settings.DATABASE_URL
    timeout_ms = timeout_ms or settings.DB_STATEMENT_TIMEOUT_MS

    kwargs: dict[str, Any] = {
        "connect_args": _connect_args(url, timeout_ms),
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,
    }
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.DB_POOL_SIZE
        kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        kwargs["pool_timeout"] = timeout_ms / 1000.0

    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        _use_immediate_transactions(engine)
    return engine


# Global engine instance
engine = create_db_engine()

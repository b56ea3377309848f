"""
Database engine creation for the durable key-value medium.

Converts configured sync URLs to their async driver variants and applies
SQLite-specific pool settings.
"""

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _get_async_url(url: str) -> str:
    """Convert sync database URL to async variant."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def _get_pool_kwargs(url: str) -> dict:
    """Get pool configuration for the database type."""
    # SQLite with aiosqlite needs StaticPool for single connection reuse
    if "sqlite" in url:
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {"pool_pre_ping": True}


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    prefix = "sqlite+aiosqlite:///"
    if not url.startswith(prefix):
        return
    path = url[len(prefix):]
    if not path or path == ":memory:":
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def create_engine_for_url(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for ``url``.

    Args:
        url: Sync or async database URL (``sqlite:///./xtreamtv.db``).
        echo: Log SQL statements.

    Returns:
        Configured async engine.
    """
    async_url = _get_async_url(url)
    _ensure_sqlite_directory(async_url)

    engine = create_async_engine(
        async_url,
        echo=echo,
        **_get_pool_kwargs(async_url),
    )

    if "sqlite" in async_url and ":memory:" not in async_url:
        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            # Enable WAL mode for SQLite
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    logger.debug(f"Database engine created for {async_url}")
    return engine

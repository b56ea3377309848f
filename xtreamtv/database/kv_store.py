"""
Durable key-value medium.

Each ``set`` replaces a whole named record inside one transaction, so a
failed write leaves the previous value in place.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from xtreamtv.database.connection import create_engine_for_url
from xtreamtv.database.models import Base, KeyValueEntry
from xtreamtv.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract durable key-value medium."""

    async def initialize(self) -> None:
        """Prepare the medium. Safe to call more than once."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get the stored value, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Replace the stored value atomically."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the record. Returns True if it existed."""


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed medium for tests and non-persistent setups."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class SqliteKeyValueStore(KeyValueStore):
    """
    SQLite-backed medium using the async SQLAlchemy engine.

    Usage:
        store = SqliteKeyValueStore("sqlite:///./xtreamtv.db")
        await store.initialize()
        await store.set("progress", "[]")
    """

    def __init__(self, url: str = "sqlite:///./xtreamtv.db", echo: bool = False):
        self.url = url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageError("Key-value store not initialized. Call initialize() first.")
        return self._engine

    async def initialize(self) -> None:
        if self._engine is not None:
            return
        try:
            self._engine = create_engine_for_url(self.url, echo=self._echo)
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            self._engine = None
            raise StorageError(f"Cannot open key-value store at {self.url}: {e}") from e
        logger.info(f"Key-value store ready at {self.url}")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    select(KeyValueEntry.value).where(KeyValueEntry.key == key)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        stmt = sqlite_insert(KeyValueEntry).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[KeyValueEntry.key],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        try:
            async with self.engine.begin() as conn:
                await conn.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    delete(KeyValueEntry).where(KeyValueEntry.key == key)
                )
                return result.rowcount > 0
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e

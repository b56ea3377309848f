"""
Persistent watch progress store.

Keeps a bounded collection of playback positions under one named record
of a key-value medium, serialized as a JSON array of
``{type, id, position, duration, timestamp}`` objects.
"""

import asyncio
import json
import logging
import math
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from xtreamtv.database.kv_store import KeyValueStore
from xtreamtv.errors import StorageError
from xtreamtv.progress.models import ContentKind, ProgressCollection, ProgressRecord

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
CONTENT_KINDS = ("movie", "series")


class ProgressStore:
    """
    Durable record of playback position per content item.

    Records are unique per ``(type, id)``; saving replaces the whole record.
    The collection is pruned by age on startup and capped at
    ``max_entries`` on every write, evicting the oldest ``timestamp`` first.

    Read paths are best-effort: ``get_progress`` returns 0 on any storage
    error. Write paths validate the full collection before committing and
    raise ``StorageError`` without touching the medium when it is invalid.
    """

    DEFAULT_STORAGE_KEY = "xtreamtv_progress"
    DEFAULT_MAX_ENTRIES = 100

    def __init__(
        self,
        medium: KeyValueStore,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.medium = medium
        self.storage_key = storage_key
        self.max_entries = max_entries
        self._clock = clock
        self._lock = asyncio.Lock()

    async def initialize(self, max_age_days: Optional[float] = 30) -> None:
        """Open the medium and prune stale records once."""
        await self.medium.initialize()
        if max_age_days:
            try:
                removed = await self.prune_old_entries(max_age_days)
                if removed:
                    logger.info(f"Pruned {removed} stale progress records")
            except StorageError as e:
                logger.error(f"Failed to prune old progress entries: {e}")

    async def close(self) -> None:
        await self.medium.close()

    async def save_progress(
        self,
        kind: ContentKind,
        content_id: str,
        position: float,
        duration: float,
    ) -> ProgressRecord:
        """
        Record the playback position for ``(kind, content_id)``.

        Negative values are clamped to 0.

        Raises:
            StorageError: Invalid arguments, or the medium rejected the write.
        """
        _check_key(kind, content_id)
        if not _is_number(position) or not _is_number(duration):
            raise StorageError("Invalid position or duration")

        try:
            record = ProgressRecord(
                type=kind,
                id=content_id,
                position=max(0.0, float(position)),
                duration=max(0.0, float(duration)),
                timestamp=self._clock(),
            )
        except ValidationError as e:
            raise StorageError(f"Invalid progress record: {e}") from e

        async with self._lock:
            records = [r for r in await self._read_all() if r.key != record.key]
            await self._write_all(records, pinned=record)

        logger.debug(f"Saved progress {kind}/{content_id}: {record.position:.0f}/{record.duration:.0f}s")
        return record

    async def get_progress(self, kind: ContentKind, content_id: str) -> float:
        """
        Return the recorded position in seconds.

        Best-effort: 0 when the record is absent, the arguments are invalid,
        or the medium cannot be read.
        """
        record = await self.get_record(kind, content_id)
        return max(0.0, record.position) if record else 0.0

    async def get_record(self, kind: ContentKind, content_id: str) -> Optional[ProgressRecord]:
        """Return the full record, or None. Never raises on storage errors."""
        if kind not in CONTENT_KINDS or not isinstance(content_id, str) or not content_id:
            return None
        try:
            records = await self._read_all()
        except StorageError as e:
            logger.warning(f"Failed to get progress for {kind}/{content_id}: {e}")
            return None
        for record in records:
            if record.key == (kind, content_id):
                return record
        return None

    async def list_records(self) -> list[ProgressRecord]:
        """All records, most recently updated first."""
        records = await self._read_all()
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    async def clear_progress(self, kind: ContentKind, content_id: str) -> bool:
        """Delete one record. Returns True if it existed."""
        _check_key(kind, content_id)
        async with self._lock:
            records = await self._read_all()
            remaining = [r for r in records if r.key != (kind, content_id)]
            if len(remaining) == len(records):
                return False
            await self._write_all(remaining)
            return True

    async def clear_all(self) -> None:
        """Wipe the whole collection."""
        async with self._lock:
            await self.medium.delete(self.storage_key)
        logger.info("Cleared all watch progress")

    async def prune_old_entries(self, max_age_days: float = 30) -> int:
        """
        Remove records older than ``max_age_days``.

        Records stamped in the future (clock skew) are invalid and removed too.

        Returns:
            Number of records removed.
        """
        if not _is_number(max_age_days) or max_age_days <= 0:
            raise ValueError("max_age_days must be a positive number")

        max_age = max_age_days * SECONDS_PER_DAY
        async with self._lock:
            now = self._clock()
            records = await self._read_all()
            kept = [r for r in records if 0 <= now - r.timestamp <= max_age]
            removed = len(records) - len(kept)
            if removed:
                await self._write_all(kept)
            return removed

    async def _read_all(self) -> list[ProgressRecord]:
        """
        Load the collection. Invalid entries are dropped; an unparseable
        document reads as empty. Medium failures raise ``StorageError``.
        """
        raw = await self.medium.get(self.storage_key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"Invalid progress document, ignoring it: {e}")
            return []

        if not isinstance(data, list):
            logger.error("Invalid progress document format, expected a list")
            return []

        records: dict[tuple[str, str], ProgressRecord] = {}
        dropped = 0
        for item in data:
            try:
                record = ProgressRecord.model_validate(item)
            except ValidationError:
                dropped += 1
                continue
            records.pop(record.key, None)
            records[record.key] = record

        if dropped:
            logger.warning(f"Dropped {dropped} invalid progress records")
        return list(records.values())

    async def _write_all(
        self,
        records: list[ProgressRecord],
        pinned: Optional[ProgressRecord] = None,
    ) -> None:
        """
        Validate the bounded collection and commit it in one write.

        ``pinned`` is always kept. Only the other records compete for the
        remaining slots, whatever the timestamps say.
        """
        ordered = sorted(records, key=lambda r: r.timestamp)
        if pinned is None:
            trimmed = ordered[-self.max_entries:]
        else:
            room = self.max_entries - 1
            trimmed = (ordered[-room:] if room else []) + [pinned]

        payload: list[dict[str, Any]] = [r.model_dump() for r in trimmed]
        try:
            validated = ProgressCollection.validate_python(payload)
        except ValidationError as e:
            raise StorageError(f"Refusing to write invalid progress collection: {e}") from e

        if len({r.key for r in validated}) != len(validated):
            raise StorageError("Refusing to write progress collection with duplicate keys")

        try:
            document = json.dumps(payload, allow_nan=False)
        except ValueError as e:
            raise StorageError(f"Cannot serialize progress collection: {e}") from e

        await self.medium.set(self.storage_key, document)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _check_key(kind: Any, content_id: Any) -> None:
    if kind not in CONTENT_KINDS:
        raise StorageError(f"Invalid content kind: {kind!r}")
    if not isinstance(content_id, str) or not content_id:
        raise StorageError("Invalid ID")


__all__ = ["ProgressStore", "SECONDS_PER_DAY"]

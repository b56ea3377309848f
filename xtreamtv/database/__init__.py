"""
Durable storage for XtreamTV.

A single key-value table holds named JSON records such as the watch
progress collection.
"""

from xtreamtv.database.connection import create_engine_for_url
from xtreamtv.database.kv_store import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from xtreamtv.database.models import Base, KeyValueEntry

__all__ = [
    "Base",
    "KeyValueEntry",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "create_engine_for_url",
]

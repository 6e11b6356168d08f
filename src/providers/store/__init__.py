"""Content store implementations.

    MemoryContentStore — dictionaries; development and tests
    SQLiteContentStore — aiosqlite; single-node deployments
"""

from src.providers.store.memory_store import MemoryContentStore
from src.providers.store.sqlite_store import SQLiteContentStore

__all__ = ["MemoryContentStore", "SQLiteContentStore"]

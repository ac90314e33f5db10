"""Durable key-value storage backends."""

from contextlib import suppress

from mealsync.adapters.base import KeyValueStore
from mealsync.adapters.file import FileStore
from mealsync.adapters.memory import AsyncMemoryStore

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from mealsync.adapters.redis import AsyncRedisStore

__all__ = [
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "FileStore",
    "KeyValueStore",
]

"""In-memory key-value store."""

import asyncio


class AsyncMemoryStore:
    """Async in-memory store. Values live as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        """Get a value by key."""
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store a value."""
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        """Delete a value."""
        async with self._lock:
            self._data.pop(key, None)

    async def clear(self) -> None:
        """Remove every value."""
        async with self._lock:
            self._data.clear()

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass

"""Base protocol for durable key-value storage backends."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Async string key-value store interface."""

    async def get(self, key: str) -> str | None:
        """Get a value by key."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a value. Missing keys are ignored."""
        ...

    async def clear(self) -> None:
        """Remove every value owned by this store."""
        ...

    async def disconnect(self) -> None:
        """Release the storage backend."""
        ...

"""Redis key-value store."""

from __future__ import annotations

from typing import Any


class AsyncRedisStore:
    """Async Redis store. Keys are namespaced under ``prefix``."""

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "mealsync",
    ) -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "mealsync") -> AsyncRedisStore:
        """Create a store from a ``redis://`` URL."""
        import redis.asyncio

        return cls(redis.asyncio.from_url(url), prefix=prefix)

    def _key(self, key: str) -> str:
        """Generate the full Redis key."""
        return f"{self._prefix}:kv:{key}"

    async def get(self, key: str) -> str | None:
        """Get a value by key."""
        data = await self._client.get(self._key(key))
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return str(data)

    async def set(self, key: str, value: str) -> None:
        """Store a value. Values never expire."""
        await self._client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        """Delete a value."""
        await self._client.delete(self._key(key))

    async def clear(self) -> None:
        """Delete every key under this store's prefix."""
        keys = [
            key
            async for key in self._client.scan_iter(
                match=f"{self._prefix}:kv:*", count=100
            )
        ]
        if keys:
            await self._client.delete(*keys)

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

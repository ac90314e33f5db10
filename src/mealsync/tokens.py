"""Token store - the single owner of the current access/refresh pair."""

from __future__ import annotations

import logging

from mealsync.adapters.base import KeyValueStore
from mealsync.adapters.memory import AsyncMemoryStore
from mealsync.types import TokenPair

logger = logging.getLogger("mealsync.tokens")


class TokenStore:
    """Holds the current TokenPair and mirrors it to durable storage.

    The in-memory copy is authoritative for the session: storage failures are
    logged and otherwise ignored. Every change bumps ``generation``, which
    lets callers detect that the pair changed (or was cleared) while they
    were suspended.
    """

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        *,
        access_key: str = "auth_token",
        refresh_key: str = "refresh_token",
    ) -> None:
        self._storage = storage if storage is not None else AsyncMemoryStore()
        self._access_key = access_key
        self._refresh_key = refresh_key
        self._pair: TokenPair | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def access_token(self) -> str | None:
        return self._pair.access_token if self._pair else None

    @property
    def refresh_token(self) -> str | None:
        return self._pair.refresh_token if self._pair else None

    @property
    def is_authenticated(self) -> bool:
        return self._pair is not None

    def get(self) -> TokenPair | None:
        """Return the current pair, or None when unauthenticated."""
        return self._pair

    async def load(self) -> TokenPair | None:
        """Load a persisted pair. A missing half means unauthenticated."""
        generation = self._generation
        try:
            access = await self._storage.get(self._access_key)
            refresh = await self._storage.get(self._refresh_key)
        except Exception:
            logger.warning("Could not read persisted tokens", exc_info=True)
            return self._pair

        # set()/clear() during the read win over what was on disk
        if generation != self._generation:
            return self._pair
        if access and refresh:
            self._pair = TokenPair(access_token=access, refresh_token=refresh)
            self._generation += 1
            logger.debug("Loaded persisted tokens")
        return self._pair

    async def set(self, pair: TokenPair) -> None:
        """Replace the current pair and persist it."""
        self._pair = pair
        self._generation += 1
        generation = self._generation
        try:
            await self._storage.set(self._access_key, pair.access_token)
            if generation != self._generation:
                return
            await self._storage.set(self._refresh_key, pair.refresh_token)
        except Exception:
            logger.warning("Could not persist tokens", exc_info=True)

    async def clear(self) -> None:
        """Forget the pair in memory and in storage.

        The in-memory pair is dropped before the first suspension point, so
        no request started after this call can pick up the old token.
        """
        self._pair = None
        self._generation += 1
        generation = self._generation
        try:
            await self._storage.delete(self._access_key)
            if generation != self._generation:
                return
            await self._storage.delete(self._refresh_key)
        except Exception:
            logger.warning("Could not remove persisted tokens", exc_info=True)

    async def close(self) -> None:
        await self._storage.disconnect()


__all__ = ["TokenStore"]

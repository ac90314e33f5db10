"""Single-flight token refresh."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from mealsync.errors import AuthCode, AuthError
from mealsync.tokens import TokenStore
from mealsync.types import TokenPair

logger = logging.getLogger("mealsync.refresh")

RefreshFn = Callable[[str], Awaitable[TokenPair]]


class RefreshCoordinator:
    """Guarantees at most one in-flight refresh.

    Concurrent callers share the same task and observe the same outcome.
    Waiters are shielded: a caller that is cancelled stops waiting without
    cancelling the refresh for everyone else.
    """

    def __init__(self, tokens: TokenStore, perform: RefreshFn) -> None:
        self._tokens = tokens
        self._perform = perform
        self._pending: asyncio.Task[TokenPair] | None = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def refresh(self) -> TokenPair:
        """Refresh the token pair, joining an in-flight refresh if any.

        Raises:
            AuthError: ``NO_REFRESH_TOKEN`` when there is nothing to refresh
                with, ``REFRESH_FAILED`` when the refresh itself failed.
        """
        if self._pending is None:
            pair = self._tokens.get()
            if pair is None:
                raise AuthError(
                    "Refresh token not available", code=AuthCode.NO_REFRESH_TOKEN
                )
            task = asyncio.ensure_future(self._run(pair, self._tokens.generation))
            task.add_done_callback(self._settled)
            self._pending = task
        else:
            logger.debug("Joining in-flight token refresh")
        return await asyncio.shield(self._pending)

    def _settled(self, task: asyncio.Task[TokenPair]) -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled():
            task.exception()  # Mark retrieved; waiters get it through shield

    async def _run(self, pair: TokenPair, generation: int) -> TokenPair:
        logger.info("Refreshing access token")
        try:
            new_pair = await self._perform(pair.refresh_token)
        except Exception as exc:
            logger.warning("Token refresh failed: %r", exc)
            if self._tokens.generation == generation:
                await self._tokens.clear()
            raise AuthError(
                "Token refresh failed", code=AuthCode.REFRESH_FAILED, cause=exc
            ) from exc
        finally:
            self._pending = None

        if self._tokens.generation != generation:
            # Logout (or a new login) happened meanwhile; never resurrect tokens
            raise AuthError(
                "Session changed during token refresh", code=AuthCode.REFRESH_FAILED
            )
        await self._tokens.set(new_pair)
        logger.info("Access token refreshed")
        return new_pair


__all__ = ["RefreshCoordinator"]

"""Fetch controller - cached reads with de-duplication and stale-while-revalidate."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar, cast

from mealsync.cache import DataCache
from mealsync.duration import parse_duration
from mealsync.errors import RequestTimeoutError, UnknownError, to_api_error
from mealsync.types import CacheStatus, Duration

logger = logging.getLogger("mealsync.fetch")

T = TypeVar("T")

Loader = Callable[[], Awaitable[T]]

# Statuses whose last value may be served while a load runs
_REVALIDATABLE = frozenset(
    {CacheStatus.STALE, CacheStatus.ERROR, CacheStatus.FETCHING}
)


@dataclass(frozen=True, slots=True)
class _Pending:
    generation: tuple[int, int]
    task: asyncio.Task[Any]


class FetchController:
    """Serves reads from a DataCache, loading at most once per key at a time.

    A fetch for a key that is already loading attaches to the in-flight
    task instead of issuing another request. Waiters are shielded, so a
    caller that times out or is cancelled never cancels the shared load.
    """

    def __init__(
        self,
        cache: DataCache,
        *,
        default_stale_after: Duration = "5m",
    ) -> None:
        self._cache = cache
        self._default_stale_ms = parse_duration(default_stale_after)
        self._pending: dict[str, _Pending] = {}

    @property
    def cache(self) -> DataCache:
        return self._cache

    def is_fetching(self, key: str) -> bool:
        return self._current_pending(key) is not None

    async def fetch(
        self,
        key: str,
        loader: Loader[T],
        *,
        stale_after: Duration | None = None,
        stale_while_revalidate: bool = False,
        force: bool = False,
        timeout: Duration | None = None,
    ) -> T:
        """Return the value for ``key``, loading it when needed.

        Args:
            key: Canonical cache key (see ``cache_key``)
            loader: Async function that fetches the value
            stale_after: Freshness window (default: controller default)
            stale_while_revalidate: Return the last value immediately when
                the entry is stale, failed or already loading, and refresh
                it in the background
            force: Ignore freshness and load again
            timeout: How long this caller waits for a shared load

        Returns:
            Cached or freshly loaded value
        """
        stale_after_ms = (
            parse_duration(stale_after)
            if stale_after is not None
            else self._default_stale_ms
        )
        entry = self._cache.get(key)

        if not force:
            if entry.status is CacheStatus.FRESH:
                logger.debug("Cache hit for %s", key)
                return cast(T, entry.value)
            if (
                stale_while_revalidate
                and entry.has_value
                and entry.status in _REVALIDATABLE
            ):
                logger.debug(
                    "Serving %s value for %s while revalidating",
                    entry.status.value,
                    key,
                )
                self._ensure_pending(key, loader, stale_after_ms)
                return cast(T, entry.value)

        pending = self._ensure_pending(key, loader, stale_after_ms)
        return cast(T, await self._wait(pending.task, timeout))

    async def refetch(
        self,
        key: str,
        loader: Loader[T],
        *,
        stale_after: Duration | None = None,
        timeout: Duration | None = None,
    ) -> T:
        """Load ``key`` regardless of freshness."""
        return await self.fetch(
            key, loader, stale_after=stale_after, force=True, timeout=timeout
        )

    def invalidate(self, key: str) -> None:
        self._cache.invalidate(key)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _current_pending(self, key: str) -> _Pending | None:
        pending = self._pending.get(key)
        if pending is None:
            return None
        # A load started before an invalidation does not serve later callers
        if pending.generation != self._cache.generation(key):
            return None
        return pending

    def _ensure_pending(
        self, key: str, loader: Loader[Any], stale_after_ms: int
    ) -> _Pending:
        pending = self._current_pending(key)
        if pending is not None:
            logger.debug("Joining in-flight fetch for %s", key)
            return pending

        generation = self._cache.generation(key)
        self._cache._mark_fetching(key, stale_after_ms)
        task = asyncio.ensure_future(
            self._load(key, generation, loader, stale_after_ms)
        )
        pending = _Pending(generation=generation, task=task)
        self._pending[key] = pending
        task.add_done_callback(lambda t: self._settled(key, generation, t))
        return pending

    async def _load(
        self,
        key: str,
        generation: tuple[int, int],
        loader: Loader[Any],
        stale_after_ms: int,
    ) -> Any:
        logger.debug("Fetching %s", key)
        try:
            value = await loader()
        except Exception as exc:
            error = to_api_error(exc)
            if self._cache.generation(key) == generation:
                self._cache._mark_error(key, error)
            if error is exc:
                raise
            raise error from exc
        finally:
            pending = self._pending.get(key)
            if pending is not None and pending.task is asyncio.current_task():
                del self._pending[key]
        if self._cache.generation(key) == generation:
            self._cache._mark_fresh(key, value, stale_after_ms)
        else:
            logger.debug("Discarding result for invalidated %s", key)
        return value

    def _settled(
        self, key: str, generation: tuple[int, int], task: asyncio.Task[Any]
    ) -> None:
        pending = self._pending.get(key)
        if pending is not None and pending.task is task:
            del self._pending[key]
        if task.cancelled():
            # Also covers tasks cancelled before they ever ran
            if (
                self._cache.generation(key) == generation
                and self._cache.get(key).status is CacheStatus.FETCHING
            ):
                self._cache._mark_error(key, UnknownError("Fetch cancelled"))
            return
        exc = task.exception()  # Mark retrieved; waiters get it through shield
        if exc is not None:
            logger.warning("Fetch for %s failed: %r", key, exc)

    async def aclose(self) -> None:
        """Cancel every in-flight load."""
        tasks = [pending.task for pending in self._pending.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _wait(self, task: asyncio.Task[Any], timeout: Duration | None) -> Any:
        if timeout is None:
            return await asyncio.shield(task)
        timeout_ms = parse_duration(timeout)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(
                f"Gave up waiting after {timeout_ms}ms",
                details={"timeout_ms": timeout_ms},
                cause=exc,
            ) from exc


__all__ = ["FetchController", "Loader"]

"""Per-key data cache with staleness tracking and change observers."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any
from urllib.parse import urlencode

from mealsync.errors import ApiError
from mealsync.types import CacheEntry, CacheStatus

logger = logging.getLogger("mealsync.cache")

Observer = Callable[[CacheEntry[Any]], None]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


def cache_key(path: str, params: Mapping[str, Any] | None = None) -> str:
    """Canonical key for an endpoint and its query parameters."""
    if not params:
        return path
    items = []
    for name in sorted(params):
        value = params[name]
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        items.append((name, str(value)))
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


class DataCache:
    """Last-fetched value, timestamp and status per key.

    Entries are written only through the ``_mark_*`` methods, which belong to
    the FetchController. Consumers read, subscribe and invalidate.

    Every key carries a generation that moves on ``invalidate`` and
    ``clear``. A fetch records the generation it started under and may only
    write back while that generation is still current.
    """

    def __init__(
        self,
        *,
        clock: Clock = monotonic_ms,
        max_entries: int | None = None,
    ) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._observers: dict[str, list[Observer]] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def now(self) -> float:
        return self._clock()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    def get(self, key: str) -> CacheEntry[Any]:
        """Return the entry for ``key`` with its status evaluated now.

        An absent key yields an ``empty`` entry. A ``fresh`` entry whose
        stale window has elapsed is reported (and stored) as ``stale``.
        """
        entry = self._entries.get(key)
        if entry is None:
            return CacheEntry(key=key)
        self._entries.move_to_end(key)  # LRU touch
        if entry.status is CacheStatus.FRESH and entry.is_expired(self.now()):
            entry = replace(entry, status=CacheStatus.STALE)
            self._entries[key] = entry
        return entry

    def peek(self, key: str) -> Any | None:
        """Last known value for ``key``, whatever its status."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def generation(self, key: str) -> tuple[int, int]:
        return (self._epoch, self._generations.get(key, 0))

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def subscribe(self, key: str, observer: Observer) -> Callable[[], None]:
        """Call ``observer`` on every status or value change of ``key``.

        Returns a callable that removes the subscription.
        """
        self._observers.setdefault(key, []).append(observer)
        return lambda: self.unsubscribe(key, observer)

    def unsubscribe(self, key: str, observer: Observer) -> None:
        observers = self._observers.get(key)
        if not observers:
            return
        try:
            observers.remove(observer)
        except ValueError:
            return
        if not observers:
            del self._observers[key]

    def _notify(self, entry: CacheEntry[Any]) -> None:
        for observer in list(self._observers.get(entry.key, ())):
            try:
                observer(entry)
            except Exception:
                logger.exception("Cache observer for %s raised", entry.key)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate(self, key: str) -> None:
        """Drop ``key`` so the next fetch re-requests it.

        A fetch still attached to ``key`` always has an entry, so keys that
        were never cached leave no trace.
        """
        if self._entries.pop(key, None) is None:
            return
        self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug("Invalidated %s", key)
        self._notify(CacheEntry(key=key))

    def invalidate_prefix(self, prefix: str) -> list[str]:
        """Invalidate every cached key starting with ``prefix``."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)
        return keys

    def clear(self) -> None:
        """Drop every entry and detach every in-flight fetch."""
        self._epoch += 1
        self._generations.clear()
        keys = list(self._entries)
        self._entries.clear()
        for key in keys:
            self._notify(CacheEntry(key=key))

    def prune(self) -> list[str]:
        """Evict stale or failed entries nobody is subscribed to."""
        now = self.now()
        evicted = [
            key
            for key, entry in self._entries.items()
            if key not in self._observers
            and entry.status is not CacheStatus.FETCHING
            and entry.is_expired(now)
        ]
        for key in evicted:
            del self._entries[key]
        return evicted

    # -------------------------------------------------------------------------
    # Writes (FetchController only)
    # -------------------------------------------------------------------------

    def _put(self, entry: CacheEntry[Any]) -> CacheEntry[Any]:
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)
        if self._max_entries and len(self._entries) > self._max_entries:
            for key in list(self._entries):
                if len(self._entries) <= self._max_entries:
                    break
                if key == entry.key:
                    continue
                if self._entries[key].status is not CacheStatus.FETCHING:
                    del self._entries[key]
        self._notify(entry)
        return entry

    def _mark_fetching(self, key: str, stale_after_ms: int) -> CacheEntry[Any]:
        current = self._entries.get(key) or CacheEntry(key=key)
        return self._put(
            replace(current, status=CacheStatus.FETCHING, stale_after_ms=stale_after_ms)
        )

    def _mark_fresh(self, key: str, value: Any, stale_after_ms: int) -> CacheEntry[Any]:
        return self._put(
            CacheEntry(
                key=key,
                value=value,
                has_value=True,
                fetched_at=self.now(),
                stale_after_ms=stale_after_ms,
                status=CacheStatus.FRESH,
            )
        )

    def _mark_error(self, key: str, error: ApiError) -> CacheEntry[Any]:
        current = self._entries.get(key) or CacheEntry(key=key)
        return self._put(replace(current, status=CacheStatus.ERROR, last_error=error))


__all__ = ["DataCache", "cache_key"]

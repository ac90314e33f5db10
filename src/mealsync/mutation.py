"""Mutation controller - uncached writes with outcome tracking and invalidation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any, Generic, TypeVar, Union

from mealsync.cache import DataCache
from mealsync.errors import ApiError, to_api_error
from mealsync.executor import RequestExecutor
from mealsync.types import RequestDescriptor

logger = logging.getLogger("mealsync.mutation")

V = TypeVar("V")

BuildFn = Callable[[V], RequestDescriptor]
KeysArg = Union[Iterable[str], Callable[[V, Any], Iterable[str]]]


class Mutation(Generic[V]):
    """A declared write operation.

    Tracks ``in_flight``, ``data`` and ``error`` for the caller. On success,
    the declared related keys (exact) and prefixes are invalidated so
    subsequent reads refetch. Mutations are sent without retries unless
    declared idempotent.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        build: BuildFn[V],
        *,
        cache: DataCache | None = None,
        invalidates: KeysArg[V] = (),
        invalidates_prefix: KeysArg[V] = (),
        idempotent: bool = False,
        on_success: Callable[[Any, V], None] | None = None,
        on_error: Callable[[ApiError, V], None] | None = None,
        on_settled: Callable[[Any, ApiError | None, V], None] | None = None,
    ) -> None:
        self._executor = executor
        self._build = build
        self._cache = cache
        self._invalidates = invalidates
        self._invalidates_prefix = invalidates_prefix
        self._idempotent = idempotent
        self._on_success = on_success
        self._on_error = on_error
        self._on_settled = on_settled
        self._in_flight = 0
        self.data: Any = None
        self.error: ApiError | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight > 0

    @property
    def name(self) -> str:
        return getattr(self._build, "__name__", "mutation")

    def _descriptor(self, variables: V) -> RequestDescriptor:
        descriptor = self._build(variables)
        if self._idempotent or descriptor.max_retries is not None:
            return descriptor
        return replace(descriptor, max_retries=0)

    async def mutate(self, variables: V) -> Any:
        """Send the write and return the response ``data``.

        Raises:
            ApiError: the write failed; also recorded on ``error``.
        """
        self._in_flight += 1
        self.error = None
        try:
            response = await self._executor.request(self._descriptor(variables))
        except Exception as exc:
            error = to_api_error(exc)
            self.error = error
            logger.debug("Mutation %s failed: %r", self.name, error)
            if self._on_error:
                self._on_error(error, variables)
            if self._on_settled:
                self._on_settled(None, error, variables)
            if error is exc:
                raise
            raise error from exc
        finally:
            self._in_flight -= 1

        self.data = response.data
        self._invalidate(variables, response.data)
        if self._on_success:
            self._on_success(response.data, variables)
        if self._on_settled:
            self._on_settled(response.data, None, variables)
        return response.data

    def _invalidate(self, variables: V, data: Any) -> None:
        if self._cache is None:
            return
        for key in _resolve(self._invalidates, variables, data):
            self._cache.invalidate(key)
        for prefix in _resolve(self._invalidates_prefix, variables, data):
            self._cache.invalidate_prefix(prefix)

    def reset(self) -> None:
        self.data = None
        self.error = None


def _resolve(keys: KeysArg[Any], variables: Any, data: Any) -> Iterable[str]:
    if callable(keys):
        return keys(variables, data)
    return keys


class MutationController:
    """Creates mutations bound to one executor and cache."""

    def __init__(
        self, executor: RequestExecutor, cache: DataCache | None = None
    ) -> None:
        self._executor = executor
        self._cache = cache

    def create(self, build: BuildFn[V], **options: Any) -> Mutation[V]:
        return Mutation(self._executor, build, cache=self._cache, **options)

    def mutation(
        self, build: BuildFn[V] | None = None, **options: Any
    ) -> Any:
        """Decorator that turns a descriptor builder into a Mutation.

        Usage:
            @controller.mutation(invalidates_prefix=["/meals"])
            def toggle_favorite(meal_id: str) -> RequestDescriptor:
                return RequestDescriptor("POST", f"/meals/{meal_id}/favorite")

            await toggle_favorite.mutate("m1")
        """
        if build is not None:
            return self.create(build, **options)

        def decorator(fn: BuildFn[V]) -> Mutation[V]:
            return self.create(fn, **options)

        return decorator

    async def mutate(
        self,
        descriptor: RequestDescriptor,
        *,
        invalidates: Iterable[str] = (),
        invalidates_prefix: Iterable[str] = (),
        idempotent: bool = False,
    ) -> Any:
        """One-shot write without keeping a Mutation around."""
        mutation: Mutation[None] = self.create(
            lambda _: descriptor,
            invalidates=tuple(invalidates),
            invalidates_prefix=tuple(invalidates_prefix),
            idempotent=idempotent,
        )
        return await mutation.mutate(None)


__all__ = ["Mutation", "MutationController"]

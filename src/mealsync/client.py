"""Client - the composition root wiring tokens, executor, cache and controllers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from mealsync.adapters.base import KeyValueStore
from mealsync.adapters.file import FileStore
from mealsync.adapters.memory import AsyncMemoryStore
from mealsync.api import AuthApi, MealApi, NutritionApi
from mealsync.cache import Clock, DataCache, Observer, cache_key, monotonic_ms
from mealsync.config import Settings, get_settings
from mealsync.duration import parse_duration
from mealsync.executor import RequestExecutor, SleepFn
from mealsync.fetch import FetchController
from mealsync.mutation import MutationController
from mealsync.retry import RetryPolicy
from mealsync.tokens import TokenStore
from mealsync.types import ApiResponse, Duration, RequestDescriptor

logger = logging.getLogger("mealsync.client")


class MealClient:
    """Explicitly constructed client instance.

    Owns one TokenStore, one RequestExecutor (with its RefreshCoordinator),
    one DataCache with its FetchController, and a MutationController. Pass
    it to whatever needs it; there is no module-level instance.

    Usage:
        async with MealClient(base_url="http://localhost:8000/api") as client:
            await client.auth.login("me@example.com", "secret")
            meals = await client.meals.meals_by_date("2025-01-01")
    """

    def __init__(
        self,
        *,
        base_url: str,
        storage: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: Duration = "10s",
        retry_policy: RetryPolicy | None = None,
        default_stale_after: Duration = "5m",
        meals_stale_after: Duration = "5m",
        nutrition_stale_after: Duration = "10m",
        profile_stale_after: Duration = "15m",
        max_cache_entries: int | None = None,
        access_token_key: str = "auth_token",
        refresh_token_key: str = "refresh_token",
        clock: Clock = monotonic_ms,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.tokens = TokenStore(
            storage, access_key=access_token_key, refresh_key=refresh_token_key
        )
        self.executor = RequestExecutor(
            base_url,
            self.tokens,
            client=http_client,
            transport=transport,
            timeout=timeout,
            retry_policy=retry_policy,
            sleep=sleep,
        )
        self.cache = DataCache(clock=clock, max_entries=max_cache_entries)
        self.fetcher = FetchController(
            self.cache, default_stale_after=default_stale_after
        )
        self.mutations = MutationController(self.executor, self.cache)

        self.auth = AuthApi(self, profile_stale_after=profile_stale_after)
        self.meals = MealApi(self, stale_after=meals_stale_after)
        self.nutrition = NutritionApi(self, stale_after=nutrition_stale_after)

    async def open(self) -> MealClient:
        """Load persisted tokens."""
        await self.tokens.load()
        return self

    async def aclose(self) -> None:
        await self.fetcher.aclose()
        await self.executor.aclose()
        await self.tokens.close()

    async def __aenter__(self) -> MealClient:
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated

    # -------------------------------------------------------------------------
    # Request execution
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout: Duration | None = None,
        max_retries: int | None = None,
        skip_auth: bool = False,
    ) -> ApiResponse[Any]:
        descriptor = RequestDescriptor(
            method=method,
            path=path,
            query=query,
            headers=dict(headers or {}),
            body=json,
            timeout_ms=parse_duration(timeout) if timeout is not None else None,
            max_retries=max_retries,
            skip_auth=skip_auth,
        )
        return await self.executor.request(descriptor)

    async def get(self, path: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.request("GET", path, **kwargs)

    async def post(
        self, path: str, json: Any = None, **kwargs: Any
    ) -> ApiResponse[Any]:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(
        self, path: str, json: Any = None, **kwargs: Any
    ) -> ApiResponse[Any]:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(
        self, path: str, json: Any = None, **kwargs: Any
    ) -> ApiResponse[Any]:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.request("DELETE", path, **kwargs)

    # -------------------------------------------------------------------------
    # Cached reads
    # -------------------------------------------------------------------------

    async def query(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        stale_after: Duration | None = None,
        stale_while_revalidate: bool = False,
        force: bool = False,
        timeout: Duration | None = None,
    ) -> Any:
        """GET ``path`` through the cache and return the response ``data``."""
        key = cache_key(path, params)

        async def load() -> Any:
            response = await self.get(path, query=params)
            return response.data

        return await self.fetcher.fetch(
            key,
            load,
            stale_after=stale_after,
            stale_while_revalidate=stale_while_revalidate,
            force=force,
            timeout=timeout,
        )

    def subscribe(
        self, path: str, params: Mapping[str, Any] | None, observer: Observer
    ) -> Callable[[], None]:
        """Observe the cache entry for ``path`` + ``params``."""
        return self.cache.subscribe(cache_key(path, params), observer)

    def mutation(self, build: Any = None, **options: Any) -> Any:
        return self.mutations.mutation(build, **options)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def clear_session(self) -> None:
        """Drop cached data and tokens together.

        Both in-memory copies are gone before the first suspension point, so
        no request started afterwards can use the old access token.
        """
        self.cache.clear()
        await self.tokens.clear()
        logger.info("Session cleared")


def create_client(
    settings: Settings | None = None,
    *,
    storage: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MealClient:
    """Create a client from settings (default: environment).

    Args:
        settings: Settings instance (default: ``get_settings()``)
        storage: Durable token storage (default: chosen from settings)
        transport: Optional httpx transport, e.g. for tests

    Returns:
        A MealClient; call ``open()`` or use ``async with`` to load tokens
    """
    settings = settings or get_settings()
    if storage is None:
        storage = _storage_from(settings)

    return MealClient(
        base_url=settings.base_url,
        storage=storage,
        transport=transport,
        timeout=settings.request_timeout,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay_ms=settings.retry_base_delay,
            max_delay_ms=settings.retry_max_delay,
        ),
        meals_stale_after=settings.meals_stale_after,
        nutrition_stale_after=settings.nutrition_stale_after,
        profile_stale_after=settings.profile_stale_after,
        max_cache_entries=settings.cache_max_entries,
        access_token_key=settings.access_token_key,
        refresh_token_key=settings.refresh_token_key,
    )


def _storage_from(settings: Settings) -> KeyValueStore:
    if settings.redis_url:
        from mealsync.adapters.redis import AsyncRedisStore

        return AsyncRedisStore.from_url(settings.redis_url)
    if settings.token_file is not None:
        return FileStore(settings.token_file)
    return AsyncMemoryStore()


__all__ = ["MealClient", "create_client"]

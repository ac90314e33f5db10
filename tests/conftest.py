"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pytest

from mealsync import AsyncMemoryStore, MealClient, RetryPolicy, TokenPair, TokenStore

BASE_URL = "https://api.test"

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def ok(data: Any = None, **extra: Any) -> httpx.Response:
    """A well-formed success envelope."""
    return httpx.Response(200, json={"success": True, "data": data, **extra})


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class Backend:
    """Async in-process backend for httpx.MockTransport.

    Routes are keyed by (method, path). Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.routes[(method, path)] = handler
            return handler

        return decorator

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path == path
        ]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"success": False, "message": "not found"})
        return await handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def body(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


@pytest.fixture
def store() -> AsyncMemoryStore:
    """Create a fresh AsyncMemoryStore for each test."""
    return AsyncMemoryStore()


@pytest.fixture
def tokens(store: AsyncMemoryStore) -> TokenStore:
    return TokenStore(store)


@pytest.fixture
def pair() -> TokenPair:
    return TokenPair(access_token="access-1", refresh_token="refresh-1")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
async def client(
    backend: Backend, store: AsyncMemoryStore, clock: FakeClock, sleep: RecordingSleep
):
    """A MealClient wired to the in-process backend."""
    client = MealClient(
        base_url=f"{BASE_URL}/api",
        storage=store,
        transport=backend.transport(),
        retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=100, max_delay_ms=1000),
        clock=clock,
        sleep=sleep,
    )
    await client.open()
    yield client
    await client.aclose()

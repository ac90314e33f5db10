"""Core types for the mealsync request layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar, Union

if TYPE_CHECKING:
    from mealsync.errors import ApiError, ErrorEnvelope

T = TypeVar("T")

# Duration type alias
Duration = Union[str, int, timedelta]  # "30s", "5m", "1m30s", ms, or timedelta


@dataclass(frozen=True, slots=True)
class TokenPair:
    """An access/refresh token pair. Both tokens are always present."""

    access_token: str
    refresh_token: str
    issued_at: float | None = None  # Unix timestamp seconds

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token:
            raise ValueError("TokenPair requires both an access and a refresh token")


class CacheStatus(str, Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    FRESH = "fresh"
    STALE = "stale"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value with fetch metadata."""

    key: str
    value: T | None = None
    has_value: bool = False
    fetched_at: float | None = None  # Clock milliseconds
    stale_after_ms: int = 0
    status: CacheStatus = CacheStatus.EMPTY
    last_error: ApiError | None = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry's stale window has elapsed."""
        if self.fetched_at is None:
            return True
        return now - self.fetched_at >= self.stale_after_ms


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """A single logical request. None means "use the executor default"."""

    method: str
    path: str
    query: Mapping[str, Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    timeout_ms: int | None = None
    max_retries: int | None = None
    skip_auth: bool = False

    def __post_init__(self) -> None:
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must not be negative: {self.max_retries}")


@dataclass(frozen=True, slots=True)
class ApiResponse(Generic[T]):
    """Normalised response envelope."""

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RetryDecision:
    retry: bool
    delay_ms: int = 0


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result of a request."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    """Failed result of a request."""

    error: ApiError

    @property
    def ok(self) -> bool:
        return False

    @property
    def envelope(self) -> ErrorEnvelope:
        return self.error.envelope

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Ok[T], Err]

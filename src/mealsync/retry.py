"""Retry policy - a pure decision function, independent of transport."""

from __future__ import annotations

from dataclasses import dataclass, replace

from mealsync.duration import parse_duration
from mealsync.errors import ApiError, HttpError, NetworkError, RequestTimeoutError
from mealsync.types import Duration, RetryDecision


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff.

    ``delay = base_delay_ms * 2 ** (attempt - 1)`` capped at ``max_delay_ms``.
    Only network errors, timeouts and 5xx responses are retried.
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 1:
            raise ValueError("base_delay_ms must be positive")
        # The cap must not flatten the delays actually used by one call.
        if self.max_attempts > 1:
            largest = self.base_delay_ms * 2 ** (self.max_attempts - 2)
            if largest > self.max_delay_ms:
                raise ValueError(
                    f"max_delay_ms={self.max_delay_ms} caps the backoff before "
                    f"attempt {self.max_attempts}; delays would stop increasing"
                )

    @classmethod
    def from_durations(
        cls,
        *,
        max_attempts: int = 3,
        base_delay: Duration = "1s",
        max_delay: Duration = "5s",
    ) -> RetryPolicy:
        return cls(
            max_attempts=max_attempts,
            base_delay_ms=parse_duration(base_delay),
            max_delay_ms=parse_duration(max_delay),
        )

    def with_max_attempts(self, max_attempts: int) -> RetryPolicy:
        """Return a copy bounded to ``max_attempts`` sends.

        The cap is raised when needed so that every delay of the longer
        schedule is still larger than the one before.
        """
        if max_attempts == self.max_attempts:
            return self
        largest = self.base_delay_ms * 2 ** max(max_attempts - 2, 0)
        return replace(
            self,
            max_attempts=max_attempts,
            max_delay_ms=max(self.max_delay_ms, largest),
        )

    def delay_for(self, attempt: int) -> int:
        """Backoff before the send that follows ``attempt``."""
        return min(self.base_delay_ms * 2 ** (attempt - 1), self.max_delay_ms)

    def is_retryable(self, error: ApiError) -> bool:
        if isinstance(error, (NetworkError, RequestTimeoutError)):
            return True
        if isinstance(error, HttpError):
            return error.status is not None and error.status >= 500
        return False

    def decide(self, error: ApiError, attempt: int) -> RetryDecision:
        """Decide whether the failed ``attempt`` (1-based) should be retried."""
        if attempt >= self.max_attempts or not self.is_retryable(error):
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay_ms=self.delay_for(attempt))


__all__ = ["RetryPolicy"]

"""Error taxonomy for the request layer.

Every failure that crosses the request boundary is an ``ApiError`` with a
stable ``kind`` and ``code`` so callers can branch on it (redirect to login
on ``AUTH_FAILED``, offer a retry on network/timeout errors, show a generic
message otherwise).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP = "http"
    AUTH = "auth"
    VALIDATION = "validation"
    API = "api"
    UNKNOWN = "unknown"


class AuthCode(str, Enum):
    NO_REFRESH_TOKEN = "NO_REFRESH_TOKEN"
    REFRESH_FAILED = "REFRESH_FAILED"
    AUTH_FAILED = "AUTH_FAILED"


INVALID_RESPONSE = "INVALID_RESPONSE"


@dataclass(frozen=True, slots=True)
class ErrorEnvelope:
    """Plain-data description of a failure."""

    kind: ErrorKind
    message: str
    code: str | None = None
    status: int | None = None
    details: dict[str, Any] | None = None
    cause: BaseException | None = None


class ApiError(Exception):
    """Base class for all request-layer errors."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNKNOWN
    default_code: ClassVar[str | None] = None

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.status = status
        self.details = details
        self.cause = cause

    @property
    def envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(
            kind=self.kind,
            message=self.message,
            code=self.code,
            status=self.status,
            details=self.details,
            cause=self.cause,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, code={self.code!r}, "
            f"status={self.status!r})"
        )


class NetworkError(ApiError):
    """No response was received."""

    kind = ErrorKind.NETWORK
    default_code = "NETWORK_ERROR"


class RequestTimeoutError(ApiError):
    """The request exceeded its deadline."""

    kind = ErrorKind.TIMEOUT
    default_code = "TIMEOUT"


class HttpError(ApiError):
    """A non-2xx response that was not handled as an auth failure."""

    kind = ErrorKind.HTTP
    default_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status: int, **kwargs: Any) -> None:
        super().__init__(message, status=status, **kwargs)


class AuthError(ApiError):
    kind = ErrorKind.AUTH

    def __init__(self, message: str, *, code: AuthCode, **kwargs: Any) -> None:
        super().__init__(message, code=code.value, **kwargs)
        self.auth_code = code


class ValidationError(ApiError):
    """The payload did not have the expected envelope shape."""

    kind = ErrorKind.VALIDATION
    default_code = INVALID_RESPONSE


class ApiResponseError(ApiError):
    """The server answered with a well-formed ``success: false`` envelope."""

    kind = ErrorKind.API
    default_code = "API_ERROR"


class UnknownError(ApiError):
    kind = ErrorKind.UNKNOWN
    default_code = "UNKNOWN"


def to_api_error(exc: BaseException) -> ApiError:
    """Normalise any exception into an ApiError."""
    if isinstance(exc, ApiError):
        return exc
    message = str(exc) or type(exc).__name__
    return UnknownError(message, cause=exc)


__all__ = [
    "INVALID_RESPONSE",
    "ApiError",
    "ApiResponseError",
    "AuthCode",
    "AuthError",
    "ErrorEnvelope",
    "ErrorKind",
    "HttpError",
    "NetworkError",
    "RequestTimeoutError",
    "UnknownError",
    "ValidationError",
    "to_api_error",
]

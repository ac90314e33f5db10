"""mealsync - resilient authenticated requests with a de-duplicating data cache."""

from contextlib import suppress

# Storage (async only)
from mealsync.adapters import AsyncMemoryStore, FileStore, KeyValueStore
from mealsync.api import AuthApi, MealApi, NutritionApi

# Cache
from mealsync.cache import DataCache, cache_key
from mealsync.client import MealClient, create_client
from mealsync.config import Settings, get_settings

# Duration parsing
from mealsync.duration import parse_duration

# Errors
from mealsync.errors import (
    ApiError,
    ApiResponseError,
    AuthCode,
    AuthError,
    ErrorEnvelope,
    ErrorKind,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    UnknownError,
    ValidationError,
)
from mealsync.executor import RequestExecutor
from mealsync.fetch import FetchController
from mealsync.mutation import Mutation, MutationController
from mealsync.refresh import RefreshCoordinator
from mealsync.retry import RetryPolicy
from mealsync.tokens import TokenStore

# Core types
from mealsync.types import (
    ApiResponse,
    CacheEntry,
    CacheStatus,
    Duration,
    Err,
    Ok,
    RequestDescriptor,
    Result,
    RetryDecision,
    TokenPair,
)
from mealsync.validation import validate_response

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from mealsync.adapters import AsyncRedisStore

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ApiResponse",
    "ApiResponseError",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "AuthApi",
    "AuthCode",
    "AuthError",
    "CacheEntry",
    "CacheStatus",
    "DataCache",
    "Duration",
    "Err",
    "ErrorEnvelope",
    "ErrorKind",
    "FetchController",
    "FileStore",
    "HttpError",
    "KeyValueStore",
    "MealApi",
    "MealClient",
    "Mutation",
    "MutationController",
    "NetworkError",
    "NutritionApi",
    "Ok",
    "RefreshCoordinator",
    "RequestDescriptor",
    "RequestExecutor",
    "RequestTimeoutError",
    "Result",
    "RetryDecision",
    "RetryPolicy",
    "Settings",
    "TokenPair",
    "TokenStore",
    "UnknownError",
    "ValidationError",
    "cache_key",
    "create_client",
    "get_settings",
    "parse_duration",
    "validate_response",
]

"""Tests for package exports."""

import mealsync


def test_core_exports_available() -> None:
    """Test that the request layer is importable from the package root."""
    from mealsync import (
        DataCache,
        FetchController,
        MealClient,
        MutationController,
        RefreshCoordinator,
        RequestExecutor,
        RetryPolicy,
        TokenStore,
        create_client,
    )

    # Just verify they're importable
    assert TokenStore is not None
    assert RefreshCoordinator is not None
    assert RequestExecutor is not None
    assert RetryPolicy is not None
    assert DataCache is not None
    assert FetchController is not None
    assert MutationController is not None
    assert MealClient is not None
    assert create_client is not None


def test_error_hierarchy() -> None:
    """Test that every error kind shares the ApiError base."""
    for name in (
        "NetworkError",
        "RequestTimeoutError",
        "HttpError",
        "AuthError",
        "ValidationError",
        "ApiResponseError",
        "UnknownError",
    ):
        assert issubclass(getattr(mealsync, name), mealsync.ApiError)


def test_all_names_resolve() -> None:
    optional = {"AsyncRedisStore"}
    missing = [
        name
        for name in mealsync.__all__
        if name not in optional and not hasattr(mealsync, name)
    ]
    assert missing == []
    assert mealsync.__version__ == "0.1.0"

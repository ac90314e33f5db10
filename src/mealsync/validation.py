"""Boundary validation of raw response payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from mealsync.errors import ApiResponseError, ValidationError
from mealsync.types import ApiResponse


def is_api_response(payload: Any) -> bool:
    """Check that a payload has the ``{success: bool, ...}`` envelope shape."""
    if not isinstance(payload, Mapping):
        return False
    if not isinstance(payload.get("success"), bool):
        return False
    for field_name in ("message", "error"):
        value = payload.get(field_name)
        if value is not None and not isinstance(value, str):
            return False
    return True


def validate_response(payload: Any, endpoint: str) -> ApiResponse[Any]:
    """Normalise a decoded payload into an ApiResponse.

    Raises:
        ValidationError: the payload is not a response envelope.
        ApiResponseError: the envelope reports ``success: false``.
    """
    if not is_api_response(payload):
        raise ValidationError(
            f"Invalid API response from {endpoint}",
            details={"endpoint": endpoint, "response": payload},
        )

    response: ApiResponse[Any] = ApiResponse(
        success=payload["success"],
        data=payload.get("data"),
        message=payload.get("message"),
        error=payload.get("error"),
    )
    if not response.success:
        raise ApiResponseError(
            response.message or response.error or f"API request failed: {endpoint}",
            details={"endpoint": endpoint, "response": dict(payload)},
        )
    return response


def decode_json(response: httpx.Response, endpoint: str) -> Any:
    """Decode a JSON body, treating undecodable bodies as invalid responses."""
    try:
        return response.json()
    except ValueError as exc:
        raise ValidationError(
            f"Invalid API response from {endpoint}",
            status=response.status_code,
            details={"endpoint": endpoint},
            cause=exc,
        ) from exc


def error_message(response: httpx.Response) -> tuple[str, dict[str, Any]]:
    """Extract a human message and details from a non-2xx response."""
    fallback = f"HTTP {response.status_code}: {response.reason_phrase}"
    try:
        body = response.json()
    except ValueError:
        return fallback, {}
    if not isinstance(body, Mapping):
        return fallback, {}
    message = body.get("message") or body.get("error")
    return (message if isinstance(message, str) else fallback), dict(body)

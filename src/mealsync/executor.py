"""Request executor - auth, timeout, refresh-on-401 and retry for one logical call."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from mealsync.duration import parse_duration
from mealsync.errors import (
    ApiError,
    AuthCode,
    AuthError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
    to_api_error,
)
from mealsync.refresh import RefreshCoordinator
from mealsync.retry import RetryPolicy
from mealsync.tokens import TokenStore
from mealsync.types import (
    ApiResponse,
    Duration,
    Err,
    Ok,
    RequestDescriptor,
    Result,
    TokenPair,
)
from mealsync.validation import decode_json, error_message, validate_response

logger = logging.getLogger("mealsync.executor")

SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_HEADERS = {"Content-Type": "application/json"}


class RequestExecutor:
    """Sends logical requests through a shared ``httpx.AsyncClient``.

    One logical call may produce several sends: retries for transient
    failures (network, timeout, 5xx) as decided by the RetryPolicy, plus at
    most one resend after a token refresh triggered by a 401.
    """

    def __init__(
        self,
        base_url: str,
        tokens: TokenStore,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: Duration = "10s",
        retry_policy: RetryPolicy | None = None,
        refresh_path: str = "/auth/refresh",
        coordinator: RefreshCoordinator | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = tokens
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(transport=transport, timeout=None)
        self._timeout_ms = parse_duration(timeout)
        self._policy = retry_policy or RetryPolicy()
        self._refresh_path = refresh_path
        self._coordinator = coordinator or RefreshCoordinator(
            tokens, self._perform_refresh
        )
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    async def execute(self, descriptor: RequestDescriptor) -> Result[ApiResponse[Any]]:
        """Run a request and return ``Ok(response)`` or ``Err(error)``."""
        try:
            return Ok(await self.request(descriptor))
        except ApiError as exc:
            return Err(exc)

    async def request(self, descriptor: RequestDescriptor) -> ApiResponse[Any]:
        """Run a request, raising ``ApiError`` on failure."""
        policy = self._policy
        if descriptor.max_retries is not None:
            policy = policy.with_max_attempts(descriptor.max_retries + 1)

        attempt = 1
        refreshed = False
        while True:
            try:
                sent_token = None if descriptor.skip_auth else self._tokens.access_token
                response = await self._send(descriptor, sent_token)

                if response.status_code == 401 and not descriptor.skip_auth:
                    if refreshed:
                        raise AuthError(
                            "Authentication failed",
                            code=AuthCode.AUTH_FAILED,
                            status=401,
                        )
                    if self._tokens.refresh_token is not None:
                        refreshed = True
                        await self._refresh_for(sent_token)
                        continue
                    if sent_token is not None:
                        # The session ended while this request was in flight
                        raise AuthError(
                            "Authentication failed",
                            code=AuthCode.AUTH_FAILED,
                            status=401,
                        )

                return self._handle(response, descriptor)
            except ApiError as exc:
                decision = policy.decide(exc, attempt)
                if not decision.retry:
                    raise
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s; retrying in %dms",
                    descriptor.method,
                    descriptor.path,
                    attempt,
                    policy.max_attempts,
                    exc.message,
                    decision.delay_ms,
                )
                await self._sleep(decision.delay_ms / 1000)
                attempt += 1

    async def _refresh_for(self, sent_token: str | None) -> None:
        """Make sure the next send carries a token newer than ``sent_token``."""
        if sent_token is not None and self._tokens.access_token not in (
            None,
            sent_token,
        ):
            # Someone else already refreshed since this request was sent
            logger.debug("Token already refreshed; resending")
            return
        try:
            await self._coordinator.refresh()
        except AuthError as exc:
            raise AuthError(
                "Authentication failed",
                code=AuthCode.AUTH_FAILED,
                status=401,
                cause=exc,
            ) from exc

    def _build(
        self, descriptor: RequestDescriptor, token: str | None
    ) -> httpx.Request:
        headers = {**DEFAULT_HEADERS, **descriptor.headers}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        params = _clean_params(descriptor.query) if descriptor.query else None
        return self._client.build_request(
            descriptor.method.upper(),
            f"{self._base_url}{descriptor.path}",
            params=params,
            headers=headers,
            json=descriptor.body,
        )

    async def _send(
        self, descriptor: RequestDescriptor, token: str | None
    ) -> httpx.Response:
        """Send once, enforcing the request deadline."""
        timeout_ms = (
            descriptor.timeout_ms
            if descriptor.timeout_ms is not None
            else self._timeout_ms
        )
        request = self._build(descriptor, token)
        logger.debug("%s %s", request.method, request.url)
        try:
            return await asyncio.wait_for(
                self._client.send(request), timeout=timeout_ms / 1000
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(
                f"Request timeout ({timeout_ms}ms)",
                details={"endpoint": descriptor.path, "timeout_ms": timeout_ms},
                cause=exc,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Network error: {exc}",
                details={"endpoint": descriptor.path},
                cause=exc,
            ) from exc
        except ApiError:
            raise
        except Exception as exc:
            raise to_api_error(exc) from exc

    def _handle(
        self, response: httpx.Response, descriptor: RequestDescriptor
    ) -> ApiResponse[Any]:
        if not response.is_success:
            message, details = error_message(response)
            raise HttpError(message, status=response.status_code, details=details)
        payload = decode_json(response, descriptor.path)
        return validate_response(payload, descriptor.path)

    async def _perform_refresh(self, refresh_token: str) -> TokenPair:
        """Call the refresh endpoint once, without retries or auth."""
        descriptor = RequestDescriptor(
            method="POST",
            path=self._refresh_path,
            body={"refreshToken": refresh_token},
            skip_auth=True,
        )
        response = await self._send(descriptor, None)
        if not response.is_success:
            raise HttpError(
                "Token refresh failed", status=response.status_code
            )
        payload = decode_json(response, self._refresh_path)
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, Mapping):
            data = payload if isinstance(payload, Mapping) else {}
        token = data.get("token") or data.get("accessToken")
        if not isinstance(token, str) or not token:
            raise ValidationError(
                "Invalid refresh response",
                details={"endpoint": self._refresh_path},
            )
        new_refresh = data.get("refreshToken")
        if not isinstance(new_refresh, str) or not new_refresh:
            new_refresh = refresh_token
        return TokenPair(
            access_token=token, refresh_token=new_refresh, issued_at=time.time()
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _clean_params(params: Mapping[str, Any]) -> dict[str, str]:
    """Drop None values and render booleans the way query strings expect."""
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


__all__ = ["RequestExecutor"]

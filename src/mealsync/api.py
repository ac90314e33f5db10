"""Domain API wrappers for auth, meal and nutrition endpoints."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Literal

from mealsync.cache import cache_key
from mealsync.errors import ApiError, ValidationError
from mealsync.types import Duration, RequestDescriptor, TokenPair

if TYPE_CHECKING:
    from mealsync.client import MealClient

logger = logging.getLogger("mealsync.api")

MEALS_PATH = "/meals"
NUTRITION_PATH = "/nutrition"
ME_PATH = "/auth/me"


def _iso(day: date | str) -> str:
    return day.isoformat() if isinstance(day, date) else day


class AuthApi:
    """Login, registration, logout and the current user."""

    def __init__(
        self, client: MealClient, *, profile_stale_after: Duration = "15m"
    ) -> None:
        self._client = client
        self._stale_after = profile_stale_after
        self.update_profile = client.mutations.create(
            self._profile_request, invalidates=[ME_PATH]
        )

    @staticmethod
    def _profile_request(fields: Mapping[str, Any]) -> RequestDescriptor:
        return RequestDescriptor(method="PUT", path=ME_PATH, body=dict(fields))

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and install the returned token pair.

        Returns:
            The login payload, typically ``{"user": ..., "token": ...}``
        """
        response = await self._client.post(
            "/auth/login",
            json={"email": email, "password": password},
            skip_auth=True,
            max_retries=0,
        )
        data = response.data
        if not isinstance(data, Mapping):
            raise ValidationError(
                "Invalid login response", details={"endpoint": "/auth/login"}
            )
        token = data.get("token") or data.get("accessToken")
        refresh = data.get("refreshToken")
        if not isinstance(token, str) or not isinstance(refresh, str) or not (
            token and refresh
        ):
            raise ValidationError(
                "Login response is missing tokens",
                details={"endpoint": "/auth/login"},
            )
        await self._client.tokens.set(
            TokenPair(access_token=token, refresh_token=refresh)
        )
        return dict(data)

    async def register(self, **fields: Any) -> Any:
        response = await self._client.post(
            "/auth/register", json=fields, skip_auth=True, max_retries=0
        )
        return response.data

    async def logout(self) -> None:
        """Clear the local session, then tell the server.

        Tokens and cache are gone before the first suspension point, so
        requests started while the server call is pending go out without
        the old token. The server call is best-effort.
        """
        token = self._client.tokens.access_token
        await self._client.clear_session()
        if token is None:
            return
        try:
            await self._client.post(
                "/auth/logout",
                headers={"Authorization": f"Bearer {token}"},
                skip_auth=True,
                max_retries=0,
            )
        except ApiError as exc:
            logger.warning("Logout request failed: %s", exc.message)

    async def current_user(self, *, force: bool = False) -> Any:
        return await self._client.query(
            ME_PATH, stale_after=self._stale_after, force=force
        )


class MealApi:
    """Daily meal listings and favorites."""

    def __init__(self, client: MealClient, *, stale_after: Duration = "5m") -> None:
        self._client = client
        self._stale_after = stale_after
        self.toggle_favorite = client.mutations.create(
            self._favorite_request, invalidates_prefix=[MEALS_PATH]
        )

    @staticmethod
    def _favorite_request(meal_id: str) -> RequestDescriptor:
        return RequestDescriptor(method="POST", path=f"{MEALS_PATH}/{meal_id}/favorite")

    @staticmethod
    def key_for(day: date | str) -> str:
        return cache_key(MEALS_PATH, {"date": _iso(day)})

    async def meals_by_date(
        self,
        day: date | str,
        *,
        stale_while_revalidate: bool = False,
        force: bool = False,
    ) -> list[dict[str, Any]]:
        data = await self._client.query(
            MEALS_PATH,
            {"date": _iso(day)},
            stale_after=self._stale_after,
            stale_while_revalidate=stale_while_revalidate,
            force=force,
        )
        return list(data or [])


class NutritionApi:
    """Nutrition summaries over a date range."""

    def __init__(self, client: MealClient, *, stale_after: Duration = "10m") -> None:
        self._client = client
        self._stale_after = stale_after

    async def nutrition(
        self,
        start: date | str,
        end: date | str,
        *,
        stale_while_revalidate: bool = False,
    ) -> list[dict[str, Any]]:
        data = await self._client.query(
            NUTRITION_PATH,
            {"start_date": _iso(start), "end_date": _iso(end)},
            stale_after=self._stale_after,
            stale_while_revalidate=stale_while_revalidate,
        )
        return list(data or [])

    async def for_period(
        self,
        period: Literal["week", "month"] = "week",
        *,
        today: date | None = None,
    ) -> list[dict[str, Any]]:
        """Nutrition for the last 7 (week) or 30 (month) days."""
        if period not in ("week", "month"):
            raise ValueError(f"Unknown period: {period!r}")
        end = today or date.today()
        start = end - timedelta(days=7 if period == "week" else 30)
        return await self.nutrition(start, end)


__all__ = ["AuthApi", "MealApi", "NutritionApi"]

"""Async Strava API client."""

from typing import Any, Optional

import httpx
from loguru import logger

from src.strava.exceptions import (
    AccessUnauthorized,
    ObjectNotFound,
    RateLimitExceeded,
    StravaException,
)


class AsyncStravaClient:
    """Async HTTP client for the activity endpoints of Strava API v3.

    Activities are returned as raw JSON mappings: the verification pipeline
    treats them as untrusted and does its own normalization.
    """

    BASE_URL = "https://www.strava.com/api/v3"

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Strava API client.

        Parameters
        ----------
        access_token : str
            Valid Strava access token for the athlete
        base_url : str, optional
            API root, defaults to the public Strava API
        timeout : float
            Request timeout in seconds
        transport : httpx.AsyncBaseTransport, optional
            Custom transport (used by tests to mock Strava)
        """
        self.access_token = access_token
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated request to Strava API.

        Raises
        ------
        ObjectNotFound
            When resource not found (404)
        AccessUnauthorized
            When access is unauthorized (401)
        RateLimitExceeded
            When rate limit exceeded (429)
        StravaException
            For other API and transport errors
        """
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        logger.debug("Strava request", method=method, url=url, params=params)

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout
            ) as client:
                response = await client.request(
                    method=method, url=url, params=params, headers=headers
                )
        except httpx.HTTPError as e:
            raise StravaException(f"Strava request failed: {e}") from e

        await self._handle_errors(response)
        try:
            return response.json()
        except ValueError as e:
            raise StravaException("Strava returned a non-JSON response") from e

    async def _handle_errors(self, response: httpx.Response) -> None:
        """Handle HTTP errors from Strava API."""
        if response.is_success:
            return

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_msg = body.get("message", response.text)
        else:
            error_msg = response.text

        if response.status_code == 404:
            raise ObjectNotFound(f"Not found: {error_msg}")
        elif response.status_code == 401:
            raise AccessUnauthorized(f"Unauthorized: {error_msg}")
        elif response.status_code == 429:
            raise RateLimitExceeded(f"Rate limit exceeded: {error_msg}")
        elif 400 <= response.status_code < 500:
            raise StravaException(f"Client error {response.status_code}: {error_msg}")
        else:
            raise StravaException(f"Server error {response.status_code}: {error_msg}")

    async def get_activity(self, activity_id: int) -> dict[str, Any]:
        """Get details of a specific activity.

        Parameters
        ----------
        activity_id : int
            The ID of the activity

        Returns
        -------
        dict
            Raw activity JSON
        """
        data = await self._request("GET", f"/activities/{activity_id}")
        if not isinstance(data, dict):
            raise StravaException("Unexpected activity response shape")
        return data

    async def get_latest_activity(self) -> Optional[dict[str, Any]]:
        """Get the authenticated athlete's most recent activity.

        Returns
        -------
        dict | None
            Raw activity JSON, or None if the athlete has no activities
        """
        data = await self._request(
            "GET", "/athlete/activities", params={"page": 1, "per_page": 1}
        )
        if not isinstance(data, list):
            raise StravaException("Unexpected activity list response shape")
        return data[0] if data else None

"""Mattermost client interface and REST implementation.

Probes only depend on the abstract ``MattermostClient``; the REST client is a
thin adapter over the Mattermost API v4 endpoints the probes need.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Self

import httpx

from mmprobe.logging import get_logger

logger = get_logger(__name__)

# Default timeout for HTTP requests (connect, read, write, pool)
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=30.0)

API_PREFIX = "/api/v4"


class MattermostClientError(Exception):
    """Raised when a Mattermost API operation fails."""

    pass


class MattermostClient(ABC):
    """Abstract interface for the Mattermost operations probes perform.

    This allows probes to work with different implementations:
    - REST client (direct HTTP)
    - Mock client (testing)

    The logging hooks are fire-and-forget; probes never depend on them
    succeeding.
    """

    @abstractmethod
    def get_channel_by_name(self, name: str) -> str:
        """Resolve a channel name to its channel ID.

        Args:
            name: Channel name (the URL handle, not the display name).

        Returns:
            The channel ID.

        Raises:
            MattermostClientError: If the channel is not found or the request fails.
        """
        pass

    @abstractmethod
    def join_channel(self, channel_id: str) -> None:
        """Add the current user to a channel.

        Args:
            channel_id: ID of the channel to join.

        Raises:
            MattermostClientError: If the join fails.
        """
        pass

    def log_info(self, msg: str, *args: Any) -> None:
        logger.info(msg, *args)

    def log_error(self, msg: str, *args: Any) -> None:
        logger.error(msg, *args)


class MattermostRestClient(MattermostClient):
    """Mattermost client that uses direct REST API calls.

    Uses connection pooling via a lazily created, reusable httpx.Client.
    Safe to share between probe execution threads.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        team: str,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        """Initialize the Mattermost REST client.

        Args:
            base_url: Server URL (e.g., "https://chat.example.com").
            token: Personal access token used as a bearer token.
            team: Team name used when resolving channel names.
            timeout: Optional custom timeout configuration.
        """
        self.base_url = base_url.rstrip("/")
        self.team = team
        self.timeout = timeout or DEFAULT_TIMEOUT
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()
        self._user_id: str | None = None

    def _get_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(headers=self._headers, timeout=self.timeout)
            return self._client

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> dict[str, Any]:
        """Perform a request and translate httpx failures into MattermostClientError.

        Args:
            method: HTTP method name.
            path: API path below ``/api/v4``.
            action: Human readable description used in error messages.
            **kwargs: Passed through to ``httpx.Client.request``.

        Returns:
            Decoded JSON body (empty dict for empty responses).

        Raises:
            MattermostClientError: On timeout, HTTP error status or transport error.
        """
        try:
            response = self._get_client().request(method, self._url(path), **kwargs)
            response.raise_for_status()
            if not response.content:
                return {}
            data: dict[str, Any] = response.json()
            return data
        except httpx.TimeoutException as e:
            raise MattermostClientError(f"{action} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            error_msg = f"{action} failed with status {e.response.status_code}"
            try:
                error_data = e.response.json()
                if error_data.get("message"):
                    error_msg += f": {error_data['message']}"
            except (ValueError, KeyError, TypeError, AttributeError):
                pass
            raise MattermostClientError(error_msg) from e
        except httpx.RequestError as e:
            raise MattermostClientError(f"{action} request failed: {e}") from e

    def get_current_user_id(self) -> str:
        """Get the ID of the authenticated user, fetched once and cached."""
        if self._user_id is None:
            data = self._request("GET", "/users/me", "Fetching current user")
            user_id = data.get("id", "")
            if not user_id:
                raise MattermostClientError("Fetching current user returned no id")
            self._user_id = user_id
        return self._user_id

    def get_channel_by_name(self, name: str) -> str:
        if not self.team:
            raise MattermostClientError("A team is required to look up channels by name")
        data = self._request(
            "GET",
            f"/teams/name/{self.team}/channels/name/{name}",
            f"Channel lookup for {name!r}",
        )
        channel_id: str = data.get("id", "")
        if not channel_id:
            raise MattermostClientError(f"Channel lookup for {name!r} returned no id")
        logger.debug("Resolved channel %s to %s", name, channel_id)
        return channel_id

    def join_channel(self, channel_id: str) -> None:
        user_id = self.get_current_user_id()
        self._request(
            "POST",
            f"/channels/{channel_id}/members",
            f"Joining channel {channel_id}",
            json={"user_id": user_id},
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = [
    "DEFAULT_TIMEOUT",
    "MattermostClient",
    "MattermostClientError",
    "MattermostRestClient",
]

"""
Host platform client.

The companion app runs inside a host social platform that owns user
identity, private messaging and post creation. This client wraps the
host's HTTP API for the few calls the code pipeline needs.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from app.core.config import Settings
from app.core.exceptions import HostPlatformError

logger = logging.getLogger(__name__)


class HostPlatformClient:
    """Client for the host platform REST API."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the host platform client.

        Args:
            settings: Application settings containing HOST_API_URL and token
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = settings.HOST_API_URL
        self.timeout = settings.HOST_API_TIMEOUT_SECONDS
        self._token = settings.HOST_API_TOKEN
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client for connection pooling."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, operation: str, method: str, path: str, **kwargs: Any
    ) -> Dict[str, Any]:
        try:
            client = await self._get_client()
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HostPlatformError(
                operation, f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise HostPlatformError(operation, str(e) or type(e).__name__) from e

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise HostPlatformError(operation, "invalid JSON response") from e
        return data if isinstance(data, dict) else {}

    async def get_username(self, user_id: str) -> Optional[str]:
        """Look up the display username for ``user_id``.

        Returns:
            The username, or None when the platform does not know the user
        """
        try:
            data = await self._request("user lookup", "GET", f"/users/{user_id}")
        except HostPlatformError as e:
            cause = e.__cause__
            if (
                isinstance(cause, httpx.HTTPStatusError)
                and cause.response.status_code == 404
            ):
                logger.info(f"Host platform has no user {user_id}")
                return None
            raise
        username = str(data.get("username") or "").strip()
        return username or None

    async def send_private_message(self, to: str, subject: str, text: str) -> None:
        """Send a private message to ``to`` (a username)."""
        await self._request(
            "private message",
            "POST",
            "/messages",
            json={"to": to, "subject": subject, "text": text},
        )
        logger.info(f"Private message sent to {to}")

    async def create_post(self, subreddit_name: str, title: str) -> Dict[str, Any]:
        """Create the companion post in ``subreddit_name``.

        Returns:
            The created post payload, including its ``id``

        Raises:
            HostPlatformError: If the platform rejects the request or omits the id
        """
        data = await self._request(
            "post creation",
            "POST",
            "/posts",
            json={"subredditName": subreddit_name, "title": title},
        )
        if not data.get("id"):
            raise HostPlatformError("post creation", "response missing post id")
        return data

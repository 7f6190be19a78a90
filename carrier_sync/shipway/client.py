"""
Shipway carrier API client.
"""

import logging
from typing import Any, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class ShipwayClientError(Exception):
    """Base exception for Shipway client errors."""
    pass


class ShipwayConfigError(ShipwayClientError):
    """Store credentials are missing or unusable."""
    pass


class ShipwaySemanticError(ShipwayClientError):
    """The API answered, but refused the request."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ShipwayAuthError(ShipwaySemanticError):
    """Authentication error (401)."""
    pass


class ShipwayForbiddenError(ShipwaySemanticError):
    """Credentials lack access (403)."""
    pass


class ShipwayNotFoundError(ShipwaySemanticError):
    """Carrier endpoint not found (404)."""
    pass


class ShipwayTransientError(ShipwayClientError):
    """Network or server failure; the sync can be rerun."""
    pass


class ShipwayTimeoutError(ShipwayTransientError):
    """Request timed out."""
    pass


class ShipwayConnectionError(ShipwayTransientError):
    """Could not connect to the API."""
    pass


class ShipwayClient:
    """
    Async HTTP client for the Shipway carrier listing API.

    One instance per store. Does not retry: a failed fetch is reported to
    the caller, and reconciliation is safe to rerun.
    """

    USER_AGENT = "Carrier-Sync-Service/1.0"

    def __init__(
        self,
        auth_header: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        store_key: Optional[str] = None,
    ):
        """
        Initialize Shipway client.

        Args:
            auth_header: Value for the Authorization header (e.g. "Basic ...")
            api_url: Carrier endpoint, defaults to settings.shipway_api_url
            timeout: Request timeout in seconds, defaults to settings.shipway_timeout
            store_key: Store the credentials belong to, used in messages
        """
        self.store_key = store_key
        label = f" for store {store_key}" if store_key else ""

        if not auth_header or not auth_header.strip():
            raise ShipwayConfigError(
                f"Shipway API configuration error: no credentials configured{label}"
            )

        self.auth_header = auth_header.strip()
        self.api_url = api_url or settings.shipway_api_url
        self.timeout = timeout if timeout is not None else settings.shipway_timeout

        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
                headers={
                    "Authorization": self.auth_header,
                    "Content-Type": "application/json",
                    "User-Agent": self.USER_AGENT,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch_carriers(self) -> Any:
        """
        Fetch the raw carrier listing.

        Returns:
            Decoded JSON body, in whatever shape the API sent it

        Raises:
            ShipwayAuthError: 401
            ShipwayForbiddenError: 403
            ShipwayNotFoundError: 404
            ShipwayTimeoutError: Request exceeded the timeout
            ShipwayConnectionError: Connection refused / host unreachable
            ShipwayTransientError: Any other HTTP or transport failure
        """
        client = await self._get_client()
        label = f"[{self.store_key}] " if self.store_key else ""

        try:
            response = await client.get(self.api_url)
        except httpx.TimeoutException as e:
            raise ShipwayTimeoutError(
                f"Request to Shipway API timed out after {self.timeout:.0f}s. Please try again."
            ) from e
        except httpx.ConnectError as e:
            raise ShipwayConnectionError(
                "Unable to connect to Shipway API. Please check your internet connection."
            ) from e
        except httpx.RequestError as e:
            raise ShipwayTransientError(f"Request error: {e}") from e

        if response.status_code == 401:
            raise ShipwayAuthError(
                "Authentication failed. Please check the store's Shipway credentials.",
                status_code=401,
            )
        if response.status_code == 403:
            raise ShipwayForbiddenError(
                "Access forbidden. Please check your API permissions.",
                status_code=403,
            )
        if response.status_code == 404:
            raise ShipwayNotFoundError(
                "Carrier API endpoint not found. Please verify the API URL.",
                status_code=404,
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ShipwayTransientError(
                f"Shipway API returned HTTP {response.status_code}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ShipwayTransientError(f"Invalid JSON from Shipway API: {e}") from e

        logger.info(f"{label}Carrier listing received (HTTP {response.status_code})")
        return data

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

"""Base GitHub REST API Client.

Provides the shared HTTP session, token authentication and error mapping for
all GitHub API operations.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .. import __version__
from .exceptions import APIClientError
from .network_error_handler import NetworkErrorHandler

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class GitHubAPIClient:
    """Base API client with token authentication and common HTTP functionality."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize base API client.

        Args:
            token: GitHub personal access token
            api_url: Base URL of the GitHub REST API
            timeout: Read timeout in seconds for every request
            transport: Optional httpx transport, used instead of the network
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._session: Optional[httpx.AsyncClient] = None
        self._network_error_handler = NetworkErrorHandler()

    @property
    def session(self) -> httpx.AsyncClient:
        """Get or create HTTP session."""
        if self._session is None or self._session.is_closed:
            timeouts = httpx.Timeout(
                connect=10.0,
                read=self.timeout,
                write=10.0,
                pool=5.0,
            )
            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            )
            self._session = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=timeouts,
                limits=limits,
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._session

    def _default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"lomad/{__version__}",
        }
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        context: str,
        **kwargs,
    ) -> httpx.Response:
        """Make an authenticated request and map failures to typed errors.

        Args:
            method: HTTP method (GET, POST, PATCH, ...)
            endpoint: API endpoint path, relative to the API URL
            context: Operation description used in error messages
            **kwargs: Additional arguments for httpx request

        Returns:
            Successful (2xx) HTTP response

        Raises:
            TransportError: If the request never produced a response
            APIClientError: If the API answered with an error status
        """
        logger.debug(f"{method} {endpoint}")
        try:
            response = await self.session.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            # timeouts, connection, protocol and proxy failures alike
            self._network_error_handler.classify_network_error(e)

        if response.status_code >= 400:
            logger.debug(
                f"{method} {endpoint} failed with HTTP {response.status_code}"
            )
            self._network_error_handler.classify_response(response, context)

        return response

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        context: str,
        **kwargs,
    ) -> Dict[str, Any]:
        """Make a request and decode its JSON object body."""
        response = await self._request(method, endpoint, context, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise APIClientError(
                f"{context}: invalid JSON in response: {e}", response.status_code
            )
        if not isinstance(data, dict):
            raise APIClientError(
                f"{context}: unexpected response format", response.status_code
            )
        return data

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.is_closed:
            await self._session.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

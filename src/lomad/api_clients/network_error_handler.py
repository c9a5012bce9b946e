"""Network Error Handler for the GitHub API client and the link checker.

Classifies httpx transport failures and unsuccessful HTTP responses into the
typed exceptions of ``lomad.api_clients.exceptions`` and attaches user
guidance for the failures a user can act on.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, NoReturn, Optional, cast

import httpx

from .exceptions import (
    APIClientError,
    AlreadyExistsError,
    AuthenticationError,
    DNSResolutionError,
    NetworkConnectionError,
    NetworkTimeoutError,
    NotFoundError,
    RateLimitError,
    RemoteRejectedError,
    ServerError,
    SSLCertificateError,
)

logger = logging.getLogger(__name__)


@dataclass
class UserGuidance:
    """User guidance information for network errors."""

    error_type: str
    troubleshooting_steps: List[str]
    additional_notes: List[str] = field(default_factory=list)

    def format_for_console(self) -> str:
        """Format guidance for rich console output."""
        content = []
        content.append(f"[bold red]Error Type:[/bold red] {self.error_type}")
        content.append("")
        content.append("[bold yellow]Troubleshooting Steps:[/bold yellow]")

        for i, step in enumerate(self.troubleshooting_steps, 1):
            content.append(f"{i}. {step}")

        if self.additional_notes:
            content.append("")
            content.append("[bold blue]Additional Notes:[/bold blue]")
            for note in self.additional_notes:
                content.append(f"• {note}")

        return "\n".join(content)


class UserGuidanceProvider:
    """Provides user guidance for different network error scenarios."""

    def __init__(self):
        self._guidance_mapping = {
            NetworkConnectionError: self._get_connection_error_guidance,
            DNSResolutionError: self._get_dns_resolution_guidance,
            SSLCertificateError: self._get_ssl_certificate_guidance,
            NetworkTimeoutError: self._get_timeout_guidance,
            ServerError: self._get_server_error_guidance,
            RateLimitError: self._get_rate_limit_guidance,
        }

    def get_guidance(self, error: Exception) -> UserGuidance:
        """Get user guidance for a specific error."""
        guidance_func = self._guidance_mapping.get(
            type(error), self._get_generic_guidance
        )
        return cast(UserGuidance, guidance_func(error))

    def _get_connection_error_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="Network Connection Error",
            troubleshooting_steps=[
                "Check your internet connection",
                "Verify the API URL in the configuration is correct",
                "Check proxy and firewall settings",
            ],
        )

    def _get_dns_resolution_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="DNS Resolution Error",
            troubleshooting_steps=[
                "Check your internet connection",
                "Verify the hostname is spelled correctly",
                "Check your DNS server settings",
            ],
            additional_notes=["DNS resolution issues are often temporary"],
        )

    def _get_ssl_certificate_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="SSL Certificate Error",
            troubleshooting_steps=[
                "Check that your system certificate store is up to date",
                "Verify the hostname matches the certificate",
            ],
            additional_notes=[
                "Do not disable certificate verification to work around this",
            ],
        )

    def _get_timeout_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="Network Timeout",
            troubleshooting_steps=[
                "Check your network connection speed",
                "Try again later",
                "Increase the timeout in .lomad/config.json",
            ],
        )

    def _get_server_error_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="Server Error",
            troubleshooting_steps=[
                "Check https://www.githubstatus.com for ongoing incidents",
                "Try again in a few minutes",
            ],
        )

    def _get_rate_limit_guidance(self, error: Exception) -> UserGuidance:
        retry_after = getattr(error, "retry_after", None)
        steps = ["Wait before making additional requests"]
        if retry_after:
            steps.insert(0, f"Wait {retry_after} seconds before retrying")
        return UserGuidance(
            error_type="Rate Limit Exceeded",
            troubleshooting_steps=steps,
            additional_notes=[
                "Authenticated requests have a much higher rate limit",
            ],
        )

    def _get_generic_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="Network Error",
            troubleshooting_steps=[
                "Check your internet connection",
                "Run again with --verbose for more detail",
            ],
        )


class NetworkErrorHandler:
    """Turns httpx failures and error responses into typed exceptions."""

    def __init__(self):
        self.guidance_provider = UserGuidanceProvider()
        self._dns_error_patterns = [
            r"name.*resolution.*failed",
            r"name.*or.*service.*not.*known",
            r"nodename.*nor.*servname.*provided",
            r"temporary.*failure.*in.*name.*resolution",
            r"getaddrinfo.*failed",
        ]
        self._connection_error_patterns = [
            r"connection.*refused",
            r"connection.*reset",
            r"network.*is.*unreachable",
            r"no.*route.*to.*host",
        ]
        self._ssl_error_patterns = [
            r"ssl.*certificate.*verification.*failed",
            r"certificate.*verify.*failed",
            r"ssl.*handshake.*failed",
            r"bad.*certificate",
        ]

    def classify_network_error(self, error: Exception) -> NoReturn:
        """Classify a transport failure and raise the matching exception.

        Args:
            error: The original httpx exception

        Raises:
            DNSResolutionError, SSLCertificateError, NetworkConnectionError or
            NetworkTimeoutError depending on the failure.
        """
        error_message = str(error).lower()

        if isinstance(error, httpx.TimeoutException):
            self._raise_timeout_error(error_message)
        if isinstance(error, httpx.ConnectError):
            self._raise_connect_error(error, error_message)

        conn_error = NetworkConnectionError(f"Network error: {error}")
        self._attach_guidance(conn_error)
        raise conn_error

    def _raise_connect_error(
        self, error: httpx.ConnectError, error_message: str
    ) -> NoReturn:
        if any(re.search(p, error_message) for p in self._dns_error_patterns):
            dns_error = DNSResolutionError(
                "Cannot resolve host address. Check your internet connection and the URL."
            )
            self._attach_guidance(dns_error)
            raise dns_error

        if any(re.search(p, error_message) for p in self._ssl_error_patterns):
            ssl_error = SSLCertificateError(
                "SSL certificate verification failed."
            )
            self._attach_guidance(ssl_error)
            raise ssl_error

        if any(re.search(p, error_message) for p in self._connection_error_patterns):
            conn_error = NetworkConnectionError(
                "Cannot connect to host. Connection refused or reset."
            )
            self._attach_guidance(conn_error)
            raise conn_error

        conn_error = NetworkConnectionError(f"Connection failed: {error}")
        self._attach_guidance(conn_error)
        raise conn_error

    def _raise_timeout_error(self, error_message: str) -> NoReturn:
        if "connect" in error_message:
            timeout_error = NetworkTimeoutError("Connection timed out.")
        else:
            timeout_error = NetworkTimeoutError("Request timed out.")
        self._attach_guidance(timeout_error)
        raise timeout_error

    def _attach_guidance(self, error: Exception) -> None:
        guidance = self.guidance_provider.get_guidance(error)
        setattr(error, "user_guidance", guidance.format_for_console())

    def classify_response(self, response: httpx.Response, context: str) -> NoReturn:
        """Raise the API exception matching an unsuccessful response.

        Args:
            response: Response with a 4xx or 5xx status code
            context: Operation description used as message prefix

        Raises:
            AuthenticationError, RateLimitError, NotFoundError,
            AlreadyExistsError, RemoteRejectedError, ServerError or
            APIClientError
        """
        status_code = response.status_code
        detail = self._extract_detail(response)
        message = f"{context}: {detail}"

        if self._is_rate_limited(response):
            rate_limit_error = RateLimitError(
                message,
                status_code=status_code,
                retry_after=self._retry_after(response),
            )
            self._attach_guidance(rate_limit_error)
            raise rate_limit_error

        if status_code in (401, 403):
            raise AuthenticationError(message, status_code)

        if status_code == 404:
            raise NotFoundError(message, status_code)

        if status_code in (409, 422):
            if "already exists" in detail.lower():
                raise AlreadyExistsError(message, status_code)
            raise RemoteRejectedError(message, status_code)

        if 500 <= status_code < 600:
            server_error = ServerError(message, status_code=status_code)
            self._attach_guidance(server_error)
            raise server_error

        if 400 <= status_code < 500:
            raise RemoteRejectedError(message, status_code)

        raise APIClientError(message, status_code)

    def _extract_detail(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text or f"HTTP {response.status_code}"

        if not isinstance(data, dict):
            return f"HTTP {response.status_code}"

        detail = str(data.get("message", f"HTTP {response.status_code}"))
        errors = data.get("errors")
        if isinstance(errors, list):
            extra = [
                str(e.get("message")) if isinstance(e, dict) and e.get("message")
                else str(e)
                for e in errors
            ]
            if extra:
                detail = f"{detail} ({'; '.join(extra)})"
        return detail

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return (
            response.status_code == 403
            and response.headers.get("X-RateLimit-Remaining") == "0"
        )

    def _retry_after(self, response: httpx.Response) -> Optional[int]:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.debug(f"Ignoring unparseable Retry-After header: {value!r}")
            return None

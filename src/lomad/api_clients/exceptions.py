"""Exception classes for GitHub API operations."""

from typing import Optional


class APIClientError(Exception):
    """Base exception for API client errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIClientError):
    """Exception raised when the token is missing, invalid or lacks scope."""

    pass


class NotFoundError(APIClientError, LookupError):
    """Exception raised when a repository, ref or object does not exist."""

    pass


class RepositoryNotFoundError(NotFoundError):
    """Exception raised when the repository itself is unreachable or missing."""

    pass


class RepositoryUnreachableError(RepositoryNotFoundError):
    """Exception raised when no response could be obtained for the repository.

    Carries the guidance of the underlying transport failure.
    """

    def __init__(self, message: str, user_guidance: Optional[str] = None):
        super().__init__(message)
        self.user_guidance = user_guidance or ""


class AlreadyExistsError(APIClientError):
    """Exception raised when creating a ref whose name is already taken."""

    pass


class RemoteRejectedError(APIClientError):
    """Exception raised when the API refuses a request as invalid.

    Typical causes are setting the default branch to a branch that does not
    exist, or a ref update that is not a fast-forward.
    """

    pass


class ServerError(APIClientError):
    """Exception raised for server-side errors (5xx responses)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        user_guidance: Optional[str] = None,
    ):
        super().__init__(message, status_code)
        self.user_guidance = user_guidance or ""


class RateLimitError(APIClientError):
    """Exception raised when the API rate limit has been exhausted."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
        user_guidance: Optional[str] = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after
        self.user_guidance = user_guidance or ""


class TransportError(Exception):
    """Base exception for network-level failures (no HTTP response)."""

    def __init__(self, message: str, user_guidance: Optional[str] = None):
        super().__init__(message)
        self.user_guidance = user_guidance or ""


class NetworkConnectionError(TransportError):
    """Exception raised for connection-related network failures."""

    pass


class NetworkTimeoutError(TransportError):
    """Exception raised for timeout-related network failures."""

    pass


class DNSResolutionError(TransportError):
    """Exception raised for DNS resolution failures."""

    pass


class SSLCertificateError(TransportError):
    """Exception raised for SSL certificate verification failures."""

    pass

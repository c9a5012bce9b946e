"""API Client Abstractions for GitHub operations.

All GitHub HTTP traffic goes through these client classes; mutation code
only sees typed models and typed errors.
"""

from .base_client import GitHubAPIClient
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
    RepositoryNotFoundError,
    RepositoryUnreachableError,
    ServerError,
    SSLCertificateError,
    TransportError,
)
from .git_data_client import (
    GitBlob,
    GitDataAPIClient,
    GitRef,
    GitTree,
    GitTreeEntry,
    RepositoryHandle,
    RepositoryMetadata,
)

__all__ = [
    # Base client
    "GitHubAPIClient",
    # Errors
    "APIClientError",
    "AlreadyExistsError",
    "AuthenticationError",
    "DNSResolutionError",
    "NetworkConnectionError",
    "NetworkTimeoutError",
    "NotFoundError",
    "RateLimitError",
    "RemoteRejectedError",
    "RepositoryNotFoundError",
    "RepositoryUnreachableError",
    "ServerError",
    "SSLCertificateError",
    "TransportError",
    # Git data client
    "GitDataAPIClient",
    "RepositoryHandle",
    "RepositoryMetadata",
    "GitRef",
    "GitTree",
    "GitTreeEntry",
    "GitBlob",
]

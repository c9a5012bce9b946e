"""Link liveness checking."""

from .link_checker import (
    LinkChecker,
    LinkCheckResult,
    ProbeResult,
    ProbeStatus,
    UnsupportedSchemeError,
    UrlMatch,
    UrlScan,
    extract_urls,
)

__all__ = [
    "LinkChecker",
    "LinkCheckResult",
    "ProbeResult",
    "ProbeStatus",
    "UnsupportedSchemeError",
    "UrlMatch",
    "UrlScan",
    "extract_urls",
]

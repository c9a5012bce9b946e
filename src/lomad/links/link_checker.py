"""Link liveness checking for masterlist content.

Extracts every URL embedded in a text and probes each one with a HEAD request.
Redirects are reported instead of followed: masterlist entries are expected to
reference stable final URLs.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from .. import __version__
from ..api_clients.exceptions import TransportError
from ..api_clients.network_error_handler import NetworkErrorHandler

logger = logging.getLogger(__name__)

# scheme:// then anything up to whitespace, quotes, angle or closing brackets;
# the last character may not be sentence punctuation
URL_PATTERN = re.compile(
    r"[A-Za-z][A-Za-z0-9+.\-]*://"
    r"[^\s<>\"'`)\]}]*[^\s<>\"'`)\]}.,;:!?]"
)

SUPPORTED_SCHEMES = ("http", "https")


class UnsupportedSchemeError(Exception):
    """Raised for URLs that are not http or https."""

    def __init__(self, url: str, scheme: str):
        super().__init__("unsupported scheme")
        self.url = url
        self.scheme = scheme


class UrlMatch(NamedTuple):
    """A URL found in scanned text and its character offset."""

    url: str
    position: int


class UrlScan:
    """Restartable, lazy sequence of the URLs in a text."""

    def __init__(self, text: str):
        self.text = text

    def __iter__(self) -> Iterator[UrlMatch]:
        for match in URL_PATTERN.finditer(self.text):
            yield UrlMatch(match.group(0), match.start())


def extract_urls(text: str) -> UrlScan:
    """Scan ``text`` for URLs, in order of occurrence, duplicates included."""
    return UrlScan(text)


class ProbeStatus(str, Enum):
    OK = "ok"
    REDIRECTED = "redirected"
    FAILED = "failed"


class ProbeResult(BaseModel):
    """Outcome of probing one URL."""

    status: ProbeStatus = Field(..., description="Probe outcome")
    location: Optional[str] = Field(None, description="Redirect target")
    detail: Optional[str] = Field(None, description="Failure description")
    status_code: Optional[int] = Field(None, description="HTTP status, if any")

    @classmethod
    def ok(cls, status_code: int = 200) -> "ProbeResult":
        return cls(status=ProbeStatus.OK, status_code=status_code)

    @classmethod
    def redirected(
        cls, location: Optional[str], status_code: Optional[int] = None
    ) -> "ProbeResult":
        return cls(
            status=ProbeStatus.REDIRECTED, location=location, status_code=status_code
        )

    @classmethod
    def failed(cls, detail: str, status_code: Optional[int] = None) -> "ProbeResult":
        return cls(status=ProbeStatus.FAILED, detail=detail, status_code=status_code)

    def describe(self) -> str:
        if self.status == ProbeStatus.REDIRECTED:
            return f"redirects to {self.location}"
        if self.status == ProbeStatus.FAILED:
            return self.detail or "failed"
        return "ok"


class LinkCheckResult(NamedTuple):
    """Probe outcome for one URL occurrence."""

    url: str
    position: int
    result: ProbeResult


class LinkChecker:
    """Concurrent HEAD prober for the URLs in a text."""

    def __init__(
        self,
        timeout: float = 10.0,
        max_concurrency: int = 10,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize link checker.

        Args:
            timeout: Upper bound in seconds for a single probe
            max_concurrency: Maximum number of probes in flight at once
            user_agent: User-Agent header sent with each probe
            transport: Optional httpx transport, used instead of the network
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.user_agent = user_agent or f"lomad/{__version__}"
        self._transport = transport
        self._session: Optional[httpx.AsyncClient] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._network_error_handler = NetworkErrorHandler()

    @property
    def session(self) -> httpx.AsyncClient:
        """Get or create HTTP session."""
        if self._session is None or self._session.is_closed:
            self._session = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=self.max_concurrency),
                headers={"User-Agent": self.user_agent},
                follow_redirects=False,
                transport=self._transport,
            )
        return self._session

    @property
    def semaphore(self) -> asyncio.Semaphore:
        """Bound on probes in flight, shared by every ``check_all`` call.

        Sized to the session's connection limit: a probe holding a permit
        always finds a free pooled connection.
        """
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    def _check_scheme(self, url: str) -> None:
        scheme = urlparse(url).scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise UnsupportedSchemeError(url, scheme)

    async def probe(self, url: str) -> ProbeResult:
        """Probe ``url`` with a single HEAD request.

        200 is ``ok``, 3xx is ``redirected`` with the Location header, every
        other status and every transport failure is ``failed``. Redirects are
        not followed and nothing is retried.
        """
        try:
            self._check_scheme(url)
        except UnsupportedSchemeError as e:
            logger.debug(f"Skipping {url}: {e} '{e.scheme}'")
            return ProbeResult.failed(str(e))

        try:
            response = await asyncio.wait_for(
                self.session.head(url), timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return ProbeResult.failed("timeout")
        except httpx.InvalidURL as e:
            return ProbeResult.failed(f"invalid URL: {e}")
        except httpx.HTTPError as e:
            try:
                self._network_error_handler.classify_network_error(e)
            except TransportError as transport_error:
                return ProbeResult.failed(str(transport_error))

        status_code = response.status_code
        if status_code == 200:
            return ProbeResult.ok(status_code)
        if 300 <= status_code < 400:
            return ProbeResult.redirected(
                response.headers.get("location"), status_code
            )
        return ProbeResult.failed(f"HTTP {status_code}", status_code)

    async def check_all(self, text: str) -> List[LinkCheckResult]:
        """Probe every URL in ``text`` concurrently.

        A failing probe becomes a ``failed`` entry; it never aborts the batch.

        Returns:
            One result per URL occurrence, ordered by position in ``text``
        """
        matches = list(extract_urls(text))
        semaphore = self.semaphore

        async def probe_match(match: UrlMatch) -> LinkCheckResult:
            async with semaphore:
                try:
                    result = await self.probe(match.url)
                except Exception as e:
                    logger.warning(f"Probe of {match.url} raised: {e}")
                    result = ProbeResult.failed(f"unexpected error: {e}")
            if result.status != ProbeStatus.OK:
                logger.info(f"{match.url}: {result.describe()}")
            return LinkCheckResult(match.url, match.position, result)

        results = await asyncio.gather(*(probe_match(m) for m in matches))
        return sorted(results, key=lambda r: r.position)

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.is_closed:
            await self._session.aclose()
        self._semaphore = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

"""Fetcher for arbitrary HTTPS pages."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List
from urllib.parse import urlparse

import httpx
import structlog

from edge_proxy.config import Settings
from edge_proxy.errors import (
    RedirectBlocked,
    RedirectPending,
    UpstreamError,
    UpstreamTimeout,
    ValidationError,
)
from edge_proxy.intents import FetchIntent
from edge_proxy.metrics import UPSTREAM_CALLS
from edge_proxy.sanitizer import should_sanitize, strip_active_content

logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"
INTERSTITIAL_MESSAGE = (
    "Google detected automated request. Try ?q= for search or a different URL."
)


@dataclass
class FetchedPage:
    """Raw page content ready to be cached and emitted."""

    url: str
    content: str
    content_type: str
    status_code: int = 200
    sanitized: bool = False


class PageFetcher:
    """Fetch a page without following redirects."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        """Initialize page fetcher.

        Args:
            client: Shared async HTTP client
            settings: Timeout, browser identity, redirect and sanitize patterns
        """
        self.client = client
        self.timeout = settings.upstream_timeout_seconds
        self.user_agent = settings.user_agent
        self.blocked_redirect_patterns: List[str] = list(settings.blocked_redirect_patterns)
        self.sanitize_url_patterns: List[str] = list(settings.sanitize_url_patterns)
        self.sanitizer_backend = settings.sanitizer_backend

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
        }

    async def fetch(self, intent: FetchIntent) -> FetchedPage:
        """Fetch ``intent.target_url``.

        Raises:
            ValidationError: Invalid or non-HTTPS URL
            RedirectBlocked: Redirect to a known CAPTCHA interstitial
            RedirectPending: Any other redirect
            UpstreamError: Non-2xx response, timeout or transport failure
        """
        url = intent.target_url
        validate_target_url(url)

        try:
            response = await asyncio.wait_for(
                self.client.get(
                    url,
                    headers=self.headers,
                    follow_redirects=False,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            UPSTREAM_CALLS.labels(kind="page", outcome="timeout").inc()
            logger.warning("page_fetch_timeout", url=url, timeout=self.timeout)
            raise UpstreamTimeout(self.timeout, context=f"Fetching {url}")
        except httpx.RequestError as e:
            UPSTREAM_CALLS.labels(kind="page", outcome="error").inc()
            logger.warning("page_fetch_failed", url=url, error=str(e))
            raise UpstreamError(f"Failed to fetch {url}: {e}")

        if 300 <= response.status_code < 400:
            UPSTREAM_CALLS.labels(kind="page", outcome="redirect").inc()
            self._raise_for_redirect(url, response)

        if not response.is_success:
            UPSTREAM_CALLS.labels(kind="page", outcome="error").inc()
            logger.warning("page_fetch_failed", url=url, status=response.status_code)
            raise UpstreamError(
                f"Failed to fetch {url}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        UPSTREAM_CALLS.labels(kind="page", outcome="ok").inc()
        content = response.text
        sanitized = False
        if should_sanitize(url, self.sanitize_url_patterns):
            content = strip_active_content(content, self.sanitizer_backend)
            sanitized = True
            logger.info("page_sanitized", url=url, backend=self.sanitizer_backend)

        return FetchedPage(
            url=url,
            content=content,
            content_type=response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
            status_code=response.status_code,
            sanitized=sanitized,
        )

    def _raise_for_redirect(self, url: str, response: httpx.Response) -> None:
        location = response.headers.get("Location")
        logger.info("page_redirected", url=url, status=response.status_code, location=location)

        if not location:
            raise UpstreamError(f"Redirect from {url} without a Location header", status_code=502)

        if any(pattern in location for pattern in self.blocked_redirect_patterns):
            raise RedirectBlocked(INTERSTITIAL_MESSAGE)

        raise RedirectPending(location)


def validate_target_url(url: str) -> None:
    """Accept only syntactically valid HTTPS URLs.

    Raises:
        ValidationError: ``Invalid URL`` or ``Only HTTPS URLs supported``
    """
    try:
        parsed = urlparse(url)
        valid = bool(parsed.scheme and parsed.netloc and parsed.hostname)
        # Raises for a non-numeric or out-of-range port
        parsed.port
    except ValueError:
        valid = False

    if not valid:
        raise ValidationError("Invalid URL")

    if parsed.scheme.lower() != "https":
        raise ValidationError("Only HTTPS URLs supported")

"""Error taxonomy for the resolution pipeline.

Every error carries the HTTP status it maps to and the plain-text body that is
sent downstream. Errors are raised where they are detected and turned into an
envelope by the resolver; nothing is retried.
"""

from typing import Optional


class ProxyError(Exception):
    """Base class for errors that map directly to a response."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ProxyError):
    """Missing or invalid request parameters."""

    status_code = 400


class ConfigurationError(ProxyError):
    """Required configuration (e.g. the API credential) is absent."""

    status_code = 500


class UpstreamError(ProxyError):
    """Upstream answered with a failure status; the status is propagated."""

    status_code = 502


class UpstreamTimeout(UpstreamError):
    """Upstream call exceeded its time budget."""

    status_code = 504

    def __init__(self, timeout_seconds: float, context: str = "Upstream request"):
        super().__init__(f"{context} timed out after {timeout_seconds:g} seconds")
        self.timeout_seconds = timeout_seconds


class RedirectBlocked(ProxyError):
    """Redirect pointed at a CAPTCHA / verification interstitial."""

    status_code = 403


class RedirectPending(ProxyError):
    """Upstream redirected; the caller must re-request the new location."""

    status_code = 302

    def __init__(self, location: str):
        super().__init__(f"Redirected to {location}. Update the URL parameter.")
        self.location = location


class CacheReadError(ProxyError):
    """The cache store failed while reading."""

    status_code = 500


class CacheWriteError(Exception):
    """The cache store failed while writing. Logged, never surfaced."""

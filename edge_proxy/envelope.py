"""Outbound response envelopes."""

from dataclasses import dataclass
from typing import Dict

from fastapi import Response

from edge_proxy.errors import ProxyError

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain"

# Sent on every response; the proxy's own cache is the only cache.
FIXED_HEADERS: Dict[str, str] = {
    "X-Robots-Tag": "noindex",
    "Cache-Control": "no-cache",
}


@dataclass(frozen=True)
class Envelope:
    """The only thing ever sent downstream."""

    status: int
    content_type: str
    body: str


def build_envelope(
    content: str, content_type: str = "", is_search: bool = False, status: int = 200
) -> Envelope:
    """Wrap resolved content; content type defaults by request shape."""
    if not content_type:
        content_type = JSON_CONTENT_TYPE if is_search else HTML_CONTENT_TYPE
    return Envelope(status=status, content_type=content_type, body=content)


def error_envelope(error: ProxyError) -> Envelope:
    return Envelope(status=error.status_code, content_type=TEXT_CONTENT_TYPE, body=error.message)


def unhandled_error_envelope(error: BaseException) -> Envelope:
    """Plain-text 500 for anything that escaped the pipeline."""
    try:
        message = str(error)
    except Exception:
        message = type(error).__name__
    return Envelope(status=500, content_type=TEXT_CONTENT_TYPE, body=f"Error: {message}")


def to_response(envelope: Envelope) -> Response:
    """Render an envelope as a FastAPI response with the fixed header set."""
    headers = dict(FIXED_HEADERS)
    headers["Content-Type"] = envelope.content_type
    return Response(
        content=envelope.body,
        status_code=envelope.status,
        headers=headers,
    )

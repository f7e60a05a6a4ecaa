"""Test suite for PageFetcher."""

import asyncio

import httpx
import pytest

from conftest import make_settings
from edge_proxy.errors import (
    RedirectBlocked,
    RedirectPending,
    UpstreamError,
    UpstreamTimeout,
    ValidationError,
)
from edge_proxy.intents import FetchIntent
from edge_proxy.page_fetcher import DEFAULT_CONTENT_TYPE, PageFetcher, validate_target_url

SEARCH_PAGE = (
    "<html><head>"
    '<meta http-equiv="refresh" content="0;url=https://evil.example">'
    "<script>alert(1)</script>"
    "</head><body><p>result</p>"
    '<form action="/search"><input name="q"></form>'
    "</body></html>"
)


def make_fetcher(handler, **overrides) -> PageFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PageFetcher(client, make_settings(**overrides))


@pytest.mark.parametrize(
    "url,message",
    [
        ("http://example.com", "Only HTTPS URLs supported"),
        ("ftp://example.com/file", "Only HTTPS URLs supported"),
        ("not a url", "Invalid URL"),
        ("https://", "Invalid URL"),
        ("example.com/path", "Invalid URL"),
        ("https://example.com:abc/", "Invalid URL"),
        ("https://example.com:99999/", "Invalid URL"),
    ],
)
def test_rejects_invalid_targets(url, message):
    """Test only syntactically valid HTTPS URLs are accepted."""
    with pytest.raises(ValidationError) as exc_info:
        validate_target_url(url)

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_fetch_success():
    """Test body and upstream content type are returned as-is."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"<html><script>kept()</script></html>",
            headers={"Content-Type": "text/html; charset=iso-8859-1"},
        )

    fetcher = make_fetcher(handler)

    page = await fetcher.fetch(FetchIntent("https://example.com/page"))

    assert page.content == "<html><script>kept()</script></html>"
    assert page.content_type == "text/html; charset=iso-8859-1"
    assert page.sanitized is False


@pytest.mark.asyncio
async def test_default_content_type():
    """Test HTML/UTF-8 is assumed when upstream sends no Content-Type."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"plain bytes")

    fetcher = make_fetcher(handler)

    page = await fetcher.fetch(FetchIntent("https://example.com"))

    assert page.content_type == DEFAULT_CONTENT_TYPE


@pytest.mark.asyncio
async def test_browser_headers_and_no_redirect_following():
    """Test spoofed identity headers are sent and redirects are not followed."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(301, headers={"Location": "https://example.com/elsewhere"})

    fetcher = make_fetcher(handler)

    with pytest.raises(RedirectPending):
        await fetcher.fetch(FetchIntent("https://example.com"))

    assert len(seen) == 1
    assert "Mozilla/5.0" in seen[0].headers["User-Agent"]
    assert seen[0].headers["DNT"] == "1"
    assert seen[0].headers["Accept-Language"] == "en-US,en;q=0.9"


@pytest.mark.asyncio
async def test_redirect_pending_echoes_location():
    """Test an ordinary redirect becomes a 302 naming the new location."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "https://example.org/new"})

    fetcher = make_fetcher(handler)

    with pytest.raises(RedirectPending) as exc_info:
        await fetcher.fetch(FetchIntent("https://example.com/old"))

    assert exc_info.value.status_code == 302
    assert exc_info.value.message == "Redirected to https://example.org/new. Update the URL parameter."


@pytest.mark.asyncio
async def test_captcha_redirect_blocked():
    """Test a redirect to the sorry interstitial becomes a 403."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            302,
            headers={"Location": "https://www.google.com/sorry/index?continue=x"},
        )

    fetcher = make_fetcher(handler)

    with pytest.raises(RedirectBlocked) as exc_info:
        await fetcher.fetch(FetchIntent("https://www.google.com/search?q=x"))

    assert exc_info.value.status_code == 403
    assert "automated request" in exc_info.value.message


@pytest.mark.asyncio
async def test_blocked_patterns_are_configurable():
    """Test extra interstitial patterns can be configured."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "https://example.com/captcha"})

    fetcher = make_fetcher(
        handler, blocked_redirect_patterns=["google.com/sorry/index", "/captcha"]
    )

    with pytest.raises(RedirectBlocked):
        await fetcher.fetch(FetchIntent("https://example.com"))


@pytest.mark.asyncio
async def test_redirect_without_location():
    """Test a 3xx without Location is an upstream error."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302)

    fetcher = make_fetcher(handler)

    with pytest.raises(UpstreamError) as exc_info:
        await fetcher.fetch(FetchIntent("https://example.com"))

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_upstream_failure_status_propagated():
    """Test non-2xx, non-3xx statuses are propagated."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="gone")

    fetcher = make_fetcher(handler)

    with pytest.raises(UpstreamError) as exc_info:
        await fetcher.fetch(FetchIntent("https://example.com/missing"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Failed to fetch https://example.com/missing: Not Found"


@pytest.mark.asyncio
async def test_transport_error():
    """Test connection failures map to a 502."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = make_fetcher(handler)

    with pytest.raises(UpstreamError) as exc_info:
        await fetcher.fetch(FetchIntent("https://example.com"))

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_timeout():
    """Test a hanging target yields a 504 instead of a hang."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200)

    fetcher = make_fetcher(handler, upstream_timeout_seconds=0.1)

    with pytest.raises(UpstreamTimeout) as exc_info:
        await asyncio.wait_for(fetcher.fetch(FetchIntent("https://example.com")), 2.0)

    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", ["regex", "html_parser"])
async def test_search_results_page_is_sanitized(backend):
    """Test scripts, meta refreshes and forms are stripped from search pages."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=SEARCH_PAGE.encode())

    fetcher = make_fetcher(handler, sanitizer_backend=backend)

    page = await fetcher.fetch(FetchIntent("https://www.google.com/search?q=test"))

    assert page.sanitized is True
    assert "<script" not in page.content
    assert "alert(1)" not in page.content
    assert "<form" not in page.content
    assert "refresh" not in page.content
    assert "<p>result</p>" in page.content

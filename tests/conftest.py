"""Test configuration and fixtures."""

from typing import Any, Callable, Dict, List

import httpx
import pytest

from edge_proxy.cache import MemoryStore, ResponseCache
from edge_proxy.config import Settings
from edge_proxy.page_fetcher import PageFetcher
from edge_proxy.resolver import ProxyContext, ResponseResolver
from edge_proxy.search_fetcher import SearchFetcher

SEARCH_API_HOST = "www.googleapis.com"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: Dict[str, Any] = {
        "google_api_key": "test-key",
        "cache_backend": "memory",
        "log_json": False,
        "upstream_timeout_seconds": 0.2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def search_items(kind: str, count: int) -> List[Dict[str, Any]]:
    """Fake Custom Search items of the given kind ("web" or "image")."""
    items = []
    for i in range(count):
        item: Dict[str, Any] = {
            "link": f"https://example.com/{kind}/{i}",
            "snippet": f"{kind} snippet {i}",
            "displayLink": "example.com",
        }
        if kind == "image":
            item["image"] = {
                "contextLink": f"https://example.com/page/{i}",
                "thumbnailLink": f"https://example.com/thumb/{i}.jpg",
            }
        items.append(item)
    return items


class FakeSearchAPI:
    """Search API stand-in that counts calls per leg."""

    def __init__(self, web_count: int = 8, image_count: int = 8):
        self.web_count = web_count
        self.image_count = image_count
        self.calls: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.url.params.get("searchType") == "image":
            return httpx.Response(200, json={"items": search_items("image", self.image_count)})
        return httpx.Response(200, json={"items": search_items("web", self.web_count)})


def build_resolver(
    handler: Callable[[httpx.Request], Any],
    settings: Settings = None,
    store: Any = None,
) -> ResponseResolver:
    """Resolver wired to a mock transport and an in-memory store."""
    settings = settings or make_settings()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    cache = ResponseCache(
        store if store is not None else MemoryStore(),
        ttl_seconds=settings.cache_ttl_seconds,
        fail_open=settings.cache_fail_open,
    )
    context = ProxyContext(
        settings=settings,
        cache=cache,
        search_fetcher=SearchFetcher(client, settings),
        page_fetcher=PageFetcher(client, settings),
    )
    return ResponseResolver(context)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def search_api() -> FakeSearchAPI:
    return FakeSearchAPI()

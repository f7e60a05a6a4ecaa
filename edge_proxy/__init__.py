"""Edge proxy: cached search and page-fetch resolution."""

__version__ = "1.0.0"

from .cache import MemoryStore, RedisStore, ResponseCache
from .envelope import Envelope
from .errors import (
    CacheReadError,
    CacheWriteError,
    ConfigurationError,
    ProxyError,
    RedirectBlocked,
    RedirectPending,
    UpstreamError,
    UpstreamTimeout,
    ValidationError,
)
from .intents import FetchIntent, SearchIntent, SearchMode, parse_intent
from .page_fetcher import FetchedPage, PageFetcher
from .resolver import ProxyContext, ResponseResolver
from .search_fetcher import ResultRecord, SearchFetcher

__all__ = [
    "MemoryStore",
    "RedisStore",
    "ResponseCache",
    "Envelope",
    "ProxyError",
    "ValidationError",
    "ConfigurationError",
    "UpstreamError",
    "UpstreamTimeout",
    "RedirectBlocked",
    "RedirectPending",
    "CacheReadError",
    "CacheWriteError",
    "SearchIntent",
    "FetchIntent",
    "SearchMode",
    "parse_intent",
    "FetchedPage",
    "PageFetcher",
    "ProxyContext",
    "ResponseResolver",
    "ResultRecord",
    "SearchFetcher",
]

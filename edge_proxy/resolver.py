"""Response resolution pipeline.

ValidateInput -> CheckCache -> (hit: Emit) | (miss: Dispatch -> PopulateCache -> Emit)

Every branch ends in an Envelope. Known errors become their plain-text
envelope; anything else is caught by ``resolve`` and becomes a 500.
"""

import asyncio
from dataclasses import dataclass
from typing import Mapping, Set

import structlog

from edge_proxy.cache import ResponseCache
from edge_proxy.config import Settings
from edge_proxy.envelope import (
    JSON_CONTENT_TYPE,
    Envelope,
    build_envelope,
    error_envelope,
    unhandled_error_envelope,
)
from edge_proxy.errors import ProxyError
from edge_proxy.intents import Intent, SearchIntent, parse_intent
from edge_proxy.metrics import CACHE_LOOKUPS, REQUEST_COUNT
from edge_proxy.page_fetcher import PageFetcher
from edge_proxy.search_fetcher import SearchFetcher, render_records

logger = structlog.get_logger(__name__)


@dataclass
class ProxyContext:
    """Collaborators the resolver needs for one process."""

    settings: Settings
    cache: ResponseCache
    search_fetcher: SearchFetcher
    page_fetcher: PageFetcher


class ResponseResolver:
    """Turns query parameters into an Envelope."""

    def __init__(self, context: ProxyContext):
        self.context = context
        self._pending_writes: Set[asyncio.Task] = set()

    async def resolve(self, params: Mapping[str, str]) -> Envelope:
        """Resolve one request. Never raises."""
        try:
            envelope = await self._resolve(params)
        except ProxyError as e:
            logger.info(
                "request_failed",
                error_type=type(e).__name__,
                status=e.status_code,
                message=e.message[:500],
            )
            envelope = error_envelope(e)
        except Exception as e:
            logger.error("unhandled_exception", error=str(e), exc_info=True)
            envelope = unhandled_error_envelope(e)

        REQUEST_COUNT.labels(kind=_request_kind(params), status=envelope.status).inc()
        return envelope

    async def _resolve(self, params: Mapping[str, str]) -> Envelope:
        intent = parse_intent(params, always_combined=self.context.settings.always_combined)
        is_search = isinstance(intent, SearchIntent)
        cache_key = intent.cache_key

        logger.info("request_received", cache_key=cache_key)

        cached = await self.context.cache.lookup(cache_key)
        if cached is not None:
            CACHE_LOOKUPS.labels(result="hit").inc()
            logger.info("serving_from_cache", cache_key=cache_key)
            return build_envelope(cached, is_search=is_search)

        CACHE_LOOKUPS.labels(result="miss").inc()
        content, content_type = await self._dispatch(intent)

        self._schedule_store(cache_key, content)

        return build_envelope(content, content_type, is_search=is_search)

    async def _dispatch(self, intent: Intent):
        """Run the upstream fetch for ``intent``; returns (content, content_type)."""
        if isinstance(intent, SearchIntent):
            records = await self.context.search_fetcher.fetch(intent)
            logger.info(
                "search_resolved",
                query=intent.query,
                mode=intent.mode.value,
                result_count=len(records),
            )
            return render_records(records), JSON_CONTENT_TYPE

        page = await self.context.page_fetcher.fetch(intent)
        logger.info(
            "page_resolved",
            url=page.url,
            content_length=len(page.content),
            sanitized=page.sanitized,
        )
        return page.content, page.content_type

    def _schedule_store(self, cache_key: str, content: str) -> None:
        """Populate the cache in a detached task; the response never waits on it."""
        task = asyncio.create_task(
            self.context.cache.store(cache_key, content, self.context.settings.cache_ttl_seconds)
        )
        self._pending_writes.add(task)
        task.add_done_callback(self._on_store_done)

    def _on_store_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            logger.warning("cache_write_cancelled")
        elif task.exception() is not None:
            logger.warning("cache_write_failed", error=str(task.exception()))

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def drain_pending_writes(self) -> None:
        """Wait for in-flight cache writes, e.g. before shutdown."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)


def _request_kind(params: Mapping[str, str]) -> str:
    if params.get("q"):
        return "search"
    if params.get("url"):
        return "fetch"
    return "invalid"

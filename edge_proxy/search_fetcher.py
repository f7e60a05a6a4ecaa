"""Custom Search JSON API client.

Runs a query in web, image or combined mode and reshapes the items into
fixed result records.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog

from edge_proxy.config import Settings
from edge_proxy.errors import ConfigurationError, UpstreamError, UpstreamTimeout
from edge_proxy.intents import SearchIntent, SearchMode
from edge_proxy.metrics import UPSTREAM_CALLS

logger = structlog.get_logger(__name__)


@dataclass
class ResultRecord:
    """A single reshaped search result."""

    entry_id: int
    image_url: str
    image_desc: str
    image_source: str
    image_url_thumbnail: str
    type: Optional[str] = None

    @classmethod
    def from_item(
        cls, item: Dict[str, Any], entry_id: int, result_type: Optional[str] = None
    ) -> "ResultRecord":
        """Map one API item, applying defaults for absent fields."""
        image = item.get("image") or {}
        pagemap_thumbs = (item.get("pagemap") or {}).get("cse_thumbnail") or []
        pagemap_thumb = pagemap_thumbs[0].get("src") if pagemap_thumbs else None

        return cls(
            entry_id=entry_id,
            image_url=item.get("link") or "No image URL",
            image_desc=item.get("snippet") or item.get("htmlSnippet") or "No description",
            image_source=image.get("contextLink") or item.get("displayLink") or "No source",
            image_url_thumbnail=image.get("thumbnailLink") or pagemap_thumb or "No thumbnail URL",
            type=result_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary; ``Type`` only when tagged."""
        data: Dict[str, Any] = {
            "EntryID": self.entry_id,
            "ImageUrl": self.image_url,
            "ImageDesc": self.image_desc,
            "ImageSource": self.image_source,
            "ImageUrlThumbnail": self.image_url_thumbnail,
        }
        if self.type is not None:
            data["Type"] = self.type
        return data


def render_records(records: List[ResultRecord]) -> str:
    """Serialize records as the JSON body sent downstream."""
    return json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)


class SearchFetcher:
    """Search API client for the three search modes."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        """Initialize search fetcher.

        Args:
            client: Shared async HTTP client
            settings: Credential, endpoint, timeout and result limit
        """
        self.client = client
        self.api_key = settings.google_api_key
        self.search_engine_id = settings.search_engine_id
        self.base_url = settings.search_api_url
        self.timeout = settings.upstream_timeout_seconds
        self.limit = settings.result_limit
        self.user_agent = settings.user_agent

    async def fetch(self, intent: SearchIntent) -> List[ResultRecord]:
        """Run the search described by ``intent``.

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: If any upstream call fails or times out
        """
        if not self.api_key:
            raise ConfigurationError("Google API key not configured")

        if intent.mode is SearchMode.COMBINED:
            return await self._fetch_combined(intent)

        image = intent.mode is SearchMode.IMAGE
        items = await self._call(intent.query, image=image)
        return [ResultRecord.from_item(item, intent.entry_id) for item in items[: self.limit]]

    async def _fetch_combined(self, intent: SearchIntent) -> List[ResultRecord]:
        """Run image and web legs concurrently; image results come first.

        The first failing leg cancels the other and its error is raised.
        """
        image_task = asyncio.ensure_future(self._call(intent.query, image=True))
        web_task = asyncio.ensure_future(self._call(intent.query, image=False))
        legs = [image_task, web_task]

        try:
            done, _ = await asyncio.wait(legs, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in legs if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for task in legs:
            if task in done and task.exception() is not None:
                raise task.exception()

        image_items = image_task.result()[: self.limit]
        web_items = web_task.result()[: self.limit]

        return [
            ResultRecord.from_item(item, intent.entry_id, "image") for item in image_items
        ] + [ResultRecord.from_item(item, intent.entry_id, "web") for item in web_items]

    async def _call(self, query: str, image: bool) -> List[Dict[str, Any]]:
        """Make one API request and return its ``items``."""
        params = {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": query,
        }
        if image:
            params["searchType"] = "image"

        leg = "image" if image else "web"
        logger.info("search_request", query=query, leg=leg)

        try:
            response = await asyncio.wait_for(
                self.client.get(
                    self.base_url,
                    params=params,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            UPSTREAM_CALLS.labels(kind="search", outcome="timeout").inc()
            logger.warning("search_timeout", query=query, leg=leg, timeout=self.timeout)
            raise UpstreamTimeout(self.timeout, context="Search request")
        except httpx.RequestError as e:
            UPSTREAM_CALLS.labels(kind="search", outcome="error").inc()
            logger.warning("search_request_failed", query=query, leg=leg, error=str(e))
            raise UpstreamError(f"Failed to fetch search results: {e}")

        if not response.is_success:
            UPSTREAM_CALLS.labels(kind="search", outcome="error").inc()
            error_text = response.text
            logger.warning(
                "search_api_failed",
                query=query,
                leg=leg,
                status=response.status_code,
                body=error_text[:500],
            )
            raise UpstreamError(
                f"Failed to fetch search results: {response.reason_phrase} - {error_text}",
                status_code=response.status_code,
            )

        UPSTREAM_CALLS.labels(kind="search", outcome="ok").inc()
        data = response.json()
        if not isinstance(data, dict):
            logger.warning("search_response_malformed", query=query, leg=leg)
            raise UpstreamError("Failed to fetch search results: unexpected response body")
        return data.get("items") or []

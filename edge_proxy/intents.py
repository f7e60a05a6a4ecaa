"""Request intent parsing and cache key derivation."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union

from edge_proxy.errors import ValidationError

MISSING_PARAMS_MESSAGE = (
    "Missing 'q' or 'url' query parameter. "
    "Example: ?q=test or ?url=https://example.com"
)
INVALID_ENTRY_ID_MESSAGE = "Invalid 'entryId' parameter. Expected an integer."
DEFAULT_ENTRY_ID = 1


class SearchMode(str, Enum):
    """Which search legs to run."""

    WEB = "web"
    IMAGE = "image"
    COMBINED = "combined"

    @classmethod
    def from_param(cls, value: Optional[str]) -> "SearchMode":
        """Map the ``searchType`` parameter to a mode; unknown values mean web."""
        if value == cls.IMAGE.value:
            return cls.IMAGE
        if value == cls.COMBINED.value:
            return cls.COMBINED
        return cls.WEB


@dataclass(frozen=True)
class SearchIntent:
    """Search query forwarded to the search API."""

    query: str
    mode: SearchMode = SearchMode.WEB
    entry_id: int = DEFAULT_ENTRY_ID

    @property
    def cache_key(self) -> str:
        return f"search:{escape_key_part(self.query)}:{self.mode.value}:{self.entry_id}"


@dataclass(frozen=True)
class FetchIntent:
    """Arbitrary HTTPS URL to fetch."""

    target_url: str

    @property
    def cache_key(self) -> str:
        # Single free-form field after a fixed prefix, no delimiter to forge.
        return f"cache:{self.target_url}"


Intent = Union[SearchIntent, FetchIntent]


def escape_key_part(value: str) -> str:
    """Percent-encode ``%`` and ``:`` so a field cannot forge the key delimiter.

    Values containing neither character are returned unchanged.
    """
    return value.replace("%", "%25").replace(":", "%3A")


def parse_intent(params: Mapping[str, str], always_combined: bool = False) -> Intent:
    """Build the request intent from query parameters.

    Args:
        params: Query string parameters (``q``, ``searchType``, ``url``, ``entryId``)
        always_combined: Ignore ``searchType`` and run both search legs

    Returns:
        SearchIntent when ``q`` is present, otherwise FetchIntent

    Raises:
        ValidationError: If neither ``q`` nor ``url`` is given, or ``entryId``
            is not an integer
    """
    query = params.get("q") or ""
    target_url = params.get("url") or ""

    if not query and not target_url:
        raise ValidationError(MISSING_PARAMS_MESSAGE)

    if query:
        if always_combined:
            mode = SearchMode.COMBINED
        else:
            mode = SearchMode.from_param(params.get("searchType"))

        return SearchIntent(
            query=query,
            mode=mode,
            entry_id=_parse_entry_id(params.get("entryId")),
        )

    return FetchIntent(target_url=target_url)


def _parse_entry_id(raw: Optional[str]) -> int:
    if raw is None or raw.strip() == "":
        return DEFAULT_ENTRY_ID
    try:
        return int(raw.strip())
    except ValueError:
        raise ValidationError(INVALID_ENTRY_ID_MESSAGE) from None

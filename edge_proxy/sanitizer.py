"""Best-effort removal of active content from fetched markup.

Strips ``<script>`` and ``<form>`` elements (with their content) and
``<meta http-equiv="refresh">`` tags. This is a filter, not a sanitizer:
the regex backend can under- or over-match nested or malformed tags.
"""

import re
from typing import Iterable

from bs4 import BeautifulSoup

SCRIPT_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
META_REFRESH_PATTERN = re.compile(
    r"<meta[^>]*http-equiv=[\"']refresh[\"'][^>]*>", re.IGNORECASE
)
FORM_PATTERN = re.compile(r"<form\b[^<]*(?:(?!</form>)<[^<]*)*</form>", re.IGNORECASE)


def strip_active_content_regex(html: str) -> str:
    """Remove scripts, meta refreshes and forms with regular expressions."""
    html = SCRIPT_PATTERN.sub("", html)
    html = META_REFRESH_PATTERN.sub("", html)
    return FORM_PATTERN.sub("", html)


def strip_active_content_parser(html: str) -> str:
    """Remove scripts, meta refreshes and forms using an HTML parser."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(["script", "form"]):
        tag.decompose()

    for meta in soup.find_all("meta"):
        if (meta.get("http-equiv") or "").strip().lower() == "refresh":
            meta.decompose()

    return str(soup)


def strip_active_content(html: str, backend: str = "regex") -> str:
    """Strip active content with the chosen backend (``regex`` or ``html_parser``)."""
    if backend == "html_parser":
        return strip_active_content_parser(html)
    return strip_active_content_regex(html)


def should_sanitize(target_url: str, patterns: Iterable[str]) -> bool:
    """True when the target looks like a search-results page."""
    return any(pattern in target_url for pattern in patterns)

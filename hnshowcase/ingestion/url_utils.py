"""URL helpers for listing normalization and cache keys."""

from __future__ import annotations

import hashlib
from urllib.parse import urljoin, urlparse


UPSTREAM_ORIGIN = "https://news.ycombinator.com"

# Relative hrefs the listing uses for self posts (text-only Show HN entries).
SELF_LINK_PREFIX = "item?id="


def url_hash(url: str) -> str:
    """Stable cache key for a request URL.

    The raw URL is hashed as-is: two spellings of the same page are two
    distinct requests and get two cache entries.
    """
    return hashlib.sha256((url or "").encode("utf-8")).hexdigest()


def origin(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}"


def discussion_url(item_id: str, *, base: str = UPSTREAM_ORIGIN) -> str:
    return f"{base.rstrip('/')}/item?id={item_id}"


def is_discussion_url(url: str, *, base: str = UPSTREAM_ORIGIN) -> bool:
    """True for links that point back into the upstream forum itself."""
    if not url:
        return False
    return url.startswith(f"{base.rstrip('/')}/item?id=") or url.startswith(SELF_LINK_PREFIX)


def normalize_destination(href: str, page_url: str) -> str:
    """Absolutize a post link; self-referential ``item?id=`` links become discussion URLs."""
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith(SELF_LINK_PREFIX):
        return f"{origin(page_url)}/{href}"
    return urljoin(page_url, href)

"""Metadata extraction from cached destination pages.

Order of rules:
1. trafilatura's metadata pass (JSON-LD, OpenGraph, meta tags, <title>)
2. meta/link tag fallbacks for whatever it left empty, plus the site logo
3. image policy: placeholders and images failing validation are dropped
4. README image discovery when the page lives on a source-hosting platform
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup

from hnshowcase.errors import ExtractionFailure
from hnshowcase.extraction.image_validator import ImageValidator
from hnshowcase.extraction.readme_images import PreviewKeywordScorer, fallback_candidates, is_source_host
from hnshowcase.ingestion.record_types import ListingRecord, Metadata
from hnshowcase.storage.fetch_cache import CacheEntry

logger = logging.getLogger(__name__)


# Platform-default social cards and generated avatars, never a real preview.
PLACEHOLDER_PATTERNS = (
    "opengraph.githubassets.com",
    "github.com/identicons/",
    "camo.githubusercontent.com",
)

_IMAGE_META = (
    ("property", "og:image"),
    ("property", "og:image:url"),
    ("name", "twitter:image"),
    ("name", "twitter:image:src"),
)
_PUBLISHER_META = (("property", "og:site_name"), ("name", "application-name"), ("name", "publisher"))
_AUTHOR_META = (("name", "author"), ("property", "article:author"), ("name", "twitter:creator"))
_DESCRIPTION_META = (("name", "description"), ("property", "og:description"), ("name", "twitter:description"))
_LOGO_LINK_RELS = ("apple-touch-icon", "icon", "shortcut icon")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _meta(soup: BeautifulSoup, candidates: Sequence[tuple]) -> Optional[str]:
    for attr, key in candidates:
        tag = soup.find("meta", attrs={attr: key})
        if tag is not None and _clean(tag.get("content")):
            return _clean(tag.get("content"))
    return None


def _link_href(soup: BeautifulSoup, rel: str) -> Optional[str]:
    for tag in soup.find_all("link", href=True):
        rels = tag.get("rel") or []
        if isinstance(rels, str):
            rels = rels.split()
        if " ".join(r.lower() for r in rels) == rel:
            return tag["href"]
    return None


def _absolute(value: Optional[str], base_url: str) -> Optional[str]:
    if not value:
        return None
    if value.startswith("data:"):
        return None
    return urljoin(base_url, value)


def trafilatura_fields(html: str, page_url: str) -> Dict[str, Optional[str]]:
    doc = trafilatura.extract_metadata(html, default_url=page_url)
    if doc is None:
        return {}
    return {
        "title": _clean(getattr(doc, "title", None)),
        "description": _clean(getattr(doc, "description", None)),
        "image": _clean(getattr(doc, "image", None)),
        "url": _clean(getattr(doc, "url", None)),
        "publisher": _clean(getattr(doc, "sitename", None)),
        "author": _clean(getattr(doc, "author", None)),
    }


def tag_fields(soup: BeautifulSoup) -> Dict[str, Optional[str]]:
    title_tag = soup.find("title")
    return {
        "title": _meta(soup, (("property", "og:title"), ("name", "twitter:title")))
        or (_clean(title_tag.get_text()) if title_tag else None),
        "description": _meta(soup, _DESCRIPTION_META),
        "image": _meta(soup, _IMAGE_META) or _link_href(soup, "image_src"),
        "url": _link_href(soup, "canonical") or _meta(soup, (("property", "og:url"),)),
        "publisher": _meta(soup, _PUBLISHER_META),
        "author": _meta(soup, _AUTHOR_META),
        "logo": _meta(soup, (("property", "og:logo"),))
        or next((h for h in (_link_href(soup, rel) for rel in _LOGO_LINK_RELS) if h), None),
    }


def is_placeholder_image(url: str, patterns: Sequence[str] = PLACEHOLDER_PATTERNS) -> bool:
    low = (url or "").lower()
    return any(p in low for p in patterns)


class MetadataExtractor:
    def __init__(
        self,
        validator: ImageValidator,
        *,
        placeholder_patterns: Sequence[str] = PLACEHOLDER_PATTERNS,
        scorer: Optional[PreviewKeywordScorer] = None,
    ):
        self.validator = validator
        self.placeholder_patterns = tuple(placeholder_patterns)
        self.scorer = scorer or PreviewKeywordScorer()

    def extract(self, record: ListingRecord, entry: Optional[CacheEntry]) -> Optional[Metadata]:
        if entry is None or not entry.html:
            return None
        page_url = entry.final_url or entry.request_url or record.url
        found: Dict[str, Optional[str]] = {}
        image: Optional[str] = None
        try:
            self._generic_pass(entry.html, page_url, found)
            image = self._checked_image(found.get("image"))
            if not image and is_source_host(page_url):
                image = self._readme_fallback(entry.html, page_url)
        except Exception as e:
            failure = ExtractionFailure(record.id, str(e))
            logger.error(f"Error processing metadata, keeping partial result: {failure}")
        # only an image that passed validation is ever published
        found["image"] = image
        md = Metadata(**{k: v for k, v in found.items() if v})
        return None if md.is_empty() else md

    def _generic_pass(self, html: str, page_url: str, found: Dict[str, Optional[str]]) -> None:
        found.update({k: v for k, v in trafilatura_fields(html, page_url).items() if v})
        soup = BeautifulSoup(html, "lxml")
        for key, value in tag_fields(soup).items():
            if value and not found.get(key):
                found[key] = value
        found["image"] = _absolute(found.get("image"), page_url)
        found["logo"] = _absolute(found.get("logo"), page_url)
        found["url"] = _absolute(found.get("url"), page_url) or page_url

    def _checked_image(self, image: Optional[str]) -> Optional[str]:
        if not image:
            return None
        if is_placeholder_image(image, self.placeholder_patterns) or not self.validator.is_usable_image(image):
            logger.debug(f"Rejected preview image {image}")
            return None
        return image

    def _readme_fallback(self, html: str, page_url: str) -> Optional[str]:
        for candidate in fallback_candidates(html, page_url, self.scorer):
            if self.validator.is_usable_image(candidate):
                return candidate
        return None

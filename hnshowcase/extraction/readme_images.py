"""Fallback preview discovery on source-hosting pages (GitHub READMEs)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup


SOURCE_HOSTS = ("github.com", "www.github.com")
RAW_HOST = "raw.githubusercontent.com"
DEFAULT_BRANCH = "main"

PREVIEW_KEYWORDS = (
    "screenshot",
    "demo",
    "dashboard",
    "preview",
    "timeline",
    "graph",
    "result",
    "example",
    "constellations",
    ".gif",
)

DECORATIVE_TERMS = ("badge", "shield", "logo", "icon")

_VIEW_LINK = re.compile(r"^/([^/]+)/([^/]+)/(?:blob|raw)/(.+)$")


def is_source_host(url: str) -> bool:
    return (urlparse(url or "").hostname or "").lower() in SOURCE_HOSTS


@dataclass(frozen=True)
class PreviewKeywordScorer:
    """1 for candidates whose URL suggests a product preview, 0 otherwise."""

    keywords: Sequence[str] = PREVIEW_KEYWORDS

    def score(self, src: str) -> int:
        low = (src or "").lower()
        return 1 if any(kw in low for kw in self.keywords) else 0


def looks_decorative(src: str) -> bool:
    low = (src or "").lower()
    return any(term in low for term in DECORATIVE_TERMS)


def readme_image_sources(html: str) -> List[str]:
    soup = BeautifulSoup(html, "lxml")
    return [img.get("src") for img in soup.select(".markdown-body img") if img.get("src")]


def rank_candidates(sources: Sequence[str], scorer: Optional[PreviewKeywordScorer] = None) -> List[str]:
    """Keyword-scored candidates first; document order kept within a score."""
    scorer = scorer or PreviewKeywordScorer()
    return sorted(sources, key=lambda s: -scorer.score(s))


def _repo_parts(page_url: str) -> Optional[Sequence[str]]:
    parts = [p for p in urlparse(page_url).path.split("/") if p]
    return parts[:2] if len(parts) >= 2 else None


def to_raw_url(url: str) -> str:
    """github.com/<owner>/<repo>/blob|raw/<ref>/<path> -> raw.githubusercontent.com/<owner>/<repo>/<ref>/<path>."""
    p = urlparse(url)
    if (p.hostname or "").lower() not in SOURCE_HOSTS:
        return url
    m = _VIEW_LINK.match(p.path)
    if not m:
        return url
    owner, repo, rest = m.groups()
    query = f"?{p.query}" if p.query else ""
    return f"https://{RAW_HOST}/{owner}/{repo}/{rest}{query}"


def resolve_candidate(src: str, page_url: str, *, branch: str = DEFAULT_BRANCH) -> Optional[str]:
    """Absolute URLs pass through; ``/x`` resolves against the page origin;
    ``x`` is taken as a path inside the repository's raw content."""
    src = (src or "").strip()
    if not src or src.startswith("data:"):
        return None
    if src.startswith("//"):
        resolved = f"https:{src}"
    elif src.startswith(("http://", "https://")):
        resolved = src
    elif src.startswith("/"):
        p = urlparse(page_url)
        resolved = f"{p.scheme}://{p.netloc}{src}"
    else:
        repo = _repo_parts(page_url)
        if not repo:
            return None
        rel = src[2:] if src.startswith("./") else src
        resolved = f"https://{RAW_HOST}/{repo[0]}/{repo[1]}/{branch}/{rel}"
    return to_raw_url(resolved)


def fallback_candidates(html: str, page_url: str, scorer: Optional[PreviewKeywordScorer] = None) -> List[str]:
    """Resolved, non-decorative README images in preference order."""
    out: List[str] = []
    for src in rank_candidates(readme_image_sources(html), scorer):
        if looks_decorative(src):
            continue
        resolved = resolve_candidate(src, page_url)
        if resolved and resolved not in out:
            out.append(resolved)
    return out

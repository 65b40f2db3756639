"""Listing crawler for the upstream Show HN pages.

Each start URL is walked page by page through the "More" link. A failure on
one page ends that start URL's chain only; records already parsed are kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from hnshowcase.errors import FetchFailure, ParseFailure
from hnshowcase.ingestion.record_types import ListingRecord
from hnshowcase.ingestion.url_utils import discussion_url, normalize_destination, origin
from hnshowcase.runtime.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^0-9]")


def _digits(text: str) -> int:
    cleaned = _NON_DIGITS.sub("", text or "")
    return int(cleaned) if cleaned else 0


@dataclass(frozen=True)
class ListingPage:
    records: List[ListingRecord]
    next_url: Optional[str]


@dataclass
class CrawlResult:
    records: List[ListingRecord]
    pages_fetched: int = 0
    failed_chains: Dict[str, str] = field(default_factory=dict)


def parse_listing_page(html: str, page_url: str) -> ListingPage:
    """Parse every post row of a listing page plus its "More" link."""
    if not html or not html.strip():
        raise ParseFailure(f"empty listing page: {page_url}")
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as e:
        raise ParseFailure(f"unparseable listing page {page_url}: {e}") from e

    base = origin(page_url)
    records: List[ListingRecord] = []
    for row in soup.select("tr.athing"):
        item_id = (row.get("id") or "").strip()
        if not item_id:
            logger.debug(f"Skipping listing row without id on {page_url}")
            continue
        title_link = row.select_one(".titleline > a")
        title = title_link.get_text() if title_link else ""
        href = title_link.get("href", "") if title_link else ""

        subtext = row.find_next_sibling("tr")
        author = ""
        score = 0
        comments = 0
        timestamp = ""
        if subtext is not None:
            user = subtext.select_one(".hnuser")
            author = user.get_text() if user else ""
            score_el = subtext.select_one(".score")
            score = _digits(score_el.get_text()) if score_el else 0
            for link in subtext.find_all("a"):
                text = link.get_text()
                if "comment" in text:
                    comments = _digits(text)
            age = subtext.select_one(".age")
            timestamp = (age.get("title") or "") if age else ""

        records.append(
            ListingRecord(
                id=item_id,
                title=title,
                url=normalize_destination(href, page_url),
                discussion_url=discussion_url(item_id, base=base),
                author=author,
                score=score,
                comments=comments,
                timestamp=timestamp,
            )
        )

    more = soup.select_one("a.morelink")
    next_url = urljoin(page_url, more["href"]) if more is not None and more.get("href") else None
    return ListingPage(records=records, next_url=next_url)


def dedupe_records(records: Iterable[ListingRecord]) -> List[ListingRecord]:
    """One record per id; the last parsed copy wins, first-seen position is kept."""
    by_id: Dict[str, ListingRecord] = {}
    for rec in records:
        by_id[rec.id] = rec
    return list(by_id.values())


class ListingCrawler:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        user_agent: str,
        timeout: int = 30,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.session = session or requests.Session()
        self.user_agent = user_agent
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter.every(1.0)

    def fetch_page(self, url: str) -> str:
        self.rate_limiter.wait_if_needed()
        logger.info(f"Fetching listing page: {url}")
        try:
            resp = self.session.get(url, headers={"User-Agent": self.user_agent}, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailure(url, str(e)) from e
        if resp.status_code >= 400:
            raise FetchFailure(url, f"http_{resp.status_code}")
        return resp.text

    def crawl_chain(self, start_url: str, max_pages: int) -> Tuple[List[ListingRecord], int, Optional[str]]:
        """Walk one start URL. Returns (records, pages_fetched, error_or_None)."""
        records: List[ListingRecord] = []
        current: Optional[str] = start_url
        pages = 0
        while current and pages < max_pages:
            try:
                page = parse_listing_page(self.fetch_page(current), current)
            except (FetchFailure, ParseFailure) as e:
                logger.error(f"Error fetching page {current}: {e}")
                return records, pages, str(e)
            records.extend(page.records)
            pages += 1
            current = page.next_url
        return records, pages, None

    def crawl(self, start_urls: Sequence[str], max_pages_per_url: int) -> CrawlResult:
        all_records: List[ListingRecord] = []
        result = CrawlResult(records=[])
        for start_url in start_urls:
            records, pages, error = self.crawl_chain(start_url, max_pages_per_url)
            all_records.extend(records)
            result.pages_fetched += pages
            if error:
                result.failed_chains[start_url] = error
            logger.info(f"Chain {start_url}: pages={pages} records={len(records)}")
        result.records = dedupe_records(all_records)
        return result

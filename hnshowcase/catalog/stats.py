"""Collection statistics for the README and for sanity checks after a run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from hnshowcase.catalog.directory import slugify
from hnshowcase.ingestion.record_types import ListingRecord, ShowcaseRecord
from hnshowcase.storage.fetch_cache import CacheEntry

# Pages shorter than this are almost always error or parking pages.
MIN_USEFUL_HTML = 100


def _day(timestamp: str) -> str:
    return (timestamp or "").split("T", 1)[0].split(" ", 1)[0]


def category_distribution(records: Iterable[ShowcaseRecord]) -> List[Tuple[str, int]]:
    counts = Counter(r.category or "Other" for r in records)
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def posts_per_day(records: Iterable[ListingRecord]) -> Dict[str, int]:
    counts = Counter(_day(r.timestamp) for r in records if r.timestamp)
    return dict(sorted(counts.items()))


def posts_per_month(records: Iterable[ListingRecord]) -> Dict[str, int]:
    counts = Counter(_day(r.timestamp)[:7] for r in records if r.timestamp)
    return dict(sorted(counts.items()))


def count_bad_cache_entries(entries: Iterable[CacheEntry]) -> int:
    return sum(1 for e in entries if e.error or (e.html and len(e.html) < MIN_USEFUL_HTML))


def slug_collisions(categories: Iterable[str]) -> Dict[str, List[str]]:
    """Slugs shared by more than one distinct display name."""
    by_slug: Dict[str, set] = {}
    for name in categories:
        by_slug.setdefault(slugify(name), set()).add(name)
    return {slug: sorted(names) for slug, names in by_slug.items() if len(names) > 1}


@dataclass(frozen=True)
class ImageCoverage:
    total: int
    with_image: int

    @property
    def ratio(self) -> float:
        return self.with_image / self.total if self.total else 0.0


def image_coverage(records: Sequence[ShowcaseRecord]) -> ImageCoverage:
    return ImageCoverage(total=len(records), with_image=sum(1 for r in records if r.image))


def bar(count: int, per_block: int) -> str:
    return "█" * -(-count // max(1, per_block))

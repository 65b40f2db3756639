"""Read-only query layer over the classified collection.

Used by the renderer: grouping, per-category listing, search and slugs.
Collections are treated as immutable snapshots.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Sequence

from hnshowcase.classification.keyword_rules import OTHER_CATEGORY
from hnshowcase.ingestion.record_types import ShowcaseRecord
from hnshowcase.storage.json_store import load_collection

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(text: str) -> str:
    """'Data Visualization & Dashboards' -> 'data-visualization-dashboards'."""
    slug = _NON_WORD.sub("", (text or "").lower()).strip()
    slug = _WHITESPACE.sub("-", slug)
    return _HYPHENS.sub("-", slug)


def sort_records(records: Iterable[ShowcaseRecord]) -> List[ShowcaseRecord]:
    """Records with an image first, then most comments first. Stable."""
    return sorted(records, key=lambda r: (0 if r.image else 1, -(r.comments or 0)))


def group_by_category(records: Iterable[ShowcaseRecord]) -> Dict[str, List[ShowcaseRecord]]:
    grouped: Dict[str, List[ShowcaseRecord]] = {}
    for rec in records:
        grouped.setdefault(rec.category or OTHER_CATEGORY, []).append(rec)
    return {cat: sort_records(items) for cat, items in grouped.items()}


def ordered_categories(names: Iterable[str]) -> List[str]:
    """Alphabetical, with the "Other" bucket last."""
    return sorted(set(names), key=lambda n: (n == OTHER_CATEGORY, n.lower(), n))


def records_for_category(records: Iterable[ShowcaseRecord], slug: str) -> List[ShowcaseRecord]:
    wanted = (slug or "").lower()
    return sort_records(r for r in records if slugify(r.category or OTHER_CATEGORY) == wanted)


def search(records: Sequence[ShowcaseRecord], query: str) -> List[ShowcaseRecord]:
    """Case-insensitive substring match on title, author and category; input order kept."""
    q = (query or "").strip().lower()
    if not q:
        return []
    return [
        r for r in records
        if q in (r.title or "").lower() or q in (r.author or "").lower() or q in (r.category or "").lower()
    ]


class Directory:
    """Snapshot of the classified collection with the queries the site needs."""

    def __init__(self, records: Sequence[ShowcaseRecord]):
        self.records = list(records)

    @classmethod
    def load(cls, path: str) -> "Directory":
        return cls(load_collection(path, ShowcaseRecord.from_dict))

    def categories(self) -> List[str]:
        return ordered_categories(r.category or OTHER_CATEGORY for r in self.records)

    def grouped(self) -> Dict[str, List[ShowcaseRecord]]:
        groups = group_by_category(self.records)
        return {cat: groups[cat] for cat in ordered_categories(groups)}

    def category(self, slug: str) -> List[ShowcaseRecord]:
        return records_for_category(self.records, slug)

    def search(self, query: str) -> List[ShowcaseRecord]:
        return search(self.records, query)

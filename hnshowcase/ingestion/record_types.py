"""Shared record types for every pipeline stage.

Records travel between stages as JSON dicts; these dataclasses are the typed
view of them. Unknown keys are ignored on load.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class ListingRecord:
    """One post row parsed from a listing page (pre-enrichment)."""

    id: str
    title: str
    url: str
    discussion_url: str
    author: str = ""
    score: int = 0
    comments: int = 0
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListingRecord":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            discussion_url=str(data.get("discussion_url") or ""),
            author=str(data.get("author") or ""),
            score=_as_int(data.get("score")),
            comments=_as_int(data.get("comments")),
            timestamp=str(data.get("timestamp") or ""),
        )


@dataclass(frozen=True)
class Metadata:
    """Descriptive fields scraped from a destination page. Every field is optional."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    logo: Optional[str] = None
    publisher: Optional[str] = None
    author: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Metadata"]:
        if not data:
            return None
        known = {f.name for f in fields(cls)}
        md = cls(**{k: (str(v) if v else None) for k, v in data.items() if k in known})
        return None if md.is_empty() else md


@dataclass(frozen=True)
class ShowcaseRecord:
    """Listing record plus optional metadata and (after classification) a category."""

    listing: ListingRecord
    metadata: Optional[Metadata] = None
    category: Optional[str] = None

    @property
    def id(self) -> str:
        return self.listing.id

    @property
    def title(self) -> str:
        return self.listing.title

    @property
    def author(self) -> str:
        return self.listing.author

    @property
    def comments(self) -> int:
        return self.listing.comments

    @property
    def image(self) -> Optional[str]:
        return self.metadata.image if self.metadata else None

    @property
    def description(self) -> str:
        return (self.metadata.description if self.metadata else None) or ""

    def with_metadata(self, metadata: Optional[Metadata]) -> "ShowcaseRecord":
        if metadata is not None and metadata.is_empty():
            metadata = None
        return replace(self, metadata=metadata)

    def with_category(self, category: str) -> "ShowcaseRecord":
        return replace(self, category=category)

    def to_dict(self) -> Dict[str, Any]:
        out = self.listing.to_dict()
        if self.metadata is not None:
            out["metadata"] = self.metadata.to_dict()
        if self.category:
            out["category"] = self.category
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShowcaseRecord":
        return cls(
            listing=ListingRecord.from_dict(data),
            metadata=Metadata.from_dict(data.get("metadata")),
            category=(str(data["category"]) if data.get("category") else None),
        )

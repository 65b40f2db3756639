"""Persistent fetch cache for destination pages.

One JSON file per request URL, named by ``url_hash(url)``. An entry, including
an error entry, means "already fetched": nothing expires and failures are not
retried unless the entry is invalidated by hand.

Concurrent callers asking for the same URL share one fetch: the lock stripe
for its key serializes them and the late arrivals read the entry the first
one wrote.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

import requests

from hnshowcase.ingestion.page_fetch import fetch_page
from hnshowcase.ingestion.url_utils import url_hash
from hnshowcase.runtime.rate_limit import RateLimiter
from hnshowcase.storage.json_store import read_json, write_json_atomic

logger = logging.getLogger(__name__)

# Fixed pool of locks; a URL always maps to the same one, unrelated URLs may share.
LOCK_STRIPES = 64


@dataclass(frozen=True)
class CacheEntry:
    request_url: str
    html: str
    final_url: str
    error: Optional[str] = None
    fetched_at: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.error and bool(self.html)

    def to_dict(self) -> Dict[str, Optional[str]]:
        out = asdict(self)
        if out["error"] is None:
            out.pop("error")
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Optional[str]]) -> "CacheEntry":
        request_url = data.get("request_url") or ""
        return cls(
            request_url=request_url,
            html=data.get("html") or "",
            final_url=data.get("final_url") or request_url,
            error=data.get("error") or None,
            fetched_at=data.get("fetched_at"),
        )


class FetchCache:
    def __init__(
        self,
        cache_dir: str,
        session: Optional[requests.Session] = None,
        *,
        user_agent: str,
        timeout: int = 10,
        max_bytes: int = 5_000_000,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.cache_dir = cache_dir
        self.session = session or requests.Session()
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.rate_limiter = rate_limiter or RateLimiter.every(0)
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        os.makedirs(cache_dir, exist_ok=True)

    def path_for(self, url: str) -> str:
        return os.path.join(self.cache_dir, f"{url_hash(url)}.json")

    def _key_lock(self, key: str) -> threading.Lock:
        return self._locks[int(key[:8], 16) % len(self._locks)]

    def contains(self, url: str) -> bool:
        return os.path.exists(self.path_for(url))

    def get(self, url: str) -> Optional[CacheEntry]:
        """Read-only lookup; never touches the network."""
        path = self.path_for(url)
        if not os.path.exists(path):
            return None
        try:
            return CacheEntry.from_dict(read_json(path))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable cache entry for {url} ({path}): {e}")
            return None

    def fetch_cached(self, url: str) -> CacheEntry:
        key = url_hash(url)
        with self._key_lock(key):
            existing = self.get(url)
            if existing is not None:
                return existing

            self.rate_limiter.wait_if_needed()
            logger.info(f"Downloading: {url}")
            result = fetch_page(
                self.session,
                url,
                user_agent=self.user_agent,
                timeout=self.timeout,
                max_bytes=self.max_bytes,
            )
            if result.error:
                logger.warning(f"Failed to download {url}: {result.error}")
            entry = CacheEntry(
                request_url=url,
                html=result.html if not result.error else "",
                final_url=result.final_url or url,
                error=result.error,
                fetched_at=datetime.now(timezone.utc).isoformat(),
            )
            write_json_atomic(self.path_for(url), entry.to_dict())
            return entry

    def invalidate(self, url: str) -> bool:
        """Drop the entry for ``url`` so the next ``fetch_cached`` re-fetches it."""
        with self._key_lock(url_hash(url)):
            try:
                os.unlink(self.path_for(url))
                return True
            except FileNotFoundError:
                return False

    def entries(self) -> Iterator[CacheEntry]:
        for name in sorted(os.listdir(self.cache_dir)):
            if not name.endswith(".json") or name.startswith(".tmp-"):
                continue
            try:
                yield CacheEntry.from_dict(read_json(os.path.join(self.cache_dir, name)))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable cache file {name}: {e}")

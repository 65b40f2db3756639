"""Preview image gatekeeper.

Static rules reject decorative assets (CI badges, shields, tracking pixels)
without any network traffic. Whatever survives gets a live header check.
Any network error means "not usable".
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import requests

from hnshowcase.errors import ValidationFailure

logger = logging.getLogger(__name__)


DEFAULT_BLACKLIST = (
    "img.shields.io",
    "badge.svg",
    "badgen.net",
    "travis-ci.org",
    "travis-ci.com",
    "circleci.com",
    "opencollective.com",
    "github-readme-stats",
    "codacy.com",
    "codecov.io",
    "coveralls.io",
    "npmify.js",
    "hits.dwyl.com",
    "fossa.com",
    "lgtm.com",
    "sonarcloud.io",
    "snyk.io",
    "google-analytics.com",
    "/pixel.gif",
    "/actions/workflows/",
)

# Proxies that re-host README images hide the original URL as hex.
PROXY_HOSTS = ("camo.githubusercontent.com", "raw.githubusercontent.com")
HEX_ENCODED_TERMS = ("badge", "shield", "Hacker News", "Show HN")

IMAGE_EXTENSION = re.compile(r"\.(png|jpe?g|gif|webp|svg|avif)$", re.IGNORECASE)


def _hex(term: str) -> str:
    return term.encode("utf-8").hex()


@dataclass(frozen=True)
class SubstringBlacklist:
    terms: Sequence[str] = DEFAULT_BLACKLIST

    def rejects(self, url: str) -> bool:
        low = url.lower()
        return any(term in low for term in self.terms)


@dataclass(frozen=True)
class HexEncodedBlacklist:
    terms: Sequence[str] = HEX_ENCODED_TERMS
    proxy_hosts: Sequence[str] = PROXY_HOSTS

    def rejects(self, url: str) -> bool:
        low = url.lower()
        if not any(host in low for host in self.proxy_hosts):
            return False
        return any(_hex(term) in low for term in self.terms)


def default_rules() -> List[object]:
    return [SubstringBlacklist(), HexEncodedBlacklist()]


def _path_of(url: str) -> str:
    return url.split("?", 1)[0].split("#", 1)[0]


def is_vector(url: str, content_type: str = "") -> bool:
    return _path_of(url).lower().endswith(".svg") or "svg" in (content_type or "").lower()


class ImageValidator:
    """``is_usable_image(url)``: static rules first, then a streamed header check."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        rules: Optional[Iterable[object]] = None,
        timeout: int = 8,
        min_bytes: int = 2000,
        user_agent: str = "Mozilla/5.0",
    ):
        self.session = session or requests.Session()
        self.rules = list(rules) if rules is not None else default_rules()
        self.timeout = timeout
        self.min_bytes = min_bytes
        self.user_agent = user_agent
        self._memo: Dict[str, bool] = {}
        self._memo_lock = threading.Lock()

    def is_blacklisted(self, url: str) -> bool:
        return any(rule.rejects(url) for rule in self.rules)

    def is_usable_image(self, url: Optional[str]) -> bool:
        if not url or not url.startswith(("http://", "https://")):
            return False
        if self.is_blacklisted(url):
            return False
        with self._memo_lock:
            if url in self._memo:
                return self._memo[url]
        usable = self._check_live(url)
        with self._memo_lock:
            self._memo[url] = usable
        return usable

    def _check_live(self, url: str) -> bool:
        try:
            self._inspect(url)
        except ValidationFailure as e:
            logger.debug(f"Image rejected: {e}")
            return False
        return True

    def _inspect(self, url: str) -> None:
        try:
            resp = self.session.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                stream=True,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise ValidationFailure(url, str(e) or e.__class__.__name__) from e
        try:
            if not (200 <= resp.status_code < 300):
                raise ValidationFailure(url, f"http_{resp.status_code}")
            content_type = (resp.headers.get("content-type") or "").lower()
            if not (content_type.startswith("image/") or IMAGE_EXTENSION.search(_path_of(url))):
                raise ValidationFailure(url, f"not an image ({content_type or 'no content-type'})")
            try:
                length = int(resp.headers.get("content-length") or 10_000)
            except ValueError:
                length = 10_000
            if length < self.min_bytes and not is_vector(url, content_type):
                raise ValidationFailure(url, f"too small ({length} bytes)")
        finally:
            resp.close()

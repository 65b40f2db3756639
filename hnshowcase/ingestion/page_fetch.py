"""Destination page fetch.

Policy:
- http(s) only; localhost and private/link-local IPs are refused (SSRF guard).
- Body is streamed and capped at ``max_bytes``.
- Failures come back as a result with ``error`` set, never as an exception.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests


@dataclass(frozen=True)
class PageFetchResult:
    html: str
    final_url: str
    status: str
    error: Optional[str] = None


_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched."""
    try:
        p = urlparse(url)
    except Exception:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def fetch_page(
    session: requests.Session,
    url: str,
    *,
    user_agent: str,
    timeout: int = 10,
    max_bytes: int = 5_000_000,
) -> PageFetchResult:
    if not url:
        return PageFetchResult(html="", final_url=url, status="error", error="empty_url")
    err = validate_fetch_url(url)
    if err:
        return PageFetchResult(html="", final_url=url, status="blocked", error=err)
    try:
        resp = session.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=(5, timeout),
            allow_redirects=True,
            stream=True,
        )
        try:
            final_url = resp.url or url
            if resp.status_code >= 400:
                return PageFetchResult(html="", final_url=final_url, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}")
            content = b""
            for chunk in resp.iter_content(chunk_size=64 * 1024):
                if not chunk:
                    continue
                content += chunk
                if len(content) > max_bytes:
                    return PageFetchResult(html="", final_url=final_url, status="too_large", error="too_large")
            try:
                html = content.decode(resp.encoding or "utf-8", errors="replace")
            except LookupError:
                html = content.decode("utf-8", errors="replace")
        finally:
            resp.close()
        return PageFetchResult(html=html, final_url=final_url, status="ok")
    except requests.RequestException as e:
        return PageFetchResult(html="", final_url=url, status="error", error=str(e) or e.__class__.__name__)

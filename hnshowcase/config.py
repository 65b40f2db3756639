"""Pipeline configuration loaded from the environment (.env supported)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from hnshowcase.errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_LISTING_URLS = [
    "https://news.ycombinator.com/show",
    "https://news.ycombinator.com/shownew",
]

DEFAULT_USER_AGENT = "HNShowcase/1.0 (+https://github.com/hn-showcase; directory crawler)"

CLASSIFIER_CHOICES = ("keyword", "llm")


def _split_urls(raw: str) -> List[str]:
    return [u.strip() for u in (raw or "").split(",") if u.strip()]


@dataclass
class PipelineConfig:
    """Configuration for all pipeline stages, with validation."""

    data_dir: str = "data"

    # Listing crawl
    listing_urls: List[str] = field(default_factory=lambda: list(DEFAULT_LISTING_URLS))
    max_pages_per_url: int = 30
    listing_delay: float = 1.0

    # Destination fetch
    fetch_delay: float = 0.2
    fetch_timeout: int = 10
    fetch_max_bytes: int = 5_000_000
    fetch_workers: int = 4
    user_agent: str = DEFAULT_USER_AGENT

    # Metadata extraction / images
    image_timeout: int = 8
    image_min_bytes: int = 2000
    extract_workers: int = 4

    # Classification
    classifier: str = "keyword"
    openai_api_key: str = ""
    openrouter_api_key: str = ""
    ai_model: str = "gpt-4o-mini"
    classify_sample_size: int = 300
    classify_batch_size: int = 50
    classify_workers: int = 2
    request_timeout: int = 60

    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load and validate configuration from environment variables"""
        load_dotenv()
        config = cls(
            data_dir=os.getenv("DATA_DIR", "data"),
            listing_urls=_split_urls(os.getenv("LISTING_URLS", "")) or list(DEFAULT_LISTING_URLS),
            max_pages_per_url=int(os.getenv("MAX_PAGES_PER_URL", "30")),
            listing_delay=float(os.getenv("LISTING_DELAY", "1.0")),
            fetch_delay=float(os.getenv("FETCH_DELAY", "0.2")),
            fetch_timeout=int(os.getenv("FETCH_TIMEOUT", "10")),
            fetch_max_bytes=int(os.getenv("FETCH_MAX_BYTES", "5000000")),
            fetch_workers=int(os.getenv("FETCH_WORKERS", "4")),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            image_timeout=int(os.getenv("IMAGE_TIMEOUT", "8")),
            image_min_bytes=int(os.getenv("IMAGE_MIN_BYTES", "2000")),
            extract_workers=int(os.getenv("EXTRACT_WORKERS", "4")),
            classifier=(os.getenv("CLASSIFIER", "keyword") or "keyword").strip().lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            ai_model=os.getenv("AI_MODEL", "gpt-4o-mini") or "gpt-4o-mini",
            classify_sample_size=int(os.getenv("CLASSIFY_SAMPLE_SIZE", "300")),
            classify_batch_size=int(os.getenv("CLASSIFY_BATCH_SIZE", "50")),
            classify_workers=int(os.getenv("CLASSIFY_WORKERS", "2")),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", "60")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
        )
        config._validate()
        return config

    def _validate(self) -> None:
        errors = []

        if not self.listing_urls:
            errors.append("LISTING_URLS must name at least one listing page")
        for url in self.listing_urls:
            if not url.startswith(("http://", "https://")):
                errors.append(f"Listing URL is not http(s): {url}")

        if self.max_pages_per_url < 1:
            errors.append("MAX_PAGES_PER_URL must be at least 1")
        if self.listing_delay < 0 or self.fetch_delay < 0:
            errors.append("LISTING_DELAY and FETCH_DELAY must not be negative")
        if self.fetch_timeout < 1 or self.fetch_timeout > 300:
            errors.append("FETCH_TIMEOUT should be between 1 and 300 seconds")
        if self.image_timeout < 1 or self.image_timeout > 60:
            errors.append("IMAGE_TIMEOUT should be between 1 and 60 seconds")
        if self.fetch_workers < 1 or self.extract_workers < 1 or self.classify_workers < 1:
            errors.append("Worker counts must be at least 1")
        if self.classify_batch_size < 1:
            errors.append("CLASSIFY_BATCH_SIZE must be at least 1")
        if self.classify_sample_size < 1:
            errors.append("CLASSIFY_SAMPLE_SIZE must be at least 1")
        if self.classifier not in CLASSIFIER_CHOICES:
            errors.append(f"CLASSIFIER must be one of {', '.join(CLASSIFIER_CHOICES)}")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            raise ConfigurationError(error_msg)

    def require_llm_credentials(self) -> None:
        """Only the model-assisted classification stage needs a credential."""
        if "/" in self.ai_model and self.openrouter_api_key:
            return
        if self.openai_api_key:
            return
        raise ConfigurationError(
            "OPENAI_API_KEY (or OPENROUTER_API_KEY with a provider-prefixed AI_MODEL) is required "
            "for model-assisted classification"
        )

    # Collection paths -------------------------------------------------------

    @property
    def posts_raw_path(self) -> str:
        return os.path.join(self.data_dir, "posts_raw.json")

    @property
    def html_cache_dir(self) -> str:
        return os.path.join(self.data_dir, "html_cache")

    @property
    def posts_with_metadata_path(self) -> str:
        return os.path.join(self.data_dir, "posts_with_metadata.json")

    @property
    def classified_posts_path(self) -> str:
        return os.path.join(self.data_dir, "classified_posts.json")

    @property
    def posts_path(self) -> str:
        return os.path.join(self.data_dir, "posts.json")

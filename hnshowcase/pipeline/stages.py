"""Pipeline stages.

Each stage reads the previous stage's collection, does its work, and writes
its own collection once at the end (atomically). Stages can be re-run on
their own; the fetch cache makes re-runs cheap.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests

from hnshowcase.classification.keyword_rules import KeywordClassifier, default_keyword_rules
from hnshowcase.classification.llm_classifier import ModelAssistedClassifier
from hnshowcase.classification.llm_client import ChatCompletionClient
from hnshowcase.config import PipelineConfig
from hnshowcase.extraction.image_validator import ImageValidator
from hnshowcase.extraction.metadata import MetadataExtractor
from hnshowcase.ingestion.listing_crawler import CrawlResult, ListingCrawler
from hnshowcase.ingestion.record_types import ListingRecord, Metadata, ShowcaseRecord
from hnshowcase.ingestion.url_utils import is_discussion_url
from hnshowcase.runtime.rate_limit import RateLimiter
from hnshowcase.storage.fetch_cache import CacheEntry, FetchCache
from hnshowcase.storage.json_store import load_collection, save_collection

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 50


def _needs_fetch(url: str) -> bool:
    return bool(url) and not is_discussion_url(url)


def build_fetch_cache(config: PipelineConfig, session: Optional[requests.Session] = None) -> FetchCache:
    return FetchCache(
        config.html_cache_dir,
        session,
        user_agent=config.user_agent,
        timeout=config.fetch_timeout,
        max_bytes=config.fetch_max_bytes,
        rate_limiter=RateLimiter.every(config.fetch_delay),
    )


def build_image_validator(config: PipelineConfig, session: Optional[requests.Session] = None) -> ImageValidator:
    return ImageValidator(
        session,
        timeout=config.image_timeout,
        min_bytes=config.image_min_bytes,
        user_agent=config.user_agent,
    )


# Stage 1 ------------------------------------------------------------------

def run_crawl_stage(config: PipelineConfig, session: Optional[requests.Session] = None) -> CrawlResult:
    crawler = ListingCrawler(
        session,
        user_agent=config.user_agent,
        rate_limiter=RateLimiter.every(config.listing_delay),
    )
    result = crawler.crawl(config.listing_urls, config.max_pages_per_url)
    for url, err in result.failed_chains.items():
        logger.warning(f"Chain aborted for {url}: {err}")
    if not result.records:
        logger.error("Crawl produced no records; keeping the previous listing snapshot")
        return result
    saved = save_collection(config.posts_raw_path, result.records)
    logger.info(f"Saved {saved} raw posts to {config.posts_raw_path}")
    return result


# Stage 2 ------------------------------------------------------------------

@dataclass
class FetchSummary:
    requested: int = 0
    distinct: int = 0
    errors: int = 0
    invalidated: int = 0
    failed_urls: List[str] = field(default_factory=list)


def run_fetch_stage(
    config: PipelineConfig,
    cache: Optional[FetchCache] = None,
    *,
    records: Optional[Sequence[ListingRecord]] = None,
    retry_errors: bool = False,
) -> FetchSummary:
    cache = cache or build_fetch_cache(config)
    if records is None:
        records = load_collection(config.posts_raw_path, ListingRecord.from_dict)
    urls = [r.url for r in records if _needs_fetch(r.url)]
    summary = FetchSummary(requested=len(urls), distinct=len(set(urls)))

    if retry_errors:
        for url in sorted(set(urls)):
            entry = cache.get(url)
            if entry is not None and entry.error and cache.invalidate(url):
                summary.invalidated += 1
        logger.info(f"Invalidated {summary.invalidated} failed cache entries")

    logger.info(f"Checking content for {summary.distinct} distinct URLs ({summary.requested} posts)...")
    with ThreadPoolExecutor(max_workers=config.fetch_workers) as executor:
        for count, entry in enumerate(executor.map(cache.fetch_cached, urls), start=1):
            if entry.error and entry.request_url not in summary.failed_urls:
                summary.failed_urls.append(entry.request_url)
            if count % PROGRESS_EVERY == 0:
                logger.info(f"Progress: {count}/{len(urls)}")
    summary.errors = len(summary.failed_urls)
    logger.info(f"Finished downloading content: distinct={summary.distinct} errors={summary.errors}")
    return summary


# Stage 3 ------------------------------------------------------------------

def run_extract_stage(
    config: PipelineConfig,
    cache: Optional[FetchCache] = None,
    extractor: Optional[MetadataExtractor] = None,
    *,
    records: Optional[Sequence[ListingRecord]] = None,
) -> List[ShowcaseRecord]:
    cache = cache or build_fetch_cache(config)
    extractor = extractor or MetadataExtractor(build_image_validator(config))
    if records is None:
        records = load_collection(config.posts_raw_path, ListingRecord.from_dict)
    logger.info(f"Analyzing metadata for {len(records)} posts...")

    def process(record: ListingRecord) -> ShowcaseRecord:
        entry: Optional[CacheEntry] = cache.get(record.url) if _needs_fetch(record.url) else None
        metadata: Optional[Metadata] = extractor.extract(record, entry)
        return ShowcaseRecord(listing=record, metadata=metadata)

    results: List[ShowcaseRecord] = []
    with ThreadPoolExecutor(max_workers=config.extract_workers) as executor:
        for count, rec in enumerate(executor.map(process, records), start=1):
            results.append(rec)
            if count % PROGRESS_EVERY == 0:
                logger.info(f"Processed: {count}/{len(records)}")

    save_collection(config.posts_with_metadata_path, results)
    with_image = sum(1 for r in results if r.image)
    logger.info(f"Saved metadata results to {config.posts_with_metadata_path} (with image: {with_image}/{len(results)})")
    return results


# Stage 4 ------------------------------------------------------------------

def build_classifier(config: PipelineConfig, client=None):
    if config.classifier == "llm":
        if client is None:
            config.require_llm_credentials()
            client = ChatCompletionClient(
                model=config.ai_model,
                openai_api_key=config.openai_api_key,
                openrouter_api_key=config.openrouter_api_key,
                timeout=config.request_timeout,
            )
        return ModelAssistedClassifier(
            client,
            sample_size=config.classify_sample_size,
            batch_size=config.classify_batch_size,
            max_workers=config.classify_workers,
        )
    return KeywordClassifier(default_keyword_rules())


def run_classify_stage(
    config: PipelineConfig,
    classifier=None,
    *,
    records: Optional[Sequence[ShowcaseRecord]] = None,
) -> List[ShowcaseRecord]:
    classifier = classifier or build_classifier(config)
    if records is None:
        records = load_collection(config.posts_with_metadata_path, ShowcaseRecord.from_dict)
    logger.info(f"Classifying {len(records)} apps with {classifier.__class__.__name__}...")
    classified = classifier.classify(records)
    save_collection(config.classified_posts_path, classified)
    save_collection(config.posts_path, classified)
    logger.info(f"Saved results to {config.posts_path} and {config.classified_posts_path}")
    return classified


# Maintenance --------------------------------------------------------------

def run_revalidate_images(config: PipelineConfig, validator: Optional[ImageValidator] = None) -> int:
    """Re-check preview images of the published collection and drop dead ones."""
    validator = validator or build_image_validator(config)
    records = load_collection(config.classified_posts_path, ShowcaseRecord.from_dict)
    removed = 0
    cleaned: List[ShowcaseRecord] = []
    for rec in records:
        if rec.image and not validator.is_usable_image(rec.image):
            logger.info(f"Removing invalid image for {rec.title}: {rec.image}")
            md = rec.metadata.to_dict()
            md.pop("image", None)
            rec = rec.with_metadata(Metadata.from_dict(md))
            removed += 1
        cleaned.append(rec)
    save_collection(config.classified_posts_path, cleaned)
    save_collection(config.posts_path, cleaned)
    logger.info(f"Finished. Removed {removed} invalid images.")
    return removed

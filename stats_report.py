#!/usr/bin/env python3
"""
Collection stats for the README: totals, bad links, posting cadence and
category distribution.
"""

import logging
import os
import sys

from hnshowcase.catalog.directory import Directory
from hnshowcase.catalog.stats import (
    bar,
    category_distribution,
    count_bad_cache_entries,
    image_coverage,
    posts_per_day,
    posts_per_month,
    slug_collisions,
)
from hnshowcase.config import PipelineConfig
from hnshowcase.ingestion.record_types import ListingRecord
from hnshowcase.pipeline.stages import build_fetch_cache
from hnshowcase.runtime.logging_setup import configure_logging
from hnshowcase.storage.json_store import load_collection

logger = logging.getLogger("stats_report")


def print_listing_stats(config):
    print("--- Stats for README ---")
    if not os.path.exists(config.posts_raw_path):
        print(f"  {config.posts_raw_path} not found")
        return
    posts = load_collection(config.posts_raw_path, ListingRecord.from_dict)
    print(f"Total Apps: {len(posts)}")
    if os.path.isdir(config.html_cache_dir):
        print(f"Bad Links: {count_bad_cache_entries(build_fetch_cache(config).entries())}")

    print("\n--- Daily (last 31 days in data) ---")
    daily = posts_per_day(posts)
    for day in list(daily)[-31:]:
        print(f"{day}: {daily[day]} {bar(daily[day], 5)}")

    print("\n--- Monthly ---")
    for month, count in posts_per_month(posts).items():
        print(f"{month}: {count} {bar(count, 20)}")


def print_category_stats(config):
    if not os.path.exists(config.classified_posts_path):
        print(f"\n  {config.classified_posts_path} not found")
        return
    directory = Directory.load(config.classified_posts_path)
    coverage = image_coverage(directory.records)
    print(f"\n--- Category Distribution ({len(directory.records)} apps, "
          f"{coverage.ratio:.0%} with preview image) ---")
    for category, count in category_distribution(directory.records):
        print(f"{category}: {count} apps")

    for slug, names in slug_collisions(directory.categories()).items():
        logger.warning(f"Categories {names} share the slug '{slug}' and will merge in routing")


def main() -> int:
    configure_logging()
    config = PipelineConfig.from_env()
    print_listing_stats(config)
    print_category_stats(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())

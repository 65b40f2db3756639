#!/usr/bin/env python3
"""Destination fetch worker (stage 2).

Fills the HTML cache for every post's destination URL. Already cached URLs,
including failed ones, are not requested again; pass --retry-errors to drop
failed entries first.
"""

from __future__ import annotations

import argparse
import logging

from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ConfigurationError
from hnshowcase.pipeline.stages import run_fetch_stage
from hnshowcase.runtime.logging_setup import configure_logging

logger = logging.getLogger("fetch_content_worker")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--retry-errors", action="store_true", help="invalidate cached fetch failures before fetching")
    args = parser.parse_args(argv)

    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        return 2
    configure_logging(config.log_level, config.log_file)

    try:
        summary = run_fetch_stage(config, retry_errors=args.retry_errors)
    except FileNotFoundError:
        logger.error(f"{config.posts_raw_path} not found. Run crawl_listings_worker.py first.")
        return 1
    logger.info(f"[fetch] distinct={summary.distinct} errors={summary.errors} invalidated={summary.invalidated}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

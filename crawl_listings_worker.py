#!/usr/bin/env python3
"""Listing crawl worker (stage 1).

Walks the Show HN listing pages and stores deduplicated post records in
posts_raw.json.
"""

from __future__ import annotations

import logging

from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ConfigurationError
from hnshowcase.pipeline.stages import run_crawl_stage
from hnshowcase.runtime.logging_setup import configure_logging

logger = logging.getLogger("crawl_listings_worker")


def main() -> int:
    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        return 2
    configure_logging(config.log_level, config.log_file)

    result = run_crawl_stage(config)
    logger.info(
        f"[crawl] records={len(result.records)} pages={result.pages_fetched} "
        f"failed_chains={len(result.failed_chains)}"
    )
    return 0 if result.records else 1


if __name__ == "__main__":
    raise SystemExit(main())

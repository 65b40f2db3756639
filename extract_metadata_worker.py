#!/usr/bin/env python3
"""Metadata extraction worker (stage 3).

Reads cached destination pages (never fetches them) and writes
posts_with_metadata.json.
"""

from __future__ import annotations

import logging

from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ConfigurationError
from hnshowcase.pipeline.stages import run_extract_stage
from hnshowcase.runtime.logging_setup import configure_logging

logger = logging.getLogger("extract_metadata_worker")


def main() -> int:
    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        return 2
    configure_logging(config.log_level, config.log_file)

    try:
        results = run_extract_stage(config)
    except FileNotFoundError:
        logger.error(f"{config.posts_raw_path} not found. Run stages 1 and 2 first.")
        return 1
    with_md = sum(1 for r in results if r.metadata)
    logger.info(f"[extract] records={len(results)} with_metadata={with_md}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

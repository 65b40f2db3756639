#!/usr/bin/env python3
"""Re-check preview images in the published collection and drop dead ones."""

from __future__ import annotations

import logging

from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ConfigurationError
from hnshowcase.pipeline.stages import run_revalidate_images
from hnshowcase.runtime.logging_setup import configure_logging

logger = logging.getLogger("revalidate_images_worker")


def main() -> int:
    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        return 2
    configure_logging(config.log_level, config.log_file)
    try:
        run_revalidate_images(config)
    except FileNotFoundError:
        logger.error(f"{config.classified_posts_path} not found.")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

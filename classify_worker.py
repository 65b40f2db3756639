#!/usr/bin/env python3
"""Classification worker (stage 4).

CLASSIFIER=keyword (default) uses the fixed keyword table; CLASSIFIER=llm
discovers a balanced category set with the model and classifies in batches.
A missing credential stops this stage only; earlier artifacts are untouched.
"""

from __future__ import annotations

import argparse
import logging

from hnshowcase.catalog.stats import category_distribution
from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ClassificationError, ConfigurationError
from hnshowcase.pipeline.stages import run_classify_stage
from hnshowcase.runtime.logging_setup import configure_logging

logger = logging.getLogger("classify_worker")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--classifier", choices=("keyword", "llm"), help="override CLASSIFIER")
    args = parser.parse_args(argv)

    try:
        config = PipelineConfig.from_env()
        if args.classifier:
            config.classifier = args.classifier
        configure_logging(config.log_level, config.log_file)
        classified = run_classify_stage(config)
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"ERROR: {e}")
        return 2
    except ClassificationError as e:
        logger.error(f"Classification failed: {e}")
        return 1
    except FileNotFoundError:
        logger.error("posts_with_metadata.json not found. Run extract_metadata_worker.py first.")
        return 1

    for category, count in category_distribution(classified):
        logger.info(f"{category}: {count} apps")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

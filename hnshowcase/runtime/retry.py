"""Retry helper for flaky upstream calls."""

from __future__ import annotations

import logging
import random
import time
from functools import wraps
from typing import Tuple, Type

import requests

logger = logging.getLogger(__name__)

# Network errors and malformed model replies; anything else propagates at once.
RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (requests.RequestException, ValueError)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
):
    """Retry ``retry_on`` errors with exponential backoff plus up to a second of jitter."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_retries:
                        logger.error(f"{func.__name__} gave up after {attempt} attempt(s): {e}")
                        raise
                    delay = min(base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1), max_delay)
                    logger.warning(f"{func.__name__} attempt {attempt}/{max_retries} failed: {e}. Retrying in {delay:.1f}s")
                    time.sleep(delay)
                    attempt += 1

        return wrapper
    return decorator

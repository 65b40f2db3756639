"""Error taxonomy for the showcase pipeline.

Stage-fatal errors (ConfigurationError, ClassificationError) propagate to the
worker scripts. Everything else is recorded and the stage keeps going.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError, ValueError):
    """Missing credential or invalid setting. Fatal for the stage that needs it."""


class FetchFailure(PipelineError):
    """Network error, timeout or non-2xx response."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class ParseFailure(PipelineError):
    """Listing page could not be parsed."""


class ValidationFailure(PipelineError):
    """Candidate image rejected. Caught inside the validator, which answers False."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class ExtractionFailure(PipelineError):
    """Destination content could not be turned into metadata."""

    def __init__(self, record_id: str, message: str):
        super().__init__(f"record {record_id}: {message}")
        self.record_id = record_id


class ClassificationError(PipelineError):
    """Category discovery failed; nothing can be classified."""


class ClassificationBatchFailure(PipelineError):
    """One classification batch failed after retries."""

    def __init__(self, batch_index: int, cause: Optional[BaseException] = None):
        super().__init__(f"batch {batch_index} failed: {cause}")
        self.batch_index = batch_index
        self.cause = cause

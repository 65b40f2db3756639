"""Model-assisted batch classification.

Phase one asks the model for a small, balanced category set from a sample of
records. Phase two classifies every record in fixed-size batches against that
closed set. Answers are matched back by record id. A batch that keeps failing
puts only its own records in "Other".
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Protocol, Sequence

from hnshowcase.classification.keyword_rules import OTHER_CATEGORY
from hnshowcase.contracts.classification import validate_batch_assignment, validate_category_proposal
from hnshowcase.errors import ClassificationBatchFailure, ClassificationError
from hnshowcase.ingestion.record_types import ShowcaseRecord
from hnshowcase.runtime.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class JsonCompletion(Protocol):
    def complete_json(self, prompt: str) -> Any: ...


CATEGORY_PROMPT = """
Analyze these {count} Hacker News "Show HN" posts and suggest {min_categories}-{max_categories} distinct categories.

CRITICAL:
1. The goal is to distribute all {total} apps so that each category has roughly {per_category} apps.
2. Suggest only {min_categories}-{max_categories} high-level categories.
3. DO NOT create generic categories like "AI" or "Development Tools" if they would end up with far more
   items than the others. Split them into more balanced high-level themes instead
   (e.g. "AI for Creative & Media" and "AI for Data & Code").
4. Ensure every app in this list can fit into one of your categories.
5. Avoid a large "Other" category.

Apps to analyze:
{apps}

Return ONLY a JSON object with a "categories" array of strings.
"""

BATCH_PROMPT = """
Classify these apps into EXACTLY ONE of the following categories:
{categories}

CRITICAL:
- DO NOT create new categories.
- DO NOT use "Other" unless it is absolutely impossible to fit the app elsewhere.
- Aim for a balanced distribution across the categories provided.
- If multiple categories could apply, pick the one most specific to the app's core value proposition.

Apps:
{apps}

Return ONLY a JSON object where keys are app IDs and values are the chosen category name.
"""


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class ModelAssistedClassifier:
    def __init__(
        self,
        client: JsonCompletion,
        *,
        sample_size: int = 300,
        batch_size: int = 50,
        max_workers: int = 2,
        min_categories: int = 9,
        max_categories: int = 10,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        fallback: str = OTHER_CATEGORY,
    ):
        self.client = client
        self.sample_size = sample_size
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.min_categories = min_categories
        self.max_categories = max_categories
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.fallback = fallback
        self.categories: Optional[List[str]] = None
        self.failed_batches: List[int] = []

    def _retrying(self, func):
        return retry_with_backoff(max_retries=self.max_retries, base_delay=self.retry_delay)(func)

    # Phase one --------------------------------------------------------------

    def normalize_categories(self, names: Sequence[str]) -> List[str]:
        out: List[str] = []
        seen = set()
        for name in names:
            clean = " ".join(str(name).split())
            key = clean.lower()
            if not clean or key == self.fallback.lower() or key in seen:
                continue
            seen.add(key)
            out.append(clean)
        if len(out) > self.max_categories:
            logger.warning(f"Model proposed {len(out)} categories; keeping the first {self.max_categories}")
            out = out[: self.max_categories]
        return out

    def discover_categories(self, records: Sequence[ShowcaseRecord]) -> List[str]:
        sample = [{"title": r.title, "description": r.description} for r in records[: self.sample_size]]
        prompt = CATEGORY_PROMPT.format(
            count=len(sample),
            total=len(records),
            per_category=max(1, len(records) // self.max_categories),
            min_categories=self.min_categories,
            max_categories=self.max_categories,
            apps=json.dumps(sample, indent=2, ensure_ascii=False),
        )

        def ask() -> List[str]:
            payload = self.client.complete_json(prompt)
            errors = validate_category_proposal(payload)
            if errors:
                raise ValueError("Invalid category proposal: " + "; ".join(errors))
            return self.normalize_categories(payload["categories"])

        logger.info("Defining balanced categories...")
        try:
            categories = self._retrying(ask)()
        except Exception as e:
            raise ClassificationError(f"Category discovery failed: {e}") from e
        if len(categories) < 2:
            raise ClassificationError(f"Category discovery returned too few categories: {categories}")
        if len(categories) < self.min_categories:
            logger.warning(f"Model proposed only {len(categories)} categories")
        logger.info(f"Defined {len(categories)} categories: {categories}")
        self.categories = categories
        return categories

    # Phase two --------------------------------------------------------------

    def _resolve(self, value: Any, canonical: Dict[str, str]) -> str:
        if not isinstance(value, str):
            return self.fallback
        return canonical.get(" ".join(value.split()).lower(), self.fallback)

    def classify_batch(self, batch: Sequence[ShowcaseRecord], categories: Sequence[str]) -> Dict[str, str]:
        """Return record id -> category for one batch (raises on malformed responses)."""
        prompt = BATCH_PROMPT.format(
            categories=", ".join(categories),
            apps=json.dumps(
                [{"id": r.id, "title": r.title, "desc": r.description} for r in batch],
                indent=2,
                ensure_ascii=False,
            ),
        )
        payload = self.client.complete_json(prompt)
        errors = validate_batch_assignment(payload)
        if errors:
            raise ValueError("Invalid batch assignment: " + "; ".join(errors))
        canonical = {c.lower(): c for c in categories}
        canonical[self.fallback.lower()] = self.fallback
        return {r.id: self._resolve(payload.get(r.id), canonical) for r in batch}

    def classify(
        self,
        records: Sequence[ShowcaseRecord],
        categories: Optional[Sequence[str]] = None,
    ) -> List[ShowcaseRecord]:
        if categories is None:
            categories = self.categories or self.discover_categories(records)
        categories = list(categories)
        batches = chunked(list(records), self.batch_size)
        assigned: Dict[str, str] = {}
        self.failed_batches = []

        classify_with_retry = self._retrying(self.classify_batch)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(classify_with_retry, batch, categories): i for i, batch in enumerate(batches)}
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    assigned.update(future.result())
                    logger.info(f"Processed batch {idx + 1}/{len(batches)}")
                except Exception as e:
                    failure = ClassificationBatchFailure(idx, e)
                    logger.error(f"{failure}; its {len(batches[idx])} records default to '{self.fallback}'")
                    self.failed_batches.append(idx)

        self.failed_batches.sort()
        return [rec.with_category(assigned.get(rec.id, self.fallback)) for rec in records]

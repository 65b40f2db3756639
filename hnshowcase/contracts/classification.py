"""Response contracts for the generative classification service.

- Category proposal: ``{"categories": [string, ...]}``
- Batch assignment: ``{"<record id>": "<category name>", ...}``; values are
  checked per record by the classifier, so only the object shape is enforced here

Validators return a list of human-readable errors (empty when valid).
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator


CATEGORY_PROPOSAL_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["categories"],
    "properties": {
        "categories": {
            "type": "array",
            "minItems": 1,
            "items": {"type": "string", "minLength": 1},
        },
    },
    "additionalProperties": True,
}

BATCH_ASSIGNMENT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
}


def _errors(schema: Dict[str, Any], payload: Any) -> List[str]:
    validator = Draft202012Validator(schema)
    out = []
    for err in sorted(validator.iter_errors(payload), key=lambda e: list(e.path)):
        loc = "/".join(str(p) for p in err.path) or "<root>"
        out.append(f"{loc}: {err.message}")
    return out


def validate_category_proposal(payload: Any) -> List[str]:
    return _errors(CATEGORY_PROPOSAL_SCHEMA, payload)


def validate_batch_assignment(payload: Any) -> List[str]:
    return _errors(BATCH_ASSIGNMENT_SCHEMA, payload)

"""JSON collection files.

Writes go to a temp file in the same directory and are moved into place with
``os.replace``, so readers only ever see a complete previous or new version.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, Iterable, List, TypeVar

T = TypeVar("T")


def write_json_atomic(path: str, payload: Any) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_collection(path: str, parse: Callable[[dict], T]) -> List[T]:
    """Load a JSON array collection. A missing file is a hard error for the caller."""
    data = read_json(path)
    if not isinstance(data, list):
        raise ValueError(f"{path} does not hold a JSON array")
    return [parse(item) for item in data if isinstance(item, dict)]


def save_collection(path: str, items: Iterable[Any]) -> int:
    payload = [it.to_dict() if hasattr(it, "to_dict") else it for it in items]
    write_json_atomic(path, payload)
    return len(payload)

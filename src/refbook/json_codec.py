"""JSON codec for persisted records."""

from __future__ import annotations

import json
import math
from typing import Any


class RecordEncodeError(TypeError):
    """Raised when a record holds a value that cannot be persisted as JSON."""


class RecordDecodeError(ValueError):
    """Raised when a persisted payload is not valid JSON."""

    def __init__(self, key: str | None, message: str) -> None:
        super().__init__(f"{key or '<unknown>'}: {message}")
        self.key = key


def _check(obj: Any, path: str = "$") -> None:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise RecordEncodeError(f"Non-string key at {path}: {type(key).__name__}")
            _check(value, f"{path}.{key}")
        return
    if isinstance(obj, (list, tuple)):
        for idx, item in enumerate(obj):
            _check(item, f"{path}[{idx}]")
        return
    if obj is None or isinstance(obj, (str, int, bool)):
        return
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise RecordEncodeError(f"Non-finite number at {path}: {obj!r}")
        return
    raise RecordEncodeError(f"Unsupported type at {path}: {type(obj).__name__}")


def dumps(obj: Any) -> str:
    """Serialize a record deterministically.

    Keys are sorted so two writes of the same record produce the same text,
    which keeps backend diffs and tests stable. Non-ASCII text is kept as is.
    """
    _check(obj)
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def loads(text: str | None, key: str | None = None) -> Any:
    if text is None:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError(key, str(exc)) from exc

"""Value semantics shared by every component that reads stored field values."""

from __future__ import annotations

import uuid
from typing import Any, Iterable


def is_empty_value(value: Any) -> bool:
    """True for ``None``, ``""`` and ``[]``. Zero and ``False`` are values."""
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def as_value_list(value: Any) -> list:
    # a scalar stored under a multiple field reads as a one-element collection
    if is_empty_value(value):
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if not is_empty_value(v)]
    return [value]


def value_contains(value: Any, target: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return target in value
    return value == target


def value_intersects(value: Any, targets: set) -> bool:
    if isinstance(value, (list, tuple)):
        return any(isinstance(item, str) and item in targets for item in value)
    return isinstance(value, str) and value in targets


def dedupe_by_id(items: Iterable[dict]) -> list[dict]:
    seen: set = set()
    out: list[dict] = []
    for item in items:
        item_id = item.get("id") if isinstance(item, dict) else None
        if item_id is None:
            # nothing to compare by
            out.append(item)
            continue
        if item_id in seen:
            continue
        seen.add(item_id)
        out.append(item)
    return out


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"

"""In-memory key/value backend for session persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class MemoryKeyValueStore:
    """Raw string storage keyed by ``<namespace>:<id>``.

    Values are kept exactly as written, so a corrupt payload survives here the
    same way it would in any external store and readers must cope with it.
    """

    def __init__(self, items: Dict[str, str] | None = None) -> None:
        self._items: Dict[str, str] = dict(items or {})
        self._updated_at: Dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("value must be a string")
        self._items[key] = value
        self._updated_at[key] = _now()

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
        self._updated_at.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._items.keys() if k.startswith(prefix)]

    def updated_at(self, key: str) -> str | None:
        return self._updated_at.get(key)

    def clear(self) -> None:
        self._items.clear()
        self._updated_at.clear()

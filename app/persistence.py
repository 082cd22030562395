"""JSON persistence over a raw key/value backend.

Writes are fire-and-forget: a failing backend is logged and reported as
``False`` but never raises, so the in-memory stores stay the source of truth
for the session. Reads decode per record; one malformed record is skipped and
logged without aborting the rest of the load.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from refbook.json_codec import RecordDecodeError, dumps, loads

logger = logging.getLogger("refbook.persistence")


class JsonPersistence:
    def __init__(self, backend) -> None:
        self.backend = backend

    def read_raw(self, key: str) -> str | None:
        try:
            return self.backend.get_item(key)
        except Exception as exc:
            logger.warning("persistence_read_failed key=%s error=%s", key, exc)
            return None

    def read(self, key: str, default: Any = None) -> Any:
        raw = self.read_raw(key)
        if raw is None:
            return default
        try:
            return loads(raw, key=key)
        except RecordDecodeError as exc:
            logger.warning("persistence_malformed_record key=%s error=%s", key, exc)
            return default

    def keys(self, prefix: str) -> list[str]:
        try:
            return list(self.backend.keys(prefix))
        except Exception as exc:
            logger.warning("persistence_list_failed prefix=%s error=%s", prefix, exc)
            return []

    def iter_raw(self, prefix: str) -> Iterator[tuple[str, str | None]]:
        for key in self.keys(prefix):
            yield key, self.read_raw(key)

    def load_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        items: list[tuple[str, Any]] = []
        for key, raw in self.iter_raw(prefix):
            if raw is None:
                continue
            try:
                items.append((key, loads(raw, key=key)))
            except RecordDecodeError as exc:
                logger.warning("persistence_malformed_record key=%s error=%s", key, exc)
        return items

    def write(self, key: str, value: Any) -> bool:
        try:
            payload = dumps(value)
        except (TypeError, ValueError) as exc:
            logger.error("persistence_encode_failed key=%s error=%s", key, exc)
            return False
        try:
            self.backend.set_item(key, payload)
        except Exception as exc:
            logger.error("persistence_write_failed key=%s error=%s", key, exc)
            return False
        return True

    def clear_prefix(self, prefix: str) -> int:
        """Remove every record under ``prefix``; returns how many removals succeeded."""
        return sum(1 for key in self.keys(prefix) if self.remove(key))

    def remove(self, key: str) -> bool:
        try:
            self.backend.remove_item(key)
        except Exception as exc:
            logger.error("persistence_remove_failed key=%s error=%s", key, exc)
            return False
        return True

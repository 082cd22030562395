"""Deal records and their per-deal ad-hoc value maps.

Deals have no schema of their own here; the repository only stores what it is
given. Value maps are read straight from persistence on every scan so a
corrupt map is seen (and skipped) where it lies.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Tuple

from refbook.json_codec import RecordDecodeError, loads
from refbook.keys import DEAL_PREFIX, DEAL_VALUES_PREFIX, id_from_key, record_key
from refbook.values import new_id

logger = logging.getLogger("refbook.deals")

Deal = Dict[str, Any]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class DealRepository:
    def __init__(self, persistence) -> None:
        self._persistence = persistence

    def init(self, initial_state: dict | None = None) -> None:
        """Replace persisted deals and value maps with ``initial_state``; ``None`` keeps what is there."""
        if initial_state is None:
            return
        self._persistence.clear_prefix(DEAL_PREFIX)
        self._persistence.clear_prefix(DEAL_VALUES_PREFIX)
        for deal in initial_state.get("deals") or []:
            self.save_deal(deal)
        for deal_id, values in (initial_state.get("deal_values") or {}).items():
            self.set_values(deal_id, values)

    def list_deals(self) -> List[Deal]:
        deals = []
        for key, obj in self._persistence.load_prefix(DEAL_PREFIX):
            if not isinstance(obj, dict):
                logger.warning("deal_skipped_record key=%s", key)
                continue
            obj.setdefault("id", id_from_key(DEAL_PREFIX, key))
            deals.append(obj)
        deals.sort(key=lambda d: (str(d.get("created_at") or ""), str(d.get("id"))))
        return deals

    def get_deal(self, deal_id: str) -> Deal | None:
        obj = self._persistence.read(record_key(DEAL_PREFIX, deal_id))
        if not isinstance(obj, dict):
            return None
        obj.setdefault("id", deal_id)
        return obj

    def save_deal(self, deal: Deal) -> Deal:
        if not isinstance(deal, dict):
            raise TypeError("deal must be an object")
        deal = copy.deepcopy(deal)
        deal.setdefault("id", new_id("deal"))
        now = _now()
        deal.setdefault("created_at", now)
        deal["updated_at"] = now
        self._persistence.write(record_key(DEAL_PREFIX, deal["id"]), deal)
        return copy.deepcopy(deal)

    def delete_deal(self, deal_id: str) -> None:
        self._persistence.remove(record_key(DEAL_PREFIX, deal_id))
        self._persistence.remove(record_key(DEAL_VALUES_PREFIX, deal_id))

    def get_values(self, deal_id: str) -> dict:
        values = self._persistence.read(record_key(DEAL_VALUES_PREFIX, deal_id), default={})
        return values if isinstance(values, dict) else {}

    def set_values(self, deal_id: str, values: dict) -> bool:
        if not isinstance(values, dict):
            raise TypeError("deal values must be an object")
        return self._persistence.write(record_key(DEAL_VALUES_PREFIX, deal_id), values)

    def iter_value_records(self) -> Iterator[Tuple[str, dict | None]]:
        """``(deal_id, values)`` per persisted map; ``values`` is None when the map is unreadable."""
        for key, raw in self._persistence.iter_raw(DEAL_VALUES_PREFIX):
            deal_id = id_from_key(DEAL_VALUES_PREFIX, key)
            if raw is None:
                continue
            try:
                values = loads(raw, key=key)
            except RecordDecodeError as exc:
                logger.warning("deal_values_malformed deal_id=%s error=%s", deal_id, exc)
                yield deal_id, None
                continue
            if not isinstance(values, dict):
                logger.warning("deal_values_not_a_map deal_id=%s", deal_id)
                yield deal_id, None
                continue
            yield deal_id, values

    def iter_value_maps(self) -> Iterator[Tuple[str, dict]]:
        for deal_id, values in self.iter_value_records():
            yield deal_id, values if values is not None else {}

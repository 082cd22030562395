"""Reconstructs deal-to-entry links from schema-less deal value maps.

There is no reverse index: every query is one full pass over all persisted
value maps. A value matches when it is an id in the queried set, or a list
holding at least one such id.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from refbook.values import dedupe_by_id, value_intersects

logger = logging.getLogger("refbook.deals")


def _id_set(entry_ids: Iterable[Any]) -> set[str]:
    if isinstance(entry_ids, str):
        entry_ids = [entry_ids]
    return {eid for eid in entry_ids or [] if isinstance(eid, str) and eid}


class DealLinkageScanner:
    def __init__(self, deals) -> None:
        self.deals = deals

    @staticmethod
    def references_any(value: Any, id_set: set) -> bool:
        return value_intersects(value, id_set)

    def _deal(self, deal_id: str, cache: Dict[str, Any]) -> dict | None:
        if deal_id not in cache:
            deal = self.deals.get_deal(deal_id)
            if deal is None:
                logger.debug("deal_values_without_deal deal_id=%s", deal_id)
            cache[deal_id] = deal
        return cache[deal_id]

    def deals_referencing(self, entry_ids: Iterable[str]) -> List[dict]:
        ids = _id_set(entry_ids)
        if not ids:
            return []
        cache: Dict[str, Any] = {}
        matched: List[dict] = []
        for deal_id, values in self.deals.iter_value_maps():
            if not any(self.references_any(v, ids) for v in values.values()):
                continue
            deal = self._deal(deal_id, cache)
            if deal is not None:
                matched.append(deal)
        return dedupe_by_id(matched)

    def deals_for_entry_with_linked(self, entry_id: str, linked_ids: Iterable[str]) -> List[dict]:
        ids = _id_set(linked_ids)
        ids.add(entry_id)
        return self.deals_referencing(ids)

    def deals_by_entry(self, entry_ids: Iterable[str]) -> Dict[str, List[dict]]:
        """One pass serving many ids: ``{entry_id: [deals referencing it]}``."""
        ids = _id_set(entry_ids)
        result: Dict[str, List[dict]] = {eid: [] for eid in ids}
        if not ids:
            return result
        cache: Dict[str, Any] = {}
        for deal_id, values in self.deals.iter_value_maps():
            hits: set[str] = set()
            for value in values.values():
                items = value if isinstance(value, (list, tuple)) else [value]
                hits.update(item for item in items if isinstance(item, str) and item in ids)
            if not hits:
                continue
            deal = self._deal(deal_id, cache)
            if deal is None:
                continue
            for eid in sorted(hits):
                result[eid].append(deal)
        return result

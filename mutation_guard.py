"""Locks structural schema edits while live data depends on a field."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Tuple

from field_types import DEFINITION_STRUCTURAL_KEYS, FIELD_STRUCTURAL_KEYS, KIND_REFERENCE
from refbook.values import is_empty_value

logger = logging.getLogger("refbook.guard")

Issue = Dict[str, Any]


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _locked_warning(field_id: str, key: str, message: str) -> Issue:
    return _issue("FIELD_LOCKED", message, key, {"field_id": field_id, "key": key})


class MutationGuard:
    """A field is locked while any entry, catalog entry or deal value map holds
    a non-empty value under its id."""

    is_empty_value = staticmethod(is_empty_value)

    def __init__(self, reference_entries, catalog_entries, deals=None) -> None:
        self.reference_entries = reference_entries
        self.catalog_entries = catalog_entries
        self.deals = deals

    def is_locked(self, field_id: str) -> bool:
        if not field_id:
            return False
        if self.reference_entries.has_value(field_id):
            return True
        if self.catalog_entries.has_value(field_id):
            return True
        if self.deals is not None:
            for _, values in self.deals.iter_value_maps():
                if not is_empty_value(values.get(field_id)):
                    return True
        return False

    def locked_field_ids(self, field_ids: Iterable[str]) -> set[str]:
        return {fid for fid in field_ids if self.is_locked(fid)}

    def _filter_fields(self, owner_id: str, existing: list, incoming: Any, path: str) -> Tuple[Any, List[Issue]]:
        if not isinstance(incoming, list):
            return incoming, []
        existing_by_id = {f["id"]: f for f in existing if isinstance(f, dict) and f.get("id")}
        locked = self.locked_field_ids(existing_by_id)
        warnings: List[Issue] = []
        out: list = []
        seen: set[str] = set()
        for field in incoming:
            field_id = field.get("id") if isinstance(field, dict) else None
            if field_id in locked:
                old = existing_by_id[field_id]
                kept = copy.deepcopy(field)
                for key in FIELD_STRUCTURAL_KEYS:
                    if key in field and field[key] != old.get(key):
                        warnings.append(_locked_warning(field_id, f"{path}.{field_id}.{key}", f"{key} is locked"))
                    if key in old:
                        kept[key] = copy.deepcopy(old[key])
                    else:
                        kept.pop(key, None)
                out.append(kept)
            else:
                out.append(field)
            if field_id:
                seen.add(field_id)
        for field_id, old in existing_by_id.items():
            if field_id in locked and field_id not in seen:
                out.append(copy.deepcopy(old))
                warnings.append(_locked_warning(field_id, f"{path}.{field_id}", "locked fields cannot be removed"))
        if warnings:
            logger.info("guard_kept_locked_fields owner=%s count=%s", owner_id, len(warnings))
        return out, warnings

    def filter_definition_updates(
        self, definition: dict, updates: dict, dependent_field_ids: Iterable[str] = ()
    ) -> Tuple[dict, List[Issue]]:
        """Drop locked structural keys from ``updates``; name, required and display flags always pass.

        ``dependent_field_ids`` are catalog fields that derive their type from
        this definition; any value stored under them locks it too.
        """
        updates = dict(updates)
        def_id = definition.get("id")
        warnings: List[Issue] = []
        locked = self.is_locked(def_id) or bool(self.locked_field_ids(dependent_field_ids))
        sub_fields = definition.get("reference_fields") or []
        if not locked and definition.get("kind") == KIND_REFERENCE:
            locked_subs = self.locked_field_ids(f.get("id") for f in sub_fields if isinstance(f, dict))
        else:
            locked_subs = set()
        for key in DEFINITION_STRUCTURAL_KEYS:
            if key not in updates:
                continue
            key_locked = locked or (key == "kind" and bool(locked_subs))
            if key_locked and updates[key] != definition.get(key):
                updates.pop(key)
                warnings.append(_locked_warning(def_id, key, f"{key} is locked"))
        if "reference_fields" in updates and definition.get("kind") == KIND_REFERENCE:
            updates["reference_fields"], field_warnings = self._filter_fields(
                def_id, sub_fields, updates["reference_fields"], "reference_fields"
            )
            warnings.extend(field_warnings)
        if warnings:
            logger.info("guard_ignored_updates definition_id=%s keys=%s", def_id, [w["path"] for w in warnings])
        return updates, warnings

    def filter_catalog_updates(self, catalog: dict, updates: dict) -> Tuple[dict, List[Issue]]:
        updates = dict(updates)
        warnings: List[Issue] = []
        if "fields" in updates:
            updates["fields"], warnings = self._filter_fields(
                catalog.get("id"), catalog.get("fields") or [], updates["fields"], "fields"
            )
        return updates, warnings

    def clear_field_values(self, field_id: str | Iterable[str], confirmed: bool = False) -> dict:
        """Remove every stored value for ``field_id`` (one id or several); only runs once confirmed.

        Best effort: a malformed deal value map is skipped and counted, the
        rest of the pass continues.
        """
        result = {
            "ok": False,
            "deals_cleared": 0,
            "entries_cleared": 0,
            "catalog_entries_cleared": 0,
            "skipped": 0,
        }
        if not confirmed:
            return result
        field_ids = [field_id] if isinstance(field_id, str) else list(dict.fromkeys(field_id))
        if self.deals is not None:
            for deal_id, values in self.deals.iter_value_records():
                if values is None:
                    result["skipped"] += 1
                    logger.warning("guard_clear_skipped deal_id=%s field_ids=%s", deal_id, field_ids)
                    continue
                present = [fid for fid in field_ids if fid in values]
                if not present:
                    continue
                for fid in present:
                    values.pop(fid)
                self.deals.set_values(deal_id, values)
                result["deals_cleared"] += 1
        result["entries_cleared"] = sum(self.reference_entries.clear_field(fid) for fid in field_ids)
        result["catalog_entries_cleared"] = sum(self.catalog_entries.clear_field(fid) for fid in field_ids)
        result["ok"] = True
        logger.info(
            "guard_cleared field_ids=%s deals=%s entries=%s catalog_entries=%s skipped=%s",
            field_ids,
            result["deals_cleared"],
            result["entries_cleared"],
            result["catalog_entries_cleared"],
            result["skipped"],
        )
        return result

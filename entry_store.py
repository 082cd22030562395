"""In-memory reference entry and catalog entry stores."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from field_types import normalize_fields
from refbook.keys import CATALOG_ENTRY_PREFIX, REFERENCE_ENTRY_PREFIX, record_key
from refbook.values import is_empty_value, new_id

logger = logging.getLogger("refbook.entries")

Entry = Dict[str, Any]
SchemaLookup = Callable[[str], "list[dict] | None"]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class EntryValidationError(Exception):
    code: str
    message: str
    field_ids: List[str] = field(default_factory=list)

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (fields={', '.join(self.field_ids)})" if self.field_ids else base


@dataclass
class DuplicateIdError(Exception):
    record_id: str
    kind: str = "entry"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.kind} already exists: {self.record_id}"


def _normalized_fields(fields: Any) -> list[dict]:
    try:
        return normalize_fields(fields)
    except TypeError as exc:
        raise EntryValidationError("FIELDS_INVALID", str(exc)) from exc


def missing_required(schema_fields: list[dict], fields: list[dict]) -> list[str]:
    values = {item["field_id"]: item["value"] for item in fields}
    return [
        f.get("id")
        for f in schema_fields
        if isinstance(f, dict) and f.get("required") and is_empty_value(values.get(f.get("id")))
    ]


class _EntryStore:
    owner_key = ""
    prefix = ""
    id_prefix = "ent"
    kind = "entry"
    tracks_author = False

    def __init__(self, persistence=None, schema_lookup: SchemaLookup | None = None, author: str | None = None) -> None:
        self._persistence = persistence
        self._schema_lookup = schema_lookup
        self._author = author
        self._entries: Dict[str, Entry] = {}

    def init(self, initial_state: list | None = None) -> None:
        """Replace the session state, from ``initial_state`` or from persistence."""
        self._entries = {}
        write_through = initial_state is not None
        if initial_state is None:
            records = [obj for _, obj in self._persistence.load_prefix(self.prefix)] if self._persistence else []
        else:
            records = list(initial_state)
            if self._persistence is not None:
                self._persistence.clear_prefix(self.prefix)
        loaded = []
        for raw in records:
            entry = self._coerce(raw)
            if entry is None:
                logger.warning("entry_skipped_record kind=%s", self.kind)
                continue
            loaded.append(entry)
        loaded.sort(key=lambda e: (str(e.get("created_at") or ""), e["id"]))
        for entry in loaded:
            self._entries[entry["id"]] = entry
            if write_through:
                self._persist(entry)
        logger.info("entries_init kind=%s count=%s", self.kind, len(self._entries))

    def _coerce(self, raw: Any) -> Entry | None:
        if not isinstance(raw, dict):
            return None
        if not isinstance(raw.get("id"), str) or not isinstance(raw.get(self.owner_key), str):
            return None
        entry = copy.deepcopy(raw)
        try:
            entry["fields"] = normalize_fields(entry.get("fields"))
        except TypeError:
            return None
        entry.setdefault("display_value", "")
        return entry

    def _persist(self, entry: Entry) -> None:
        if self._persistence is not None:
            self._persistence.write(record_key(self.prefix, entry["id"]), entry)

    def _unpersist(self, entry_id: str) -> None:
        if self._persistence is not None:
            self._persistence.remove(record_key(self.prefix, entry_id))

    def _validate(self, owner_id: str, fields: list[dict]) -> None:
        if self._schema_lookup is None:
            return
        schema_fields = self._schema_lookup(owner_id)
        if schema_fields is None:
            raise EntryValidationError("SCHEMA_NOT_FOUND", f"no schema for {self.owner_key}={owner_id}")
        missing = missing_required(schema_fields, fields)
        if missing:
            raise EntryValidationError("REQUIRED_FIELDS_MISSING", "required fields are empty", missing)

    def create(
        self,
        owner_id: str,
        display_value: str,
        fields: Any,
        created_by: str | None = None,
        entry_id: str | None = None,
    ) -> str:
        normalized = _normalized_fields(fields)
        self._validate(owner_id, normalized)
        entry_id = entry_id or new_id(self.id_prefix)
        if entry_id in self._entries:
            raise DuplicateIdError(entry_id, self.kind)
        now = _now()
        entry = {
            "id": entry_id,
            self.owner_key: owner_id,
            "display_value": display_value or "",
            "fields": normalized,
            "created_at": now,
            "updated_at": now,
        }
        if self.tracks_author:
            entry["created_by"] = created_by or self._author
        self._entries[entry_id] = entry
        self._persist(entry)
        logger.info("entry_created kind=%s id=%s owner=%s", self.kind, entry_id, owner_id)
        return entry_id

    def update(self, entry_id: str, partial: dict) -> Entry | None:
        existing = self._entries.get(entry_id)
        if existing is None:
            return None
        partial = copy.deepcopy(partial or {})
        for key in ("id", self.owner_key, "created_at", "created_by"):
            partial.pop(key, None)
        candidate = copy.deepcopy(existing)
        candidate.update(partial)
        candidate["fields"] = _normalized_fields(candidate.get("fields"))
        if "fields" in partial:
            self._validate(candidate[self.owner_key], candidate["fields"])
        if candidate.get("display_value") is None:
            candidate["display_value"] = ""
        candidate["updated_at"] = _now()
        self._entries[entry_id] = candidate
        self._persist(candidate)
        return copy.deepcopy(candidate)

    def delete(self, entry_id: str) -> None:
        # ids held elsewhere are left dangling and resolve as not found
        if self._entries.pop(entry_id, None) is not None:
            self._unpersist(entry_id)
            logger.info("entry_deleted kind=%s id=%s", self.kind, entry_id)

    def get(self, entry_id: str) -> Entry | None:
        entry = self._entries.get(entry_id)
        return copy.deepcopy(entry) if entry is not None else None

    def exists(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def _list_by_owner(self, owner_id: str) -> List[Entry]:
        return [copy.deepcopy(e) for e in self._entries.values() if e.get(self.owner_key) == owner_id]

    def list_all(self) -> List[Entry]:
        return [copy.deepcopy(e) for e in self._entries.values()]

    def delete_by_owner(self, owner_id: str) -> int:
        doomed = [eid for eid, e in self._entries.items() if e.get(self.owner_key) == owner_id]
        for entry_id in doomed:
            del self._entries[entry_id]
            self._unpersist(entry_id)
        if doomed:
            logger.info("entries_deleted_by_owner kind=%s owner=%s count=%s", self.kind, owner_id, len(doomed))
        return len(doomed)

    def has_value(self, field_id: str) -> bool:
        for entry in self._entries.values():
            for item in entry.get("fields") or []:
                if item.get("field_id") == field_id and not is_empty_value(item.get("value")):
                    return True
        return False

    def clear_field(self, field_id: str) -> int:
        """Drop ``field_id`` from every entry that stores it. Returns the number of entries changed."""
        changed = 0
        for entry in self._entries.values():
            fields = entry.get("fields") or []
            kept = [item for item in fields if item.get("field_id") != field_id]
            if len(kept) == len(fields):
                continue
            entry["fields"] = kept
            entry["updated_at"] = _now()
            self._persist(entry)
            changed += 1
        return changed


class ReferenceEntryStore(_EntryStore):
    owner_key = "definition_id"
    prefix = REFERENCE_ENTRY_PREFIX
    id_prefix = "ref"
    kind = "reference_entry"
    tracks_author = True

    def list_by_definition(self, definition_id: str) -> List[Entry]:
        return self._list_by_owner(definition_id)


class CatalogEntryStore(_EntryStore):
    owner_key = "catalog_id"
    prefix = CATALOG_ENTRY_PREFIX
    id_prefix = "cent"
    kind = "catalog_entry"

    def list_by_catalog(self, catalog_id: str) -> List[Entry]:
        return self._list_by_owner(catalog_id)

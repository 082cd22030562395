"""Forward and inverse link discovery between entries."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from field_types import KIND_REFERENCE, TYPE_CATALOG_LINK, catalog_link_target, field_value, reference_subfields
from refbook.values import as_value_list, dedupe_by_id

Entry = Dict[str, Any]
Groups = Dict[str, List[Entry]]


def _append(groups: Groups, key: str, entry: Entry) -> None:
    groups.setdefault(key, []).append(entry)


def _merge(forward: Groups, inverse: Groups) -> Groups:
    merged: Groups = {}
    for key in list(forward) + [k for k in inverse if k not in forward]:
        merged[key] = dedupe_by_id(forward.get(key, []) + inverse.get(key, []))
    return merged


class RelationshipResolver:
    """Resolves links between entries against the schemas that exist now.

    Forward links follow the entry's own definition by id, active or not.
    Inverse links are a full scan over the entries of every active reference
    definition.
    """

    def __init__(self, schemas, reference_entries, catalog_entries=None) -> None:
        self.schemas = schemas
        self.reference_entries = reference_entries
        self.catalog_entries = catalog_entries

    def _forward(self, entry: Entry) -> Tuple[Groups, List[dict]]:
        groups: Groups = {}
        missing: List[dict] = []
        definition = self.schemas.get_field_definition(entry.get("definition_id"))
        for sub in reference_subfields(definition):
            target_id = sub.get("target_definition_id")
            if not target_id:
                continue
            for linked_id in as_value_list(field_value(entry, sub.get("id"))):
                linked = self.reference_entries.get(linked_id) if isinstance(linked_id, str) else None
                if linked is None:
                    missing.append({"field_id": sub.get("id"), "entry_id": linked_id})
                    continue
                _append(groups, target_id, linked)
        return {k: dedupe_by_id(v) for k, v in groups.items()}, missing

    def forward_links(self, entry_id: str) -> Groups:
        entry = self.reference_entries.get(entry_id)
        if entry is None:
            return {}
        groups, _ = self._forward(entry)
        return groups

    def inverse_links(self, entry_id: str) -> Groups:
        groups: Groups = {}
        for definition in self.schemas.list_active():
            if definition.get("kind") != KIND_REFERENCE:
                continue
            subs = reference_subfields(definition)
            if not subs:
                continue
            for candidate in self.reference_entries.list_by_definition(definition["id"]):
                if candidate["id"] == entry_id:
                    continue
                if any(entry_id in as_value_list(field_value(candidate, sub.get("id"))) for sub in subs):
                    _append(groups, definition["id"], candidate)
        return groups

    def resolve(self, entry_id: str) -> dict | None:
        entry = self.reference_entries.get(entry_id)
        if entry is None:
            return None
        forward, missing = self._forward(entry)
        return {
            "entry_id": entry_id,
            "linked_entries": _merge(forward, self.inverse_links(entry_id)),
            "missing": missing,
        }

    def linked_entry_ids(self, entry_id: str) -> List[str]:
        resolved = self.resolve(entry_id)
        if resolved is None:
            return []
        ids: List[str] = []
        for entries in resolved["linked_entries"].values():
            ids.extend(e["id"] for e in entries if e["id"] not in ids)
        return ids

    def describe_reference(self, entry_id: str) -> dict:
        entry = self.reference_entries.get(entry_id) if isinstance(entry_id, str) else None
        kind = "reference_entry"
        if entry is None and self.catalog_entries is not None and isinstance(entry_id, str):
            entry = self.catalog_entries.get(entry_id)
            kind = "catalog_entry"
        if entry is None:
            return {"id": entry_id, "found": False, "display_value": entry_id, "kind": None}
        return {"id": entry_id, "found": True, "display_value": entry.get("display_value") or "", "kind": kind}

    def usage(self, entry_id: str) -> List[dict]:
        """Every entry field that holds ``entry_id``. Deals are not consulted."""
        usages: List[dict] = []
        definitions: Dict[str, Any] = {}
        for entry in self.reference_entries.list_all():
            def_id = entry.get("definition_id")
            if def_id not in definitions:
                definitions[def_id] = self.schemas.get_field_definition(def_id)
            for sub in reference_subfields(definitions[def_id]):
                if entry_id in as_value_list(field_value(entry, sub.get("id"))):
                    usages.append(
                        {
                            "type": "reference",
                            "entity_id": entry["id"],
                            "entity_name": entry.get("display_value") or "",
                            "field_name": sub.get("name"),
                            "schema_id": def_id,
                        }
                    )
        if self.catalog_entries is None:
            return usages
        catalog_fields: Dict[str, list] = {}
        for entry in self.catalog_entries.list_all():
            catalog_id = entry.get("catalog_id")
            if catalog_id not in catalog_fields:
                catalog_fields[catalog_id] = self.schemas.effective_catalog_fields(catalog_id)
            for field in catalog_fields[catalog_id]:
                if catalog_link_target(field) is None:
                    continue
                if entry_id in as_value_list(field_value(entry, field.get("id"))):
                    usages.append(
                        {
                            "type": "catalog_entry",
                            "entity_id": entry["id"],
                            "entity_name": entry.get("display_value") or "",
                            "field_name": field.get("name"),
                            "schema_id": catalog_id,
                        }
                    )
        return usages

    def entry_detail(self, entry_id: str) -> dict | None:
        resolved = self.resolve(entry_id)
        if resolved is None:
            return None
        entry = self.reference_entries.get(entry_id)
        resolved.update(
            {
                "entry": entry,
                "definition": self.schemas.get_field_definition(entry.get("definition_id")),
                "usage": self.usage(entry_id),
            }
        )
        return resolved

    # catalog entries

    def resolve_catalog_entry(self, entry_id: str) -> dict | None:
        if self.catalog_entries is None:
            return None
        entry = self.catalog_entries.get(entry_id)
        if entry is None:
            return None
        references: Groups = {}
        forward_catalog: Groups = {}
        missing: List[dict] = []
        for field in self.schemas.effective_catalog_fields(entry.get("catalog_id")):
            target = catalog_link_target(field)
            if target is None:
                continue
            target_kind, target_id = target
            store = self.reference_entries if target_kind == "reference" else self.catalog_entries
            groups = references if target_kind == "reference" else forward_catalog
            for linked_id in as_value_list(field_value(entry, field.get("id"))):
                linked = store.get(linked_id) if isinstance(linked_id, str) else None
                if linked is None:
                    missing.append({"field_id": field.get("id"), "entry_id": linked_id})
                    continue
                _append(groups, target_id, linked)

        inverse: Groups = {}
        catalog_fields: Dict[str, list] = {}
        for other in self.catalog_entries.list_all():
            if other["id"] == entry_id:
                continue
            catalog_id = other.get("catalog_id")
            if catalog_id not in catalog_fields:
                catalog_fields[catalog_id] = [
                    f for f in self.schemas.effective_catalog_fields(catalog_id) if f.get("type") == TYPE_CATALOG_LINK
                ]
            if any(entry_id in as_value_list(field_value(other, f.get("id"))) for f in catalog_fields[catalog_id]):
                _append(inverse, catalog_id, other)

        return {
            "entry_id": entry_id,
            "linked_entries": {k: dedupe_by_id(v) for k, v in references.items()},
            "linked_catalog_entries": _merge(forward_catalog, inverse),
            "missing": missing,
        }

    def catalog_entry_detail(self, entry_id: str) -> dict | None:
        resolved = self.resolve_catalog_entry(entry_id)
        if resolved is None:
            return None
        entry = self.catalog_entries.get(entry_id)
        resolved.update(
            {
                "entry": entry,
                "catalog": self.schemas.get_catalog(entry.get("catalog_id")),
                "usage": self.usage(entry_id),
            }
        )
        return resolved

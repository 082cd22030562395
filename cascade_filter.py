"""Dependent-dropdown filtering of reference entries."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from field_types import field_value, is_reference_subfield, reference_subfields
from refbook.values import as_value_list, is_empty_value, value_contains


class CascadeFilter:
    def __init__(self, schemas, reference_entries) -> None:
        self.schemas = schemas
        self.reference_entries = reference_entries

    def filter(
        self, target_definition_id: str, constraint_field_id: str | None = None, constraint_value: Any = None
    ) -> List[Dict[str, Any]]:
        """Entries of ``target_definition_id`` whose ``constraint_field_id`` equals ``constraint_value``.

        Array membership on either side counts as equality. Without a
        constraint field or value the whole set comes back.
        """
        entries = self.reference_entries.list_by_definition(target_definition_id)
        if not constraint_field_id or is_empty_value(constraint_value):
            return entries
        wanted = as_value_list(constraint_value)
        return [
            entry
            for entry in entries
            if any(value_contains(field_value(entry, constraint_field_id), w) for w in wanted)
        ]

    def constraint_for(
        self, sub_field: dict, siblings: List[dict], sibling_values: Dict[str, Any]
    ) -> Tuple[str, Any] | None:
        """Pairs a selected sibling with the field on the target schema that points at the same definition."""
        target_def = self.schemas.get_field_definition(sub_field.get("target_definition_id"))
        target_refs = reference_subfields(target_def)
        for sibling in siblings or []:
            if not is_reference_subfield(sibling) or sibling.get("id") == sub_field.get("id"):
                continue
            value = (sibling_values or {}).get(sibling.get("id"))
            if is_empty_value(value):
                continue
            for target_field in target_refs:
                if target_field.get("target_definition_id") == sibling.get("target_definition_id"):
                    return target_field.get("id"), value
        return None

    def options_for(
        self, sub_field: dict, siblings: List[dict] | None = None, sibling_values: Dict[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        target_id = sub_field.get("target_definition_id")
        if not target_id:
            return []
        if not sub_field.get("cascade_filter"):
            return self.filter(target_id)
        constraint = self.constraint_for(sub_field, siblings or [], sibling_values or {})
        if constraint is None:
            return self.filter(target_id)
        return self.filter(target_id, *constraint)

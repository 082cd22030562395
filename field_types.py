"""Field kind tags and the helpers that dispatch on them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

# FieldDefinition.kind
KIND_STRING = "string"
KIND_NUMBER = "number"
KIND_DATE = "date"
KIND_SELECT = "select"
KIND_MULTISELECT = "multiselect"
KIND_REFERENCE = "reference"
KIND_CATALOG_LINK = "catalog_link"
DEFINITION_KINDS = frozenset(
    {KIND_STRING, KIND_NUMBER, KIND_DATE, KIND_SELECT, KIND_MULTISELECT, KIND_REFERENCE, KIND_CATALOG_LINK}
)

# sub-field and catalog field types
TYPE_TEXT = "text"
TYPE_URL = "url"
TYPE_EMAIL = "email"
TYPE_PHONE = "phone"
TYPE_SELECT = "select"
TYPE_MULTISELECT = "multiselect"
TYPE_NUMERIC = "numeric"
TYPE_REFERENCE = "reference"
TYPE_CATALOG_LINK = "catalog_link"
SUB_FIELD_TYPES = frozenset(
    {TYPE_TEXT, TYPE_URL, TYPE_EMAIL, TYPE_PHONE, TYPE_SELECT, TYPE_MULTISELECT, TYPE_NUMERIC, TYPE_REFERENCE}
)
CATALOG_FIELD_TYPES = SUB_FIELD_TYPES | {TYPE_CATALOG_LINK}

DEFINITION_STRUCTURAL_KEYS = ("kind", "options", "catalog_id", "multiple")
FIELD_STRUCTURAL_KEYS = (
    "type",
    "options",
    "target_definition_id",
    "reference_id",
    "target_catalog_id",
    "multiple",
    "source_field_definition_id",
)


@dataclass
class FieldKindError(ValueError):
    kind: Any
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"unknown field kind {self.kind!r}" + (f" at {self.path}" if self.path else "")


def is_reference_subfield(sub_field: dict) -> bool:
    if not isinstance(sub_field, dict):
        return False
    ftype = sub_field.get("type")
    if ftype == TYPE_REFERENCE:
        return True
    if ftype == TYPE_MULTISELECT:
        return bool(sub_field.get("target_definition_id"))
    return False


def subfield_is_multiple(sub_field: dict) -> bool:
    if sub_field.get("type") == TYPE_MULTISELECT:
        return True
    return bool(sub_field.get("multiple"))


def reference_subfields(definition: dict | None) -> list[dict]:
    if not isinstance(definition, dict) or definition.get("kind") != KIND_REFERENCE:
        return []
    return [f for f in definition.get("reference_fields") or [] if is_reference_subfield(f)]


def _derived_from_definition(field: dict, definition: dict) -> dict:
    derived = dict(field)
    kind = definition.get("kind")
    if kind == KIND_STRING:
        derived["type"] = TYPE_TEXT
    elif kind == KIND_NUMBER:
        derived["type"] = TYPE_NUMERIC
    elif kind == KIND_DATE:
        derived["type"] = TYPE_TEXT
    elif kind in (KIND_SELECT, KIND_MULTISELECT):
        derived["type"] = kind
        derived["options"] = list(definition.get("options") or [])
    elif kind == KIND_REFERENCE:
        derived["type"] = TYPE_REFERENCE
        derived["reference_id"] = definition.get("id")
        derived["multiple"] = bool(definition.get("multiple"))
    elif kind == KIND_CATALOG_LINK:
        derived["type"] = TYPE_CATALOG_LINK
        derived["target_catalog_id"] = definition.get("catalog_id")
        derived["multiple"] = bool(definition.get("multiple"))
    else:
        raise FieldKindError(kind, path=field.get("id"))
    return derived


def effective_catalog_field(field: dict, get_definition: Callable[[str], dict | None] | None = None) -> dict:
    """Catalog field with type/options/target derived from its source definition.

    A field sourced from a definition that no longer exists keeps its own
    stored attributes.
    """
    source_id = field.get("source_field_definition_id")
    if not source_id or get_definition is None:
        return dict(field)
    definition = get_definition(source_id)
    if not definition:
        return dict(field)
    return _derived_from_definition(field, definition)


def catalog_link_target(field: dict) -> tuple[str, str] | None:
    """("reference", definition_id) or ("catalog", catalog_id) for linking catalog fields."""
    ftype = field.get("type")
    if ftype == TYPE_REFERENCE and field.get("reference_id"):
        return ("reference", field["reference_id"])
    if ftype == TYPE_CATALOG_LINK and field.get("target_catalog_id"):
        return ("catalog", field["target_catalog_id"])
    return None


def normalize_fields(fields: Any) -> List[Dict[str, Any]]:
    """Stored shape is an ordered list of ``{"field_id", "value"}``; mappings are accepted."""
    if fields is None:
        return []
    if isinstance(fields, dict):
        return [{"field_id": str(fid), "value": value} for fid, value in fields.items()]
    if not isinstance(fields, list):
        raise TypeError("fields must be a list or a mapping")
    out: list[dict] = []
    for item in fields:
        if not isinstance(item, dict):
            continue
        field_id = item.get("field_id")
        if not isinstance(field_id, str) or not field_id:
            continue
        out.append({"field_id": field_id, "value": item.get("value")})
    return out


def fields_as_dict(fields: Any) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for item in normalize_fields(fields):
        values[item["field_id"]] = item["value"]
    return values


def field_value(entry: dict, field_id: str) -> Any:
    for item in entry.get("fields") or []:
        if isinstance(item, dict) and item.get("field_id") == field_id:
            return item.get("value")
    return None

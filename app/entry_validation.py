"""Entry value checks and schema-at-read-time display helpers."""

from __future__ import annotations

from typing import Any

from field_types import (
    TYPE_CATALOG_LINK,
    TYPE_EMAIL,
    TYPE_MULTISELECT,
    TYPE_NUMERIC,
    TYPE_PHONE,
    TYPE_REFERENCE,
    TYPE_SELECT,
    TYPE_TEXT,
    TYPE_URL,
    fields_as_dict,
    subfield_is_multiple,
)
from refbook.values import as_value_list, is_empty_value

UNTITLED = "Untitled"


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> dict:
    return {"code": code, "message": message, "path": path, "detail": detail}


def option_values(field: dict) -> list:
    values = []
    for opt in field.get("options") or []:
        if isinstance(opt, dict) and "value" in opt:
            values.append(opt["value"])
        else:
            values.append(opt)
    return values


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_id_value(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def validate_entry_values(schema_fields: list[dict], fields: Any) -> list[dict]:
    """Type checks for an entry payload; required checks live in the stores."""
    if fields is not None and not isinstance(fields, (list, dict)):
        return [_issue("FIELDS_INVALID", "fields must be a list or an object", path="fields")]
    errors: list[dict] = []
    values = fields_as_dict(fields)
    field_by_id = {f.get("id"): f for f in schema_fields if isinstance(f, dict) and f.get("id")}

    for field_id, val in values.items():
        field = field_by_id.get(field_id)
        if not field:
            errors.append(_issue("UNKNOWN_FIELD", f"Unknown field: {field_id}", path=field_id))
            continue
        if is_empty_value(val):
            continue
        ftype = field.get("type")
        if ftype in (TYPE_TEXT, TYPE_URL, TYPE_EMAIL, TYPE_PHONE):
            if not isinstance(val, str):
                errors.append(_issue("TYPE_MISMATCH", f"{field_id} must be a string", path=field_id))
        elif ftype == TYPE_NUMERIC:
            if not _is_number(val):
                errors.append(_issue("TYPE_MISMATCH", f"{field_id} must be a number", path=field_id))
        elif ftype == TYPE_SELECT:
            allowed = option_values(field)
            if allowed and val not in allowed:
                errors.append(_issue("INVALID_OPTION", f"{field_id} must be one of {allowed}", path=field_id))
        elif ftype == TYPE_MULTISELECT:
            if field.get("target_definition_id"):
                if not _is_id_value(val):
                    errors.append(_issue("TYPE_MISMATCH", f"{field_id} must hold entry ids", path=field_id))
                continue
            allowed = option_values(field)
            bad = [v for v in as_value_list(val) if allowed and v not in allowed]
            if bad:
                errors.append(
                    _issue("INVALID_OPTION", f"{field_id} must be within {allowed}", path=field_id, detail={"invalid": bad})
                )
        elif ftype in (TYPE_REFERENCE, TYPE_CATALOG_LINK):
            if not _is_id_value(val):
                errors.append(_issue("TYPE_MISMATCH", f"{field_id} must hold entry ids", path=field_id))
    return errors


def _stringify(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if not is_empty_value(v))
    if is_empty_value(value):
        return ""
    return str(value)


def derive_display_value(schema_fields: list[dict], fields: Any, fallback: str = "") -> str:
    """First required field, else the first field, stringified."""
    if not schema_fields or not isinstance(fields, (list, dict)):
        return fallback
    values = fields_as_dict(fields)
    display_field = next((f for f in schema_fields if f.get("required")), schema_fields[0])
    text = _stringify(values.get(display_field.get("id")))
    return text or fallback


def empty_value_for(field: dict) -> Any:
    return [] if subfield_is_multiple(field) else ""


def project_entry(entry: dict, schema_fields: list[dict]) -> dict:
    """Entry as seen through the schema that exists now.

    Stored values for fields the schema no longer has are dropped; schema fields
    the entry never stored read as empty.
    """
    values = fields_as_dict(entry.get("fields"))
    projected = dict(entry)
    projected["fields"] = [
        {
            "field_id": field.get("id"),
            "name": field.get("name"),
            "type": field.get("type"),
            "value": values.get(field.get("id"), empty_value_for(field)),
        }
        for field in schema_fields
        if isinstance(field, dict) and field.get("id")
    ]
    return projected

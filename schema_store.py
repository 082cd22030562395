"""In-memory field definition and catalog schema store."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from field_types import (
    CATALOG_FIELD_TYPES,
    DEFINITION_KINDS,
    KIND_CATALOG_LINK,
    KIND_MULTISELECT,
    KIND_REFERENCE,
    KIND_SELECT,
    SUB_FIELD_TYPES,
    TYPE_CATALOG_LINK,
    TYPE_REFERENCE,
    effective_catalog_field,
    is_reference_subfield,
)
from refbook.keys import CATALOG_PREFIX, FIELD_DEFINITION_PREFIX, record_key
from refbook.values import new_id

logger = logging.getLogger("refbook.schema")

Definition = Dict[str, Any]
Catalog = Dict[str, Any]
Issue = Dict[str, Any]

DISPLAY_FLAG_KEYS = ("show_on_summary", "user_extensible", "color_tagged")
_PROTECTED_KEYS = ("id", "created_at", "author", "active")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _check_field_ids(fields: list, path: str, errors: list[Issue]) -> None:
    seen: set[str] = set()
    for idx, field in enumerate(fields):
        field_path = f"{path}[{idx}]"
        if not isinstance(field, dict):
            errors.append(_issue("FIELD_INVALID", "field must be an object", field_path))
            continue
        field_id = field.get("id")
        if not isinstance(field_id, str) or not field_id:
            errors.append(_issue("FIELD_ID_REQUIRED", "field id is required", field_path))
        elif field_id in seen:
            errors.append(_issue("FIELD_ID_DUPLICATE", f"duplicate field id: {field_id}", field_path))
        else:
            seen.add(field_id)
        name = field.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(_issue("FIELD_NAME_REQUIRED", "field name is required", field_path))


def validate_field_definition(payload: dict) -> list[Issue]:
    errors: list[Issue] = []
    if not isinstance(payload, dict):
        return [_issue("INVALID_PAYLOAD", "field definition must be an object")]
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(_issue("FIELD_NAME_REQUIRED", "name is required", "name"))
    kind = payload.get("kind")
    if kind not in DEFINITION_KINDS:
        errors.append(_issue("FIELD_KIND_INVALID", f"kind must be one of {sorted(DEFINITION_KINDS)}", "kind"))
        return errors

    if kind == KIND_REFERENCE:
        sub_fields = payload.get("reference_fields")
        if not isinstance(sub_fields, list) or not sub_fields:
            errors.append(
                _issue("REFERENCE_FIELDS_REQUIRED", "reference definitions need at least one field", "reference_fields")
            )
            return errors
        _check_field_ids(sub_fields, "reference_fields", errors)
        for idx, sub in enumerate(sub_fields):
            if not isinstance(sub, dict):
                continue
            path = f"reference_fields[{idx}]"
            stype = sub.get("type")
            if stype not in SUB_FIELD_TYPES:
                errors.append(_issue("FIELD_TYPE_INVALID", f"type must be one of {sorted(SUB_FIELD_TYPES)}", path))
            elif stype == TYPE_REFERENCE and not sub.get("target_definition_id"):
                errors.append(_issue("REFERENCE_TARGET_MISSING", "reference fields need target_definition_id", path))
    elif kind == KIND_CATALOG_LINK:
        if not payload.get("catalog_id"):
            errors.append(_issue("CATALOG_TARGET_MISSING", "catalog_id is required", "catalog_id"))
    elif kind in (KIND_SELECT, KIND_MULTISELECT):
        if not isinstance(payload.get("options"), list):
            errors.append(_issue("OPTIONS_INVALID", "options must be a list", "options"))
    return errors


def validate_catalog_schema(payload: dict) -> list[Issue]:
    errors: list[Issue] = []
    if not isinstance(payload, dict):
        return [_issue("INVALID_PAYLOAD", "catalog must be an object")]
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(_issue("CATALOG_NAME_REQUIRED", "name is required", "name"))
    fields = payload.get("fields")
    if not isinstance(fields, list) or not fields:
        errors.append(_issue("CATALOG_FIELDS_REQUIRED", "catalogs need at least one field", "fields"))
        return errors
    _check_field_ids(fields, "fields", errors)
    for idx, field in enumerate(fields):
        if not isinstance(field, dict):
            continue
        path = f"fields[{idx}]"
        if field.get("source_field_definition_id"):
            continue
        ftype = field.get("type")
        if ftype not in CATALOG_FIELD_TYPES:
            errors.append(_issue("FIELD_TYPE_INVALID", f"type must be one of {sorted(CATALOG_FIELD_TYPES)}", path))
        elif ftype == TYPE_REFERENCE and not field.get("reference_id"):
            errors.append(_issue("REFERENCE_TARGET_MISSING", "reference fields need reference_id", path))
        elif ftype == TYPE_CATALOG_LINK and not field.get("target_catalog_id"):
            errors.append(_issue("CATALOG_TARGET_MISSING", "catalog_link fields need target_catalog_id", path))
    return errors


def _normalize_sub_field(sub: Any) -> Any:
    if not isinstance(sub, dict):
        return sub
    out = copy.deepcopy(sub)
    out.setdefault("id", new_id("fld"))
    out["required"] = bool(out.get("required"))
    if is_reference_subfield(out):
        out["cascade_filter"] = bool(out.get("cascade_filter"))
    return out


def _normalize_definition(payload: dict) -> Definition:
    definition = copy.deepcopy(payload)
    kind = definition.get("kind")
    if kind == KIND_REFERENCE:
        sub_fields = definition.get("reference_fields")
        if isinstance(sub_fields, list):
            definition["reference_fields"] = [_normalize_sub_field(s) for s in sub_fields]
    else:
        definition.pop("reference_fields", None)
    if kind == KIND_CATALOG_LINK:
        definition["multiple"] = bool(definition.get("multiple"))
    if kind in (KIND_SELECT, KIND_MULTISELECT):
        definition.setdefault("options", [])
    for flag in DISPLAY_FLAG_KEYS:
        definition[flag] = bool(definition.get(flag))
    return definition


def _normalize_catalog(payload: dict) -> Catalog:
    catalog = copy.deepcopy(payload)
    fields = catalog.get("fields")
    if isinstance(fields, list):
        catalog["fields"] = [_normalize_sub_field(f) for f in fields]
    catalog["allows_multiple_selection"] = bool(catalog.get("allows_multiple_selection"))
    catalog["entries_editable"] = bool(catalog.get("entries_editable", True))
    return catalog


def _shares_source_id(field: dict) -> bool:
    # a sourced field may store its values under the source definition's own id
    source_id = field.get("source_field_definition_id")
    return bool(source_id) and field.get("id") == source_id


def _duplicate_field_issue(field_id: str, owner: str, path: str) -> Issue:
    return _issue("FIELD_ID_DUPLICATE", f"field id already in use: {field_id}", path, {"field_id": field_id, "owner": owner})


def _result(ok: bool, errors: list | None = None, warnings: list | None = None, **extra: Any) -> dict:
    result = {"ok": ok, "errors": errors or [], "warnings": warnings or []}
    result.update(extra)
    return result


class SchemaStore:
    """Field definitions and catalog schemas for one session.

    The mutation guard and the entry stores are attached with :meth:`bind`
    once they exist; until then updates are unguarded and deletes do not
    cascade.
    """

    def __init__(self, persistence=None, author: str | None = None) -> None:
        self._persistence = persistence
        self._author = author
        self._definitions: Dict[str, Definition] = {}
        self._catalogs: Dict[str, Catalog] = {}
        self.guard = None
        self.reference_entries = None
        self.catalog_entries = None

    def bind(self, guard=None, reference_entries=None, catalog_entries=None) -> None:
        if guard is not None:
            self.guard = guard
        if reference_entries is not None:
            self.reference_entries = reference_entries
        if catalog_entries is not None:
            self.catalog_entries = catalog_entries

    def init(self, initial_state: dict | None = None) -> None:
        """Replace the session state, from ``initial_state`` or from persistence."""
        self._definitions = {}
        self._catalogs = {}
        if initial_state is None:
            definitions = self._load(FIELD_DEFINITION_PREFIX)
            catalogs = self._load(CATALOG_PREFIX)
            write_through = False
        else:
            definitions = initial_state.get("field_definitions") or []
            catalogs = initial_state.get("catalogs") or []
            write_through = True
            if self._persistence is not None:
                self._persistence.clear_prefix(FIELD_DEFINITION_PREFIX)
                self._persistence.clear_prefix(CATALOG_PREFIX)

        for raw in definitions:
            if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
                logger.warning("schema_skipped_record kind=field_definition")
                continue
            definition = _normalize_definition(raw)
            definition.setdefault("active", True)
            self._definitions[definition["id"]] = definition
            if write_through:
                self._persist_definition(definition)
        for raw in catalogs:
            if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
                logger.warning("schema_skipped_record kind=catalog")
                continue
            catalog = _normalize_catalog(raw)
            self._catalogs[catalog["id"]] = catalog
            if write_through:
                self._persist_catalog(catalog)
        logger.info("schema_init definitions=%s catalogs=%s", len(self._definitions), len(self._catalogs))

    def _load(self, prefix: str) -> list:
        if self._persistence is None:
            return []
        return [obj for _, obj in self._persistence.load_prefix(prefix)]

    def _persist_definition(self, definition: Definition) -> None:
        if self._persistence is not None:
            self._persistence.write(record_key(FIELD_DEFINITION_PREFIX, definition["id"]), definition)

    def _persist_catalog(self, catalog: Catalog) -> None:
        if self._persistence is not None:
            self._persistence.write(record_key(CATALOG_PREFIX, catalog["id"]), catalog)

    # field ids

    def _field_id_owners(self, skip_definition: str | None = None, skip_catalog: str | None = None) -> Dict[str, str]:
        """Every field id in use, mapped to the schema that owns it.

        Stored values are keyed by bare field id, so the ids are one namespace
        across definitions, their sub-fields and catalog fields.
        """
        owners: Dict[str, str] = {}
        for def_id, definition in self._definitions.items():
            if def_id == skip_definition:
                continue
            owners[def_id] = f"field_definition:{def_id}"
            for sub in definition.get("reference_fields") or []:
                if isinstance(sub, dict) and sub.get("id"):
                    owners[sub["id"]] = f"field_definition:{def_id}"
        for catalog_id, catalog in self._catalogs.items():
            if catalog_id == skip_catalog:
                continue
            for field in catalog.get("fields") or []:
                if isinstance(field, dict) and field.get("id") and not _shares_source_id(field):
                    owners[field["id"]] = f"catalog:{catalog_id}"
        return owners

    def _definition_id_conflicts(self, def_id: str, definition: Definition) -> list[Issue]:
        owners = self._field_id_owners(skip_definition=def_id)
        errors: list[Issue] = []
        if def_id in owners:
            errors.append(_duplicate_field_issue(def_id, owners[def_id], "id"))
        for idx, sub in enumerate(definition.get("reference_fields") or []):
            sub_id = sub.get("id") if isinstance(sub, dict) else None
            if sub_id == def_id:
                errors.append(_duplicate_field_issue(sub_id, f"field_definition:{def_id}", f"reference_fields[{idx}]"))
            elif sub_id in owners:
                errors.append(_duplicate_field_issue(sub_id, owners[sub_id], f"reference_fields[{idx}]"))
        return errors

    def _catalog_id_conflicts(self, catalog_id: str, catalog: Catalog) -> list[Issue]:
        owners = self._field_id_owners(skip_catalog=catalog_id)
        errors: list[Issue] = []
        for idx, field in enumerate(catalog.get("fields") or []):
            if not isinstance(field, dict) or _shares_source_id(field):
                continue
            field_id = field.get("id")
            if field_id in owners:
                errors.append(_duplicate_field_issue(field_id, owners[field_id], f"fields[{idx}]"))
        return errors

    def sourced_field_ids(self, def_id: str) -> list[str]:
        """Ids of catalog fields that take their type from ``def_id``."""
        ids: list[str] = []
        for catalog in self._catalogs.values():
            for field in catalog.get("fields") or []:
                if isinstance(field, dict) and field.get("source_field_definition_id") == def_id:
                    if field.get("id") and field["id"] not in ids:
                        ids.append(field["id"])
        return ids

    # field definitions

    def create_field_definition(self, payload: dict) -> dict:
        if not isinstance(payload, dict):
            return _result(False, [_issue("INVALID_PAYLOAD", "field definition must be an object")])
        definition = _normalize_definition(payload)
        for key in ("created_at", "updated_at", "active"):
            definition.pop(key, None)
        errors = validate_field_definition(definition)
        if errors:
            return _result(False, errors)
        def_id = definition.get("id") or new_id("def")
        if def_id in self._definitions:
            return _result(False, [_issue("DUPLICATE_ID", f"field definition already exists: {def_id}", "id")])
        errors = self._definition_id_conflicts(def_id, definition)
        if errors:
            return _result(False, errors)
        now = _now()
        definition["id"] = def_id
        definition["active"] = True
        definition["created_at"] = now
        definition["updated_at"] = now
        definition["author"] = payload.get("author") or self._author
        self._definitions[def_id] = definition
        self._persist_definition(definition)
        logger.info("field_definition_created id=%s kind=%s", def_id, definition.get("kind"))
        return _result(True, definition=copy.deepcopy(definition))

    def update_field_definition(self, def_id: str, updates: dict) -> dict:
        existing = self._definitions.get(def_id)
        if existing is None:
            return _result(False, [_issue("NOT_FOUND", f"field definition not found: {def_id}", "id")])
        updates = copy.deepcopy(updates or {})
        for key in _PROTECTED_KEYS:
            updates.pop(key, None)
        warnings: list[Issue] = []
        if self.guard is not None:
            updates, warnings = self.guard.filter_definition_updates(
                existing, updates, dependent_field_ids=self.sourced_field_ids(def_id)
            )
        candidate = copy.deepcopy(existing)
        candidate.update(updates)
        candidate = _normalize_definition(candidate)
        errors = validate_field_definition(candidate) or self._definition_id_conflicts(def_id, candidate)
        if errors:
            return _result(False, errors, warnings)
        candidate["updated_at"] = _now()
        self._definitions[def_id] = candidate
        self._persist_definition(candidate)
        return _result(True, warnings=warnings, definition=copy.deepcopy(candidate))

    def _set_active(self, def_id: str, active: bool) -> dict:
        existing = self._definitions.get(def_id)
        if existing is None:
            return _result(False, [_issue("NOT_FOUND", f"field definition not found: {def_id}", "id")])
        existing["active"] = active
        existing["updated_at"] = _now()
        self._persist_definition(existing)
        return _result(True, definition=copy.deepcopy(existing))

    def deactivate_field_definition(self, def_id: str) -> dict:
        return self._set_active(def_id, False)

    def reactivate_field_definition(self, def_id: str) -> dict:
        return self._set_active(def_id, True)

    def definition_usage(self, def_id: str) -> list[dict]:
        """Places outside its own entries that still depend on a definition."""
        usage: list[dict] = []
        if self.guard is not None and self.guard.is_locked(def_id):
            usage.append({"kind": "values", "field_id": def_id})
        for catalog in self._catalogs.values():
            for field in catalog.get("fields") or []:
                if not isinstance(field, dict):
                    continue
                if field.get("source_field_definition_id") == def_id or field.get("reference_id") == def_id:
                    usage.append({"kind": "catalog_field", "catalog_id": catalog["id"], "field_id": field.get("id")})
        for other in self._definitions.values():
            if other["id"] == def_id:
                continue
            for sub in other.get("reference_fields") or []:
                if isinstance(sub, dict) and sub.get("target_definition_id") == def_id:
                    usage.append({"kind": "sub_field", "definition_id": other["id"], "field_id": sub.get("id")})
        return usage

    def delete_field_definition(self, def_id: str, force: bool = False) -> dict:
        if def_id not in self._definitions:
            return _result(False, [_issue("NOT_FOUND", f"field definition not found: {def_id}", "id")])
        usage = self.definition_usage(def_id)
        if usage and not force:
            self._set_active(def_id, False)
            logger.info("field_definition_deactivated id=%s usage=%s", def_id, len(usage))
            warning = _issue(
                "DEFINITION_IN_USE",
                "definition is still in use and was deactivated instead of deleted",
                "id",
                {"usage": usage},
            )
            return _result(True, warnings=[warning], deleted=False, deactivated=True, entries_deleted=0)
        del self._definitions[def_id]
        if self._persistence is not None:
            self._persistence.remove(record_key(FIELD_DEFINITION_PREFIX, def_id))
        removed = 0
        if self.reference_entries is not None:
            removed = self.reference_entries.delete_by_owner(def_id)
        logger.info("field_definition_deleted id=%s entries_deleted=%s", def_id, removed)
        return _result(True, deleted=True, deactivated=False, entries_deleted=removed)

    def get_field_definition(self, def_id: str) -> Definition | None:
        definition = self._definitions.get(def_id)
        return copy.deepcopy(definition) if definition is not None else None

    def list_field_definitions(self) -> List[Definition]:
        return [copy.deepcopy(d) for d in self._definitions.values()]

    def list_active(self) -> List[Definition]:
        return [copy.deepcopy(d) for d in self._definitions.values() if d.get("active", True)]

    def reference_schema_fields(self, def_id: str) -> list[dict] | None:
        definition = self._definitions.get(def_id)
        if definition is None:
            return None
        return copy.deepcopy(definition.get("reference_fields") or [])

    # catalogs

    def create_catalog(self, payload: dict) -> dict:
        if not isinstance(payload, dict):
            return _result(False, [_issue("INVALID_PAYLOAD", "catalog must be an object")])
        catalog = _normalize_catalog(payload)
        for key in ("created_at", "updated_at"):
            catalog.pop(key, None)
        errors = validate_catalog_schema(catalog)
        if errors:
            return _result(False, errors)
        catalog_id = catalog.get("id") or new_id("cat")
        if catalog_id in self._catalogs:
            return _result(False, [_issue("DUPLICATE_ID", f"catalog already exists: {catalog_id}", "id")])
        errors = self._catalog_id_conflicts(catalog_id, catalog)
        if errors:
            return _result(False, errors)
        now = _now()
        catalog["id"] = catalog_id
        catalog["created_at"] = now
        catalog["updated_at"] = now
        catalog["author"] = payload.get("author") or self._author
        self._catalogs[catalog_id] = catalog
        self._persist_catalog(catalog)
        logger.info("catalog_created id=%s fields=%s", catalog_id, len(catalog["fields"]))
        return _result(True, catalog=copy.deepcopy(catalog))

    def update_catalog(self, catalog_id: str, updates: dict) -> dict:
        existing = self._catalogs.get(catalog_id)
        if existing is None:
            return _result(False, [_issue("NOT_FOUND", f"catalog not found: {catalog_id}", "id")])
        updates = copy.deepcopy(updates or {})
        for key in _PROTECTED_KEYS:
            updates.pop(key, None)
        warnings: list[Issue] = []
        if self.guard is not None:
            updates, warnings = self.guard.filter_catalog_updates(existing, updates)
        candidate = copy.deepcopy(existing)
        candidate.update(updates)
        candidate = _normalize_catalog(candidate)
        errors = validate_catalog_schema(candidate) or self._catalog_id_conflicts(catalog_id, candidate)
        if errors:
            return _result(False, errors, warnings)
        candidate["updated_at"] = _now()
        self._catalogs[catalog_id] = candidate
        self._persist_catalog(candidate)
        return _result(True, warnings=warnings, catalog=copy.deepcopy(candidate))

    def delete_catalog(self, catalog_id: str) -> dict:
        if catalog_id not in self._catalogs:
            return _result(False, [_issue("NOT_FOUND", f"catalog not found: {catalog_id}", "id")])
        del self._catalogs[catalog_id]
        if self._persistence is not None:
            self._persistence.remove(record_key(CATALOG_PREFIX, catalog_id))
        removed = 0
        if self.catalog_entries is not None:
            removed = self.catalog_entries.delete_by_owner(catalog_id)
        logger.info("catalog_deleted id=%s entries_deleted=%s", catalog_id, removed)
        return _result(True, deleted=True, entries_deleted=removed)

    def get_catalog(self, catalog_id: str) -> Catalog | None:
        catalog = self._catalogs.get(catalog_id)
        return copy.deepcopy(catalog) if catalog is not None else None

    def list_catalogs(self) -> List[Catalog]:
        return [copy.deepcopy(c) for c in self._catalogs.values()]

    def effective_catalog_fields(self, catalog: Catalog | str) -> list[dict]:
        if isinstance(catalog, str):
            catalog = self._catalogs.get(catalog)
        if not isinstance(catalog, dict):
            return []
        fields = [
            effective_catalog_field(f, self._definitions.get) for f in catalog.get("fields") or [] if isinstance(f, dict)
        ]
        return copy.deepcopy(fields)

    def catalog_schema_fields(self, catalog_id: str) -> list[dict] | None:
        if catalog_id not in self._catalogs:
            return None
        return self.effective_catalog_fields(catalog_id)

    # target changes

    def _confirm_cleanup(self, field_ids: list[str], confirmed: bool) -> tuple[dict | None, dict | None]:
        """Returns ``(refusal, cleanup)``; a refusal means nothing may change yet."""
        if self.guard is None or not self.guard.locked_field_ids(field_ids):
            return None, None
        if not confirmed:
            refusal = _result(
                False,
                [
                    _issue(
                        "CONFIRMATION_REQUIRED",
                        "field holds values; changing its target clears them and needs confirmation",
                        field_ids[0],
                    )
                ],
                locked=True,
            )
            return refusal, None
        return None, self.guard.clear_field_values(field_ids, confirmed=True)

    def retarget_catalog_link(self, field_id: str, catalog_id: str, confirmed: bool = False) -> dict:
        definition = self._definitions.get(field_id)
        if definition is None:
            return _result(False, [_issue("NOT_FOUND", f"field definition not found: {field_id}", "id")])
        if definition.get("kind") != KIND_CATALOG_LINK:
            return _result(False, [_issue("FIELD_KIND_INVALID", "only catalog_link definitions have a target catalog", "kind")])
        if catalog_id not in self._catalogs:
            return _result(False, [_issue("CATALOG_NOT_FOUND", f"catalog not found: {catalog_id}", "catalog_id")])
        if definition.get("catalog_id") == catalog_id:
            return _result(True, definition=copy.deepcopy(definition), cleanup=None)
        refusal, cleanup = self._confirm_cleanup([field_id] + self.sourced_field_ids(field_id), confirmed)
        if refusal is not None:
            return refusal
        definition["catalog_id"] = catalog_id
        definition["updated_at"] = _now()
        self._persist_definition(definition)
        logger.info("catalog_link_retargeted id=%s catalog_id=%s cleaned=%s", field_id, catalog_id, cleanup is not None)
        return _result(True, definition=copy.deepcopy(definition), cleanup=cleanup)

    def retarget_catalog_field(
        self, catalog_id: str, field_id: str, target_catalog_id: str, confirmed: bool = False
    ) -> dict:
        catalog = self._catalogs.get(catalog_id)
        if catalog is None:
            return _result(False, [_issue("NOT_FOUND", f"catalog not found: {catalog_id}", "id")])
        field = next((f for f in catalog.get("fields") or [] if isinstance(f, dict) and f.get("id") == field_id), None)
        if field is None:
            return _result(False, [_issue("FIELD_NOT_FOUND", f"catalog field not found: {field_id}", field_id)])
        if field.get("source_field_definition_id") or field.get("type") != TYPE_CATALOG_LINK:
            return _result(False, [_issue("FIELD_KIND_INVALID", "only catalog_link fields have a target catalog", field_id)])
        if target_catalog_id not in self._catalogs:
            return _result(
                False, [_issue("CATALOG_NOT_FOUND", f"catalog not found: {target_catalog_id}", "target_catalog_id")]
            )
        if field.get("target_catalog_id") == target_catalog_id:
            return _result(True, catalog=copy.deepcopy(catalog), cleanup=None)
        refusal, cleanup = self._confirm_cleanup([field_id], confirmed)
        if refusal is not None:
            return refusal
        field["target_catalog_id"] = target_catalog_id
        catalog["updated_at"] = _now()
        self._persist_catalog(catalog)
        logger.info(
            "catalog_field_retargeted catalog_id=%s field_id=%s target=%s", catalog_id, field_id, target_catalog_id
        )
        return _result(True, catalog=copy.deepcopy(catalog), cleanup=cleanup)

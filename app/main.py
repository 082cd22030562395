"""HTTP surface for the refbook workspace."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

import time
import logging

from app.db import get_db_ms, get_db_stats, reset_db_ms
from app.entry_validation import UNTITLED, derive_display_value, project_entry, validate_entry_values
from app.search import global_search
from app.stores import MemoryKeyValueStore
from app.workspace import Workspace
from entry_store import DuplicateIdError, EntryValidationError


app = FastAPI(title="refbook")
logger = logging.getLogger("refbook")
logging.basicConfig(level=logging.INFO)
_LOCAL_CORS_ORIGINS = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
}
_LOCAL_CORS_REGEX = re.compile(r"^http://(localhost|127\.0\.0\.1):\d+$")
_EXTRA_CORS_ORIGINS = {
    origin.strip().rstrip("/")
    for origin in os.getenv("REFBOOK_CORS_ORIGINS", "").split(",")
    if origin.strip()
}
_CORS_ORIGINS = _LOCAL_CORS_ORIGINS | _EXTRA_CORS_ORIGINS

USE_DB = os.getenv("USE_DB", "").strip() == "1"
REFBOOK_AUTHOR = os.getenv("REFBOOK_AUTHOR", "").strip() or None
REFBOOK_TENANT = os.getenv("REFBOOK_TENANT", "").strip() or "default"
REQ_SLOW_MS = float(os.getenv("REFBOOK_REQ_SLOW_MS", "250"))

if USE_DB:
    from app.stores_db import DbKeyValueStore

    backend = DbKeyValueStore(tenant_id=REFBOOK_TENANT)
else:
    backend = MemoryKeyValueStore()

workspace = Workspace(backend, author=REFBOOK_AUTHOR)
workspace.init()


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    reset_db_ms()
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    db_ms = get_db_ms()
    db_stats = get_db_stats()
    route = request.scope.get("route")
    route_name = getattr(route, "name", None) or "unknown"
    logger.info(
        "%s %s %s route=%s total_ms=%.1f db_ms=%.1f db_q=%s",
        request.method,
        request.url.path,
        response.status_code,
        route_name,
        total_ms,
        db_ms,
        db_stats.get("queries", 0),
    )
    if total_ms >= REQ_SLOW_MS:
        logger.warning(
            "slow_request method=%s path=%s route=%s total_ms=%.1f db_ms=%.1f status=%s",
            request.method,
            request.url.path,
            route_name,
            total_ms,
            db_ms,
            response.status_code,
        )
    response.headers["X-Req-MS"] = f"{total_ms:.1f}"
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_CORS_ORIGINS),
    allow_origin_regex=_LOCAL_CORS_REGEX.pattern,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "FIELD_NOT_FOUND": 404,
    "CATALOG_NOT_FOUND": 404,
    "DUPLICATE_ID": 409,
    "CONFIRMATION_REQUIRED": 409,
}


def _result_response(result: dict, status: int = 200) -> JSONResponse:
    """Maps a store envelope to a response; refusals keep every issue."""
    if result.get("ok"):
        return JSONResponse(jsonable_encoder(result), status_code=status)
    errors = result.get("errors") or []
    code = errors[0].get("code") if errors else None
    return JSONResponse(jsonable_encoder(result), status_code=_STATUS_BY_CODE.get(code, 400))


def _validation_response(errors: list) -> JSONResponse:
    body = {"ok": False, "errors": errors, "warnings": []}
    return JSONResponse(jsonable_encoder(body), status_code=400)


def _entry_error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, DuplicateIdError):
        return _error_response("DUPLICATE_ID", str(exc), "id", status=409)
    status = 404 if exc.code == "SCHEMA_NOT_FOUND" else 400
    return _error_response(exc.code, exc.message, "fields", {"field_ids": exc.field_ids}, status=status)


async def _json_body(request: Request) -> dict | None:
    try:
        body = await request.json()
    except Exception:
        return None
    return body if isinstance(body, dict) else None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes")


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


# field definitions


@app.get("/field-definitions")
async def list_field_definitions(active_only: bool = False) -> JSONResponse:
    items = workspace.schemas.list_active() if active_only else workspace.schemas.list_field_definitions()
    return _ok_response({"field_definitions": items})


@app.post("/field-definitions")
async def create_field_definition(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    return _result_response(workspace.schemas.create_field_definition(body), status=201)


@app.get("/field-definitions/{definition_id}")
async def get_field_definition(definition_id: str) -> JSONResponse:
    definition = workspace.schemas.get_field_definition(definition_id)
    if definition is None:
        return _error_response("NOT_FOUND", "Field definition not found", "id", status=404)
    return _ok_response({"definition": definition, "locked": workspace.guard.is_locked(definition_id)})


@app.patch("/field-definitions/{definition_id}")
async def update_field_definition(definition_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    return _result_response(workspace.schemas.update_field_definition(definition_id, body))


@app.post("/field-definitions/{definition_id}/deactivate")
async def deactivate_field_definition(definition_id: str) -> JSONResponse:
    return _result_response(workspace.schemas.deactivate_field_definition(definition_id))


@app.post("/field-definitions/{definition_id}/reactivate")
async def reactivate_field_definition(definition_id: str) -> JSONResponse:
    return _result_response(workspace.schemas.reactivate_field_definition(definition_id))


@app.delete("/field-definitions/{definition_id}")
async def delete_field_definition(definition_id: str, force: bool = False) -> JSONResponse:
    return _result_response(workspace.schemas.delete_field_definition(definition_id, force=force))


@app.post("/field-definitions/{definition_id}/catalog-target")
async def retarget_catalog_link(definition_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None or not isinstance(body.get("catalog_id"), str):
        return _error_response("CATALOG_TARGET_MISSING", "catalog_id is required", "catalog_id")
    result = workspace.schemas.retarget_catalog_link(
        definition_id, body["catalog_id"], confirmed=_flag(body.get("confirmed"))
    )
    return _result_response(result)


# catalogs


@app.get("/catalogs")
async def list_catalogs() -> JSONResponse:
    return _ok_response({"catalogs": workspace.schemas.list_catalogs()})


@app.post("/catalogs")
async def create_catalog(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    return _result_response(workspace.schemas.create_catalog(body), status=201)


@app.get("/catalogs/{catalog_id}")
async def get_catalog(catalog_id: str) -> JSONResponse:
    catalog = workspace.schemas.get_catalog(catalog_id)
    if catalog is None:
        return _error_response("NOT_FOUND", "Catalog not found", "id", status=404)
    fields = workspace.schemas.effective_catalog_fields(catalog)
    locked = sorted(workspace.guard.locked_field_ids(f["id"] for f in fields))
    return _ok_response({"catalog": catalog, "effective_fields": fields, "locked_field_ids": locked})


@app.patch("/catalogs/{catalog_id}")
async def update_catalog(catalog_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    return _result_response(workspace.schemas.update_catalog(catalog_id, body))


@app.delete("/catalogs/{catalog_id}")
async def delete_catalog(catalog_id: str) -> JSONResponse:
    return _result_response(workspace.schemas.delete_catalog(catalog_id))


@app.post("/catalogs/{catalog_id}/fields/{field_id}/target")
async def retarget_catalog_field(catalog_id: str, field_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None or not isinstance(body.get("target_catalog_id"), str):
        return _error_response("CATALOG_TARGET_MISSING", "target_catalog_id is required", "target_catalog_id")
    result = workspace.schemas.retarget_catalog_field(
        catalog_id, field_id, body["target_catalog_id"], confirmed=_flag(body.get("confirmed"))
    )
    return _result_response(result)


# reference entries


def _reference_view(entry: dict) -> dict:
    schema_fields = workspace.schemas.reference_schema_fields(entry.get("definition_id")) or []
    return project_entry(entry, schema_fields)


@app.get("/reference-entries")
async def list_reference_entries(definition_id: str | None = None) -> JSONResponse:
    if definition_id:
        entries = workspace.reference_entries.list_by_definition(definition_id)
    else:
        entries = workspace.reference_entries.list_all()
    return _ok_response({"entries": entries})


@app.post("/reference-entries")
async def create_reference_entry(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None or not isinstance(body.get("definition_id"), str):
        return _error_response("DEFINITION_REQUIRED", "definition_id is required", "definition_id")
    schema_fields = workspace.schemas.reference_schema_fields(body["definition_id"])
    if schema_fields is None:
        return _error_response("NOT_FOUND", "Field definition not found", "definition_id", status=404)
    errors = validate_entry_values(schema_fields, body.get("fields"))
    if errors:
        return _validation_response(errors)
    try:
        entry_id = workspace.create_reference_entry(
            body["definition_id"],
            body.get("fields"),
            display_value=body.get("display_value"),
            created_by=body.get("created_by"),
            entry_id=body.get("id"),
        )
    except (EntryValidationError, DuplicateIdError) as exc:
        return _entry_error_response(exc)
    return _ok_response({"entry": workspace.reference_entries.get(entry_id)}, status=201)


@app.get("/reference-entries/{entry_id}")
async def get_reference_entry(entry_id: str) -> JSONResponse:
    entry = workspace.reference_entries.get(entry_id)
    if entry is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    return _ok_response({"entry": entry, "view": _reference_view(entry)})


@app.patch("/reference-entries/{entry_id}")
async def update_reference_entry(entry_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    existing = workspace.reference_entries.get(entry_id)
    if existing is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    schema_fields = workspace.schemas.reference_schema_fields(existing["definition_id"]) or []
    if "fields" in body:
        errors = validate_entry_values(schema_fields, body.get("fields"))
        if errors:
            return _validation_response(errors)
        if "display_value" not in body:
            body["display_value"] = derive_display_value(schema_fields, body.get("fields"))
    try:
        entry = workspace.reference_entries.update(entry_id, body)
    except EntryValidationError as exc:
        return _entry_error_response(exc)
    return _ok_response({"entry": entry})


@app.delete("/reference-entries/{entry_id}")
async def delete_reference_entry(entry_id: str) -> JSONResponse:
    if workspace.reference_entries.get(entry_id) is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    workspace.reference_entries.delete(entry_id)
    return _ok_response({"deleted": True})


@app.get("/reference-entries/{entry_id}/detail")
async def reference_entry_detail(entry_id: str) -> JSONResponse:
    detail = workspace.resolver.entry_detail(entry_id)
    if detail is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    detail["view"] = _reference_view(detail["entry"])
    detail["missing"] = [
        {**item, **workspace.resolver.describe_reference(item["entry_id"])} for item in detail["missing"]
    ]
    return _ok_response({"detail": detail})


@app.get("/reference-entries/{entry_id}/usage")
async def reference_entry_usage(entry_id: str) -> JSONResponse:
    return _ok_response({"usage": workspace.resolver.usage(entry_id)})


@app.get("/reference-entries/{entry_id}/deals")
async def reference_entry_deals(entry_id: str) -> JSONResponse:
    if workspace.reference_entries.get(entry_id) is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    return _ok_response({"deals": workspace.deals_for_reference_entry(entry_id)})


# catalog entries


@app.get("/catalog-entries")
async def list_catalog_entries(catalog_id: str | None = None) -> JSONResponse:
    if catalog_id:
        entries = workspace.catalog_entries.list_by_catalog(catalog_id)
    else:
        entries = workspace.catalog_entries.list_all()
    return _ok_response({"entries": entries})


@app.post("/catalog-entries")
async def create_catalog_entry(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None or not isinstance(body.get("catalog_id"), str):
        return _error_response("CATALOG_REQUIRED", "catalog_id is required", "catalog_id")
    schema_fields = workspace.schemas.catalog_schema_fields(body["catalog_id"])
    if schema_fields is None:
        return _error_response("NOT_FOUND", "Catalog not found", "catalog_id", status=404)
    errors = validate_entry_values(schema_fields, body.get("fields"))
    if errors:
        return _validation_response(errors)
    try:
        entry_id = workspace.create_catalog_entry(
            body["catalog_id"], body.get("fields"), display_value=body.get("display_value"), entry_id=body.get("id")
        )
    except (EntryValidationError, DuplicateIdError) as exc:
        return _entry_error_response(exc)
    return _ok_response({"entry": workspace.catalog_entries.get(entry_id)}, status=201)


@app.get("/catalog-entries/{entry_id}")
async def get_catalog_entry(entry_id: str) -> JSONResponse:
    entry = workspace.catalog_entries.get(entry_id)
    if entry is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    schema_fields = workspace.schemas.catalog_schema_fields(entry["catalog_id"]) or []
    return _ok_response({"entry": entry, "view": project_entry(entry, schema_fields)})


@app.patch("/catalog-entries/{entry_id}")
async def update_catalog_entry(entry_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    existing = workspace.catalog_entries.get(entry_id)
    if existing is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    catalog = workspace.schemas.get_catalog(existing["catalog_id"])
    if catalog is not None and not catalog.get("entries_editable", True):
        return _error_response("ENTRIES_READ_ONLY", "Entries of this catalog are not editable", "catalog_id", status=403)
    schema_fields = workspace.schemas.catalog_schema_fields(existing["catalog_id"]) or []
    if "fields" in body:
        errors = validate_entry_values(schema_fields, body.get("fields"))
        if errors:
            return _validation_response(errors)
        if "display_value" not in body:
            body["display_value"] = derive_display_value(schema_fields, body.get("fields"), fallback=UNTITLED)
    try:
        entry = workspace.catalog_entries.update(entry_id, body)
    except EntryValidationError as exc:
        return _entry_error_response(exc)
    return _ok_response({"entry": entry})


@app.delete("/catalog-entries/{entry_id}")
async def delete_catalog_entry(entry_id: str) -> JSONResponse:
    if workspace.catalog_entries.get(entry_id) is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    workspace.catalog_entries.delete(entry_id)
    return _ok_response({"deleted": True})


@app.get("/catalog-entries/{entry_id}/detail")
async def catalog_entry_detail(entry_id: str) -> JSONResponse:
    detail = workspace.resolver.catalog_entry_detail(entry_id)
    if detail is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    detail["missing"] = [
        {**item, **workspace.resolver.describe_reference(item["entry_id"])} for item in detail["missing"]
    ]
    return _ok_response({"detail": detail})


@app.get("/catalog-entries/{entry_id}/deals")
async def catalog_entry_deals(entry_id: str) -> JSONResponse:
    if workspace.catalog_entries.get(entry_id) is None:
        return _error_response("NOT_FOUND", "Entry not found", "id", status=404)
    return _ok_response({"deals": workspace.deals_for_catalog_entry(entry_id)})


# cascade and locking


@app.post("/cascade")
async def cascade_options(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    definition_id = body.get("definition_id")
    sub_field_id = body.get("sub_field_id")
    if definition_id and sub_field_id:
        siblings = workspace.schemas.reference_schema_fields(definition_id)
        sub_field = next((f for f in siblings or [] if f.get("id") == sub_field_id), None)
        if sub_field is None:
            return _error_response("FIELD_NOT_FOUND", "Sub-field not found", "sub_field_id", status=404)
        entries = workspace.cascade.options_for(sub_field, siblings, body.get("values") or {})
        return _ok_response({"entries": entries})
    target = body.get("target_definition_id")
    if not isinstance(target, str) or not target:
        return _error_response("DEFINITION_REQUIRED", "target_definition_id is required", "target_definition_id")
    entries = workspace.cascade.filter(target, body.get("constraint_field_id"), body.get("constraint_value"))
    return _ok_response({"entries": entries})


@app.get("/fields/{field_id}/locked")
async def field_locked(field_id: str) -> JSONResponse:
    return _ok_response({"field_id": field_id, "locked": workspace.guard.is_locked(field_id)})


@app.post("/fields/{field_id}/clear")
async def clear_field(field_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request) or {}
    result = workspace.guard.clear_field_values(field_id, confirmed=_flag(body.get("confirmed")))
    if not result["ok"]:
        return _error_response(
            "CONFIRMATION_REQUIRED", "Clearing stored values needs confirmation", field_id, detail=result, status=409
        )
    return _ok_response({"result": result})


# deals


@app.get("/deals")
async def list_deals() -> JSONResponse:
    return _ok_response({"deals": workspace.deals.list_deals()})


@app.post("/deals")
async def save_deal(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    values = body.pop("values", None)
    deal = workspace.deals.save_deal(body)
    if isinstance(values, dict):
        workspace.deals.set_values(deal["id"], values)
    return _ok_response({"deal": deal}, status=201)


@app.get("/deals/{deal_id}")
async def get_deal(deal_id: str) -> JSONResponse:
    deal = workspace.deals.get_deal(deal_id)
    if deal is None:
        return _error_response("NOT_FOUND", "Deal not found", "id", status=404)
    return _ok_response({"deal": deal, "values": workspace.deals.get_values(deal_id)})


@app.put("/deals/{deal_id}/values")
async def set_deal_values(deal_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request)
    if body is None:
        return _error_response("INVALID_PAYLOAD", "JSON object required")
    if workspace.deals.get_deal(deal_id) is None:
        return _error_response("NOT_FOUND", "Deal not found", "id", status=404)
    persisted = workspace.deals.set_values(deal_id, body)
    return _ok_response({"persisted": persisted})


@app.delete("/deals/{deal_id}")
async def delete_deal(deal_id: str) -> JSONResponse:
    workspace.deals.delete_deal(deal_id)
    return _ok_response({"deleted": True})


@app.post("/deals/referencing")
async def deals_referencing(request: Request) -> JSONResponse:
    body = await _json_body(request)
    entry_ids = body.get("entry_ids") if body else None
    if not isinstance(entry_ids, list):
        return _error_response("ENTRY_IDS_REQUIRED", "entry_ids must be a list", "entry_ids")
    return _ok_response({"deals": workspace.scanner.deals_referencing(entry_ids)})


@app.get("/search")
async def search(q: str = "", title_only: bool = False) -> JSONResponse:
    return _ok_response({"results": global_search(workspace, q, title_only=title_only)})
